"""
Inference Gateway Python SDK - Async Usage Example

Async callbacks, cancellation and concurrent requests.
"""

import asyncio

from inference_gateway import (
    AsyncInferenceGatewayClient,
    CancellationToken,
    ChatCompletionRequest,
    Message,
)


async def main():
    async with AsyncInferenceGatewayClient() as client:
        # ============================================================
        # Models
        # ============================================================
        models = await client.list_models()
        print("Models:", ", ".join(m.id for m in models.data))

        # ============================================================
        # Cancel a stream after 200 characters
        # ============================================================
        token = CancellationToken()
        received = []

        async def on_content(text):
            received.append(text)
            if sum(len(t) for t in received) >= 200:
                token.cancel()

        result = await client.stream_chat_completion(
            ChatCompletionRequest(model="llama3.2", messages=[Message.user("Tell me a long story.")]),
            {"on_content": on_content, "on_cancel": lambda result: print("\n[cancelled]")},
            provider="ollama",
            cancel_token=token,
        )
        print(result.content)

        # ============================================================
        # Concurrent completions
        # ============================================================
        questions = ["Capital of Japan?", "Capital of Brazil?"]
        responses = await asyncio.gather(*[
            client.create_chat_completion(
                {"model": "llama3.2", "messages": [Message.user(q)]},
                provider="ollama",
            )
            for q in questions
        ])
        for question, response in zip(questions, responses):
            print(f"Q: {question}\nA: {response.content}\n")


if __name__ == "__main__":
    asyncio.run(main())
