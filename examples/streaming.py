"""
Inference Gateway Python SDK - Streaming Example

Streams a chat completion and prints content and reasoning as it arrives.
"""

import sys

from inference_gateway import (
    ChatCompletionRequest,
    InferenceGatewayClient,
    Message,
    Provider,
    StreamCallbacks,
)


def main():
    # Uses INFERENCE_GATEWAY_URL / INFERENCE_GATEWAY_API_KEY when set
    client = InferenceGatewayClient()

    request = ChatCompletionRequest(
        model="deepseek-r1-distill-llama-70b",
        messages=[
            Message.system("You are a concise assistant."),
            Message.user("Why is the sky blue?"),
        ],
        include_usage=True,
    )

    callbacks = StreamCallbacks(
        on_reasoning=lambda text: sys.stderr.write(text),
        on_content=lambda text: (sys.stdout.write(text), sys.stdout.flush()),
        on_usage=lambda usage: print(f"\n\n[{usage.total_tokens} tokens]"),
        on_error=lambda error: print(f"\n[{error.type.value}] {error.message}", file=sys.stderr),
    )

    with client:
        result = client.stream_chat_completion(request, callbacks, provider=Provider.GROQ)

    if result.truncated:
        print("\nThe stream was cut off; output may be incomplete.")
    print(f"Finish reason: {result.finish_reason}")


if __name__ == "__main__":
    main()
