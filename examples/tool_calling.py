"""
Inference Gateway Python SDK - Tool Calling Example

Streams a completion that calls a tool, runs the tool, and sends the
result back for the final answer.
"""

import json

from inference_gateway import (
    ChatCompletionRequest,
    InferenceGatewayClient,
    Message,
    Provider,
    StreamCallbacks,
    Tool,
)

# ============================================================
# Define Tools
# ============================================================

WEATHER_TOOL = Tool.create(
    "get_weather",
    "Get the current weather for a city",
    {
        "type": "object",
        "properties": {"city": {"type": "string"}},
        "required": ["city"],
    },
)


def get_weather(city: str) -> dict:
    return {"city": city, "temperature_c": 22, "conditions": "sunny"}


def main():
    client = InferenceGatewayClient()
    messages = [Message.user("What's the weather in Paris?")]

    def on_tool(call):
        if call.complete:
            print(f"-> {call.name}({call.arguments})")
        else:
            print(f"-> {call.name or 'unnamed tool'} could not be parsed: {call.error}")

    # ============================================================
    # First turn: the model asks for the tool
    # ============================================================
    result = client.stream_chat_completion(
        ChatCompletionRequest(model="gpt-4o", messages=messages, tools=[WEATHER_TOOL]),
        StreamCallbacks(on_tool=on_tool),
        provider=Provider.OPENAI,
    )
    messages.append(result.to_message())

    for call in result.tool_calls:
        if call.complete and call.name == "get_weather":
            output = get_weather(**call.arguments)
            messages.append(Message.tool(call.id, json.dumps(output)))

    # ============================================================
    # Second turn: the model answers with the tool output
    # ============================================================
    client.stream_chat_completion(
        ChatCompletionRequest(model="gpt-4o", messages=messages, tools=[WEATHER_TOOL]),
        StreamCallbacks(on_content=lambda text: print(text, end="", flush=True)),
        provider=Provider.OPENAI,
    )
    print()
    client.close()


if __name__ == "__main__":
    main()
