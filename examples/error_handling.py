"""
Inference Gateway Python SDK - Error Handling Example

Demonstrates typed errors, retries and stream failures.
"""

from inference_gateway import (
    AuthenticationError,
    CallbackError,
    InferenceGatewayClient,
    InvalidRequestError,
    Message,
    RateLimitError,
    StreamError,
)
from inference_gateway.observability.logging import setup_logging


def main():
    setup_logging(level="INFO")

    # Non-streaming requests are retried on 429/5xx and connection errors
    client = InferenceGatewayClient(max_retries=3)

    try:
        client.list_models()
    except AuthenticationError:
        print("Check INFERENCE_GATEWAY_API_KEY")
    except RateLimitError as e:
        print(f"Rate limited, retry in {e.retry_after}s")

    request = {"model": "gpt-4o", "messages": [Message.user("Hello")]}
    try:
        client.stream_chat_completion(request, {"on_content": lambda text: print(text, end="")})
    except InvalidRequestError as e:
        print(f"Rejected: {e.message}")
    except StreamError as e:
        # The transport failed mid-stream; keep what was received
        print(f"\nStream failed after {len(e.partial_content or '')} characters: {e.message}")
    except CallbackError as e:
        print(f"{e.callback} raised {e.__cause__!r}")
    finally:
        client.close()


if __name__ == "__main__":
    main()
