"""
Inference Gateway Python SDK

Client for the Inference Gateway: one API in front of many LLM providers,
with incremental streaming of content, reasoning and tool calls.

Quick Start:
    from inference_gateway import (
        ChatCompletionRequest, InferenceGatewayClient, Message, Provider, StreamCallbacks,
    )

    client = InferenceGatewayClient(base_url="http://localhost:8080/v1")

    # List models
    models = client.list_models(Provider.OPENAI)

    # Streaming with callbacks
    result = client.stream_chat_completion(
        ChatCompletionRequest(model="gpt-4o", messages=[Message.user("Hello!")]),
        StreamCallbacks(
            on_content=lambda text: print(text, end="", flush=True),
            on_tool=lambda call: print(call.name, call.arguments),
        ),
        provider=Provider.OPENAI,
    )

    # Async usage
    async with AsyncInferenceGatewayClient() as client:
        response = await client.create_chat_completion(request)
"""

import logging

from .async_client import AsyncInferenceGatewayClient
from .client import InferenceGatewayClient, __version__
from .config import ClientOptions
from .errors import (
    AuthenticationError,
    CallbackError,
    ConnectionError,
    InferenceGatewayError,
    InvalidRequestError,
    ProviderError,
    RateLimitError,
    StreamError,
    TimeoutError,
    is_retryable_error,
)
from .models import (
    ChatCompletionChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    FinishReason,
    FunctionCall,
    FunctionDefinition,
    ListModelsResponse,
    ListToolsResponse,
    MCPTool,
    Message,
    MessageRole,
    Model,
    Provider,
    Tool,
    ToolCall,
    Usage,
)
from .streaming import (
    CancellationToken,
    ResolvedToolCall,
    SessionState,
    StreamCallbacks,
    StreamErrorType,
    StreamOutcome,
    StreamResult,
)

# Applications opt in to output with observability.setup_logging()
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    # Clients
    "InferenceGatewayClient",
    "AsyncInferenceGatewayClient",
    "ClientOptions",
    # Models
    "ChatCompletionChoice",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "FinishReason",
    "FunctionCall",
    "FunctionDefinition",
    "ListModelsResponse",
    "ListToolsResponse",
    "MCPTool",
    "Message",
    "MessageRole",
    "Model",
    "Provider",
    "Tool",
    "ToolCall",
    "Usage",
    # Streaming
    "CancellationToken",
    "ResolvedToolCall",
    "SessionState",
    "StreamCallbacks",
    "StreamErrorType",
    "StreamOutcome",
    "StreamResult",
    # Errors
    "InferenceGatewayError",
    "AuthenticationError",
    "RateLimitError",
    "InvalidRequestError",
    "ProviderError",
    "TimeoutError",
    "ConnectionError",
    "StreamError",
    "CallbackError",
    "is_retryable_error",
]
