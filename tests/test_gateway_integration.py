"""Integration tests against an in-process FastAPI gateway."""

from __future__ import annotations

import json
from typing import Dict, List

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from fastapi.testclient import TestClient

from inference_gateway import (
    AsyncInferenceGatewayClient,
    AuthenticationError,
    ChatCompletionRequest,
    InferenceGatewayClient,
    Message,
    StreamCallbacks,
    StreamErrorType,
    StreamOutcome,
    Tool,
)

from helpers import DONE, chunk, sse, tool_fragment


API_KEY = "sk-gateway"
BASE_URL = "http://testserver/v1"

WEATHER_STREAM = [
    sse(chunk(role="assistant", content="Checking")),
    sse(chunk(content=" the weather.")),
    sse(chunk(tool_calls=[tool_fragment(0, id="call_1", name="get_weather", arguments='{"city":')])),
    sse(chunk(tool_calls=[tool_fragment(0, arguments='"Paris"}')])),
    sse(chunk(finish_reason="tool_calls")),
    sse(chunk(usage={"prompt_tokens": 9, "completion_tokens": 6, "total_tokens": 15}, choices=False)),
    DONE,
]

ERROR_MID_STREAM = [
    sse(chunk(role="assistant", content="Par")),
    sse({"error": "upstream provider hiccup"}),
    sse(chunk(content="is")),
    sse(chunk(finish_reason="stop")),
    DONE,
]


def build_gateway(frames: List[str]) -> FastAPI:
    """A gateway that streams `frames` and serves the other endpoints."""
    app = FastAPI()
    app.state.requests = []

    def authorized(request: Request) -> bool:
        return request.headers.get("authorization") == f"Bearer {API_KEY}"

    @app.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        if not authorized(request):
            return JSONResponse({"error": "invalid api key"}, status_code=401)
        body = await request.json()
        app.state.requests.append({"body": body, "provider": request.query_params.get("provider")})

        if not body.get("stream"):
            return JSONResponse({
                "id": "chatcmpl-1",
                "object": "chat.completion",
                "model": body["model"],
                "choices": [{"index": 0, "message": {"role": "assistant", "content": "Paris"}, "finish_reason": "stop"}],
            })

        async def generate():
            for frame in frames:
                yield frame

        return StreamingResponse(generate(), media_type="text/event-stream")

    @app.get("/v1/models")
    async def models(request: Request):
        if not authorized(request):
            return JSONResponse({"error": "invalid api key"}, status_code=401)
        provider = request.query_params.get("provider")
        data = [
            {"id": "openai/gpt-4o", "object": "model", "owned_by": "openai", "served_by": "openai"},
            {"id": "groq/llama-3.3-70b", "object": "model", "owned_by": "groq", "served_by": "groq"},
        ]
        if provider:
            data = [m for m in data if m["served_by"] == provider]
        return {"object": "list", "provider": provider, "data": data}

    @app.get("/v1/mcp/tools")
    async def mcp_tools():
        return {"object": "list", "data": [{"name": "read_file", "server": "filesystem"}]}

    @app.api_route("/v1/proxy/{provider}/{path:path}", methods=["GET", "POST"])
    async def proxy(provider: str, path: str, request: Request):
        body = await request.body()
        return {
            "provider": provider,
            "path": path,
            "method": request.method,
            "body": json.loads(body) if body else None,
        }

    @app.get("/health")
    async def health():
        return PlainTextResponse("OK")

    return app


@pytest.fixture
def async_client_for(metrics, tracer_provider):
    """Async SDK client wired to a FastAPI app through ASGITransport."""
    def factory(app: FastAPI, api_key: str = API_KEY) -> AsyncInferenceGatewayClient:
        return AsyncInferenceGatewayClient(
            base_url=BASE_URL,
            api_key=api_key,
            http_client=httpx.AsyncClient(transport=httpx.ASGITransport(app=app)),
            metrics=metrics,
            tracer_provider=tracer_provider,
        )
    return factory


@pytest.fixture
def sync_client_for(metrics, tracer_provider):
    """Sync SDK client wired to a FastAPI app through TestClient."""
    def factory(app: FastAPI, api_key: str = API_KEY) -> InferenceGatewayClient:
        return InferenceGatewayClient(
            base_url=BASE_URL,
            api_key=api_key,
            http_client=TestClient(app),
            metrics=metrics,
            tracer_provider=tracer_provider,
        )
    return factory


def weather_request() -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="gpt-4o",
        messages=[Message.user("What's the weather in Paris?")],
        tools=[Tool.create("get_weather", "Current weather", {
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        })],
        include_usage=True,
    )


class TestStreamingAgainstGateway:
    """Streaming chat completions end to end."""

    @pytest.mark.asyncio
    async def test_async_tool_call_stream(self, async_client_for):
        """Content, tool call and usage arrive through async callbacks."""
        app = build_gateway(WEATHER_STREAM)
        content: List[str] = []
        tools: List[Dict] = []

        async def on_tool(call):
            tools.append({"id": call.id, "name": call.name, "arguments": call.arguments})

        async with async_client_for(app) as client:
            result = await client.stream_chat_completion(
                weather_request(),
                StreamCallbacks(on_content=content.append, on_tool=on_tool),
                provider="openai",
            )

        assert "".join(content) == "Checking the weather."
        assert tools == [{"id": "call_1", "name": "get_weather", "arguments": {"city": "Paris"}}]
        assert result.outcome == StreamOutcome.COMPLETED
        assert result.finish_reason == "tool_calls"
        assert result.usage.total_tokens == 15

        sent = app.state.requests[0]
        assert sent["provider"] == "openai"
        assert sent["body"]["stream"] is True
        assert sent["body"]["stream_options"] == {"include_usage": True}

    def test_sync_tool_call_stream(self, sync_client_for):
        """The sync client drives the same stream to the same result."""
        app = build_gateway(WEATHER_STREAM)
        events: List[str] = []

        result = sync_client_for(app).stream_chat_completion(
            weather_request(),
            {
                "on_content": lambda text: events.append("content"),
                "on_tool": lambda call: events.append(f"tool:{call.name}"),
                "on_usage": lambda usage: events.append("usage"),
                "on_finish": lambda result: events.append("finish"),
            },
        )

        assert result.content == "Checking the weather."
        assert events == ["content", "content", "tool:get_weather", "usage", "finish"]
        assert result.to_message().tool_calls[0].function.arguments == '{"city":"Paris"}'

    @pytest.mark.asyncio
    async def test_gateway_error_frame_is_not_fatal(self, async_client_for):
        """An error object mid-stream is reported and the stream continues."""
        errors = []

        async with async_client_for(build_gateway(ERROR_MID_STREAM)) as client:
            result = await client.stream_chat_completion(
                {"model": "gpt-4o", "messages": [Message.user("Capital of France?")]},
                {"on_error": errors.append},
            )

        assert result.content == "Paris"
        assert [(e.type, e.fatal) for e in errors] == [(StreamErrorType.PROVIDER_ERROR, False)]
        assert errors[0].message == "upstream provider hiccup"

    @pytest.mark.asyncio
    async def test_rejected_key(self, async_client_for):
        """A 401 from the gateway raises AuthenticationError."""
        errors = []

        async with async_client_for(build_gateway(WEATHER_STREAM), api_key="sk-wrong") as client:
            with pytest.raises(AuthenticationError, match="invalid api key"):
                await client.stream_chat_completion(weather_request(), {"on_error": errors.append})

        assert [e.type for e in errors] == [StreamErrorType.HTTP_ERROR]
        assert errors[0].http_status == 401


class TestEndpointsAgainstGateway:
    """Non-streaming endpoints end to end."""

    @pytest.mark.asyncio
    async def test_models_filtered_by_provider(self, async_client_for):
        """The provider filter reaches the gateway."""
        async with async_client_for(build_gateway([])) as client:
            everything = await client.list_models()
            groq = await client.list_models("groq")

        assert [m.id for m in everything.data] == ["openai/gpt-4o", "groq/llama-3.3-70b"]
        assert [m.id for m in groq.data] == ["groq/llama-3.3-70b"]
        assert groq.provider == "groq"

    def test_sync_endpoints(self, sync_client_for):
        """Tools, completion, proxy and health on the sync client."""
        client = sync_client_for(build_gateway([]))

        tools = client.list_tools()
        completion = client.create_chat_completion({"model": "gpt-4o", "messages": [Message.user("Hi")]})
        proxied = client.proxy("openai", "v1/embeddings", method="POST", json={"input": "hi"})

        assert tools.data[0].server == "filesystem"
        assert completion.content == "Paris"
        assert proxied == {"provider": "openai", "path": "v1/embeddings", "method": "POST", "body": {"input": "hi"}}
        assert client.health_check() is True

    def test_list_models_rejected_key(self, sync_client_for):
        """Authentication errors are not retried."""
        app = build_gateway([])

        with pytest.raises(AuthenticationError):
            sync_client_for(app, api_key="sk-wrong").list_models()
