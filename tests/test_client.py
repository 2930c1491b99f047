"""
Tests for the sync and async clients, their configuration and retries.

Tests:
- Models, tools, chat completion, proxy and health endpoints
- Headers, query parameters and environment configuration
- with_options() merging
- Retry of non-streaming requests
"""

import json

import httpx
import pytest

from inference_gateway import (
    AsyncInferenceGatewayClient,
    ClientOptions,
    ConnectionError,
    InferenceGatewayClient,
    InvalidRequestError,
    ProviderError,
    RateLimitError,
    TimeoutError,
)
from inference_gateway.models import ChatCompletionRequest, Message, Provider, Tool
from inference_gateway.retry import RetryHandler, calculate_backoff, should_retry

from helpers import BASE_URL


MODELS_BODY = {
    "object": "list",
    "provider": "openai",
    "data": [
        {"id": "openai/gpt-4o", "object": "model", "created": 1700000000, "owned_by": "openai", "served_by": "openai"},
    ],
}

COMPLETION_BODY = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4o",
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"id": "c1", "type": "function", "function": {"name": "get_weather", "arguments": "{}"}},
                ],
            },
            "finish_reason": "tool_calls",
        }
    ],
    "usage": {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12},
}


class Recorder:
    """MockTransport handler that answers from a queue of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def no_backoff(mocker):
    """Retries without waiting."""
    return mocker.patch("inference_gateway.retry.calculate_backoff", return_value=0.0)


# ============================================================
# Endpoints
# ============================================================

class TestEndpoints:
    """Tests for the non-streaming API surface."""

    def test_list_models(self, make_client):
        """GET /models with the provider filter."""
        gateway = Recorder(httpx.Response(200, json=MODELS_BODY))

        models = make_client(gateway).list_models(Provider.OPENAI)

        request = gateway.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/v1/models"
        assert request.url.params["provider"] == "openai"
        assert models.provider == "openai"
        assert models.data[0].id == "openai/gpt-4o"
        assert models.data[0].served_by == "openai"

    def test_list_models_without_provider(self, make_client):
        """Without a provider no query parameter is sent."""
        gateway = Recorder(httpx.Response(200, json={"object": "list", "data": []}))

        models = make_client(gateway).list_models()

        assert "provider" not in gateway.requests[0].url.params
        assert models.data == []

    def test_list_tools(self, make_client):
        """GET /mcp/tools."""
        gateway = Recorder(httpx.Response(200, json={
            "object": "list",
            "data": [{"name": "read_file", "description": "Read a file", "server": "fs", "input_schema": {"type": "object"}}],
        }))

        tools = make_client(gateway).list_tools()

        assert gateway.requests[0].url.path == "/v1/mcp/tools"
        assert tools.data[0].name == "read_file"
        assert tools.data[0].server == "fs"

    def test_create_chat_completion(self, make_client):
        """POST /chat/completions with stream disabled."""
        gateway = Recorder(httpx.Response(200, json=COMPLETION_BODY))
        request = ChatCompletionRequest(
            model="gpt-4o",
            messages=[Message.system("Be brief."), Message.user("Weather?")],
            tools=[Tool.create("get_weather", "Current weather")],
            max_tokens=50,
        )

        response = make_client(gateway).create_chat_completion(request, provider="openai")

        body = json.loads(gateway.requests[0].content)
        assert body["stream"] is False
        assert body["max_tokens"] == 50
        assert body["tools"][0]["function"]["name"] == "get_weather"
        assert "stream_options" not in body
        assert gateway.requests[0].url.params["provider"] == "openai"
        assert response.tool_calls[0].function.name == "get_weather"
        assert response.usage.total_tokens == 12
        assert response.choices[0].finish_reason == "tool_calls"

    def test_dict_request(self, make_client):
        """Plain dict requests are accepted."""
        gateway = Recorder(httpx.Response(200, json=COMPLETION_BODY))

        make_client(gateway).create_chat_completion({"model": "gpt-4o", "messages": [Message.user("Hi")]})

        body = json.loads(gateway.requests[0].content)
        assert body["messages"] == [{"role": "user", "content": "Hi"}]
        assert body["stream"] is False

    def test_proxy(self, make_client):
        """Proxy requests go to /proxy/{provider}/{path}."""
        gateway = Recorder(httpx.Response(200, json={"data": [{"embedding": [0.1]}]}))

        result = make_client(gateway).proxy(
            Provider.OPENAI,
            "/v1/embeddings",
            method="post",
            json={"input": "hello"},
        )

        request = gateway.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/proxy/openai/v1/embeddings"
        assert json.loads(request.content) == {"input": "hello"}
        assert result == {"data": [{"embedding": [0.1]}]}

    def test_proxy_text_response(self, make_client):
        """Non-JSON proxy responses come back as text."""
        gateway = Recorder(httpx.Response(200, text="pong"))

        assert make_client(gateway).proxy("ollama", "api/ping") == "pong"

    def test_error_response(self, make_client):
        """Non-2xx responses raise the typed error."""
        gateway = Recorder(httpx.Response(400, json={"error": "unknown model"}))

        with pytest.raises(InvalidRequestError, match="unknown model"):
            make_client(gateway).list_models()

    def test_plain_text_error_response(self, make_client):
        """Error bodies that aren't JSON still become the message."""
        gateway = Recorder(httpx.Response(400, text="bad request"))

        with pytest.raises(InvalidRequestError, match="bad request"):
            make_client(gateway).list_models()


class TestHealthCheck:
    """Tests for health_check()."""

    def test_healthy(self, make_client):
        """A 2xx from /health is healthy; the API prefix is dropped."""
        gateway = Recorder(httpx.Response(200))

        assert make_client(gateway).health_check() is True
        assert str(gateway.requests[0].url) == "http://gateway.test/health"

    def test_unhealthy_status(self, make_client):
        """A non-2xx is unhealthy."""
        assert make_client(Recorder(httpx.Response(503))).health_check() is False

    def test_unreachable(self, make_client):
        """Transport failures report unhealthy instead of raising."""
        gateway = Recorder(httpx.ConnectError("refused"))

        assert make_client(gateway).health_check() is False


# ============================================================
# Configuration
# ============================================================

class TestConfiguration:
    """Tests for headers, options and environment."""

    def test_bearer_only_with_api_key(self, make_client):
        """Authorization is sent only when an API key is configured."""
        without = Recorder(httpx.Response(200, json=MODELS_BODY))
        with_key = Recorder(httpx.Response(200, json=MODELS_BODY))

        make_client(without).list_models()
        make_client(with_key, api_key="sk-test").list_models()

        assert "authorization" not in without.requests[0].headers
        assert with_key.requests[0].headers["authorization"] == "Bearer sk-test"

    def test_default_headers_and_query(self, make_client):
        """Defaults are added to every request."""
        gateway = Recorder(httpx.Response(200, json=MODELS_BODY))
        client = make_client(gateway, default_headers={"X-Team": "search"}, default_query={"tenant": "acme"})

        client.list_models(Provider.GROQ)

        request = gateway.requests[0]
        assert request.headers["x-team"] == "search"
        assert request.headers["user-agent"].startswith("inference-gateway-python/")
        assert request.url.params["tenant"] == "acme"
        assert request.url.params["provider"] == "groq"

    def test_with_options_merges(self, make_client):
        """with_options merges headers and keeps everything else."""
        gateway = Recorder(httpx.Response(200, json=MODELS_BODY))
        base = make_client(gateway, api_key="sk-test", default_headers={"X-A": "1"})

        derived = base.with_options(default_headers={"X-B": "2"}, timeout=5.0)
        derived.list_models()

        request = gateway.requests[0]
        assert request.headers["x-a"] == "1"
        assert request.headers["x-b"] == "2"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert derived.options.timeout == 5.0
        assert base.options.timeout == 30.0
        assert base.options.default_headers == {"X-A": "1"}

    def test_from_env(self, monkeypatch):
        """Environment variables configure the client."""
        monkeypatch.setenv("INFERENCE_GATEWAY_URL", "http://gw.internal:9000/v1/")
        monkeypatch.setenv("INFERENCE_GATEWAY_API_KEY", "sk-env")
        monkeypatch.setenv("INFERENCE_GATEWAY_TIMEOUT", "12.5")

        client = InferenceGatewayClient()

        assert client.base_url == "http://gw.internal:9000/v1"
        assert client.options.api_key == "sk-env"
        assert client.options.timeout == 12.5
        client.close()

    def test_arguments_override_env(self, monkeypatch):
        """Explicit arguments win over the environment."""
        monkeypatch.setenv("INFERENCE_GATEWAY_URL", "http://gw.internal:9000/v1")

        client = InferenceGatewayClient(base_url="http://other:8080/v1")

        assert client.base_url == "http://other:8080/v1"
        client.close()

    def test_invalid_env_timeout(self, monkeypatch):
        """A non-numeric timeout is rejected."""
        monkeypatch.setenv("INFERENCE_GATEWAY_TIMEOUT", "fast")

        with pytest.raises(ValueError, match="INFERENCE_GATEWAY_TIMEOUT"):
            ClientOptions.from_env()

    def test_option_validation(self):
        """Non-positive timeouts and negative retries are rejected."""
        with pytest.raises(ValueError):
            ClientOptions(timeout=0)
        with pytest.raises(ValueError):
            ClientOptions(max_retries=-1)

    def test_defaults(self):
        """Defaults point at a local gateway."""
        options = ClientOptions()

        assert options.base_url == "http://localhost:8080/v1"
        assert options.root_url == "http://localhost:8080"
        assert options.timeout == 30.0
        assert options.max_retries == 2

    def test_owned_client_closed(self):
        """The client closes the httpx.Client it created."""
        with InferenceGatewayClient() as client:
            http = client._client

        assert http.is_closed

    def test_injected_client_left_open(self, make_client):
        """An injected httpx.Client belongs to the caller."""
        client = make_client(Recorder(httpx.Response(200)))

        client.close()

        assert not client._client.is_closed


# ============================================================
# Retries
# ============================================================

class TestRetries:
    """Tests for retries of non-streaming requests."""

    def test_retry_then_success(self, make_client, no_backoff):
        """Retryable failures are retried until success."""
        gateway = Recorder(
            httpx.Response(503, json={"error": "busy"}),
            httpx.Response(502, json={"error": "bad gateway"}),
            httpx.Response(200, json=MODELS_BODY),
        )

        models = make_client(gateway).list_models()

        assert len(gateway.requests) == 3
        assert models.data[0].id == "openai/gpt-4o"
        assert no_backoff.call_count == 2

    def test_retries_exhausted(self, make_client, no_backoff):
        """After max_retries the last error is raised."""
        gateway = Recorder(httpx.Response(500, json={"error": "down"}))

        with pytest.raises(ProviderError, match="down"):
            make_client(gateway, max_retries=1).list_models()

        assert len(gateway.requests) == 2

    def test_no_retry_for_client_errors(self, make_client, no_backoff):
        """4xx errors other than 429 are not retried."""
        gateway = Recorder(httpx.Response(422, json={"error": "invalid"}))

        with pytest.raises(InvalidRequestError):
            make_client(gateway).create_chat_completion({"model": "m", "messages": []})

        assert len(gateway.requests) == 1

    def test_transport_errors_retried(self, make_client, no_backoff):
        """Connection failures are retried and then raised as ConnectionError."""
        gateway = Recorder(httpx.ConnectError("refused"))

        with pytest.raises(ConnectionError):
            make_client(gateway).list_models()

        assert len(gateway.requests) == 3

    def test_timeout(self, make_client):
        """Timeouts surface as TimeoutError."""
        gateway = Recorder(httpx.ReadTimeout("slow"))

        with pytest.raises(TimeoutError):
            make_client(gateway, max_retries=0).list_models()

    def test_proxy_not_retried(self, make_client, no_backoff):
        """Proxy calls may not be idempotent and are sent once."""
        gateway = Recorder(httpx.Response(503, json={"error": "busy"}))

        with pytest.raises(ProviderError):
            make_client(gateway).proxy("openai", "v1/files", method="POST", json={})

        assert len(gateway.requests) == 1

    def test_rate_limit_delay_capped(self):
        """Retry-After is honoured up to the maximum delay."""
        sleeps = []
        attempts = []

        def call():
            attempts.append(1)
            if len(attempts) == 1:
                raise RateLimitError(retry_after=30)
            return "ok"

        handler = RetryHandler(max_retries=2, max_delay=8.0, sleep=sleeps.append)

        assert handler.execute(call) == "ok"
        assert sleeps == [8.0]

    def test_on_retry_hook(self, no_backoff):
        """on_retry sees the attempt, error and delay."""
        seen = []
        handler = RetryHandler(max_retries=1, on_retry=lambda *args: seen.append(args), sleep=lambda s: None)
        error = ConnectionError()

        def call():
            raise error

        with pytest.raises(ConnectionError):
            handler.execute(call)

        assert seen == [(0, error, 0.0)]

    def test_foreign_exceptions_not_retried(self):
        """Exceptions outside the SDK hierarchy propagate immediately."""
        calls = []

        def call():
            calls.append(1)
            raise KeyError("x")

        with pytest.raises(KeyError):
            RetryHandler(sleep=lambda s: None).execute(call)

        assert len(calls) == 1


class TestBackoff:
    """Tests for backoff calculation."""

    def test_exponential_without_jitter(self):
        """Delays double up to the cap."""
        delays = [calculate_backoff(a, jitter=False) for a in range(6)]

        assert delays == [0.5, 1.0, 2.0, 4.0, 8.0, 8.0]

    def test_jitter_bounds(self):
        """Jitter stays within 25% of the base delay."""
        for _ in range(50):
            assert 0.75 <= calculate_backoff(1) <= 1.25

    def test_should_retry_statuses(self):
        """Retryable statuses are retried even for non-retryable error types."""
        assert should_retry(InvalidRequestError("x", status_code=429))
        assert not should_retry(InvalidRequestError("x", status_code=400))
        assert not should_retry(RuntimeError("x"))


# ============================================================
# Async client
# ============================================================

class TestAsyncClient:
    """Tests for AsyncInferenceGatewayClient."""

    @pytest.mark.asyncio
    async def test_list_models(self, make_async_client):
        """GET /models works on the async client."""
        gateway = Recorder(httpx.Response(200, json=MODELS_BODY))

        models = await make_async_client(gateway).list_models("openai")

        assert gateway.requests[0].url.params["provider"] == "openai"
        assert models.data[0].id == "openai/gpt-4o"

    @pytest.mark.asyncio
    async def test_create_chat_completion(self, make_async_client):
        """POST /chat/completions works on the async client."""
        gateway = Recorder(httpx.Response(200, json=COMPLETION_BODY))

        response = await make_async_client(gateway).create_chat_completion(
            {"model": "gpt-4o", "messages": [{"role": "user", "content": "Hi"}]}
        )

        assert response.id == "chatcmpl-1"
        assert response.tool_calls[0].id == "c1"

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_async_client, no_backoff):
        """Async requests are retried too."""
        gateway = Recorder(
            httpx.Response(503, json={"error": "busy"}),
            httpx.Response(200, json=MODELS_BODY),
        )

        await make_async_client(gateway).list_models()

        assert len(gateway.requests) == 2

    @pytest.mark.asyncio
    async def test_health_check(self, make_async_client):
        """health_check never raises on the async client either."""
        assert await make_async_client(Recorder(httpx.Response(204))).health_check() is True
        assert await make_async_client(Recorder(httpx.ConnectError("refused"))).health_check() is False

    @pytest.mark.asyncio
    async def test_list_tools_and_proxy(self, make_async_client):
        """MCP tools and proxy on the async client."""
        gateway = Recorder(
            httpx.Response(200, json={"object": "list", "data": []}),
            httpx.Response(200, json={"ok": True}),
        )
        client = make_async_client(gateway)

        tools = await client.list_tools()
        proxied = await client.proxy("anthropic", "v1/messages", method="POST", json={"x": 1})

        assert tools.data == []
        assert proxied == {"ok": True}
        assert gateway.requests[1].url.path == "/v1/proxy/anthropic/v1/messages"

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """The async client closes the AsyncClient it created."""
        async with AsyncInferenceGatewayClient(base_url=BASE_URL) as client:
            http = client._client

        assert http.is_closed
