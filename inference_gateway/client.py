"""
Inference Gateway SDK - Synchronous Client

Main client for synchronous gateway interactions.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

import httpx

from .config import ClientOptions
from .errors import ConnectionError, InferenceGatewayError, TimeoutError
from .models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ListModelsResponse,
    ListToolsResponse,
    Provider,
    request_payload,
)
from .observability.logging import TimedOperation, get_logger
from .observability.tracing import TracingManager, get_tracing_manager
from .retry import RetryHandler
from .streaming.dispatch import StreamCallbacks
from .streaming.session import CancellationToken, StreamResult, StreamSession


__version__ = "1.0.0"

logger = get_logger(__name__)

RequestLike = Union[ChatCompletionRequest, Dict[str, Any]]
CallbacksLike = Union[StreamCallbacks, Dict[str, Any], None]


class _BaseClient:
    """Request construction shared by the sync and async clients."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        default_query: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        http_client: Optional[Any] = None,
        metrics: Optional[Any] = None,
        tracer_provider: Optional[Any] = None,
        options: Optional[ClientOptions] = None,
    ):
        overrides = dict(
            base_url=base_url,
            api_key=api_key,
            default_headers=default_headers,
            default_query=default_query,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
            metrics=metrics,
            tracer_provider=tracer_provider,
        )
        if options is None:
            self.options = ClientOptions.from_env(**overrides)
        else:
            self.options = options.merge(**overrides)

        self._retry_handler = RetryHandler(max_retries=self.options.max_retries)
        if self.options.tracer_provider is not None:
            self._tracing = TracingManager(self.options.tracer_provider)
        else:
            self._tracing = get_tracing_manager()

    @property
    def base_url(self) -> str:
        """Base URL for API requests."""
        return self.options.base_url

    def _url(self, path: str) -> str:
        return f"{self.options.base_url}/{path.lstrip('/')}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"inference-gateway-python/{__version__}",
            **self.options.default_headers,
            **(extra or {}),
        }
        if self.options.api_key:
            headers["Authorization"] = f"Bearer {self.options.api_key}"
        return headers

    def _params(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {**self.options.default_query, **(extra or {})}

    def _provider_query(self, provider: Optional[Union[Provider, str]]) -> Dict[str, str]:
        if provider is None:
            return {}
        return {"provider": _provider_value(provider)}

    def _build_request(
        self,
        http: Any,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> httpx.Request:
        return http.build_request(
            method,
            self._url(path),
            params=self._params(params),
            headers=self._headers(headers),
            timeout=self.options.timeout,
            **kwargs
        )

    def _stream_session_kwargs(
        self,
        payload: Dict[str, Any],
        callbacks: CallbacksLike,
        provider: Optional[Union[Provider, str]],
        cancel_token: Optional[CancellationToken],
    ) -> Dict[str, Any]:
        if isinstance(callbacks, dict):
            callbacks = StreamCallbacks.from_dict(callbacks)
        return dict(
            callbacks=callbacks,
            cancel_token=cancel_token,
            model=str(payload.get("model", "")),
            provider=_provider_value(provider) if provider is not None else None,
            metrics=self.options.metrics,
            tracing=self._tracing,
        )

    def _handle_response(self, response: httpx.Response) -> Any:
        """Raise the typed error for non-2xx responses, else decode the body."""
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"error": response.text} if response.text else None
            raise InferenceGatewayError.from_response(
                error_data,
                response.status_code,
                dict(response.headers),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _translate_transport_error(self, e: httpx.HTTPError) -> InferenceGatewayError:
        if isinstance(e, httpx.TimeoutException):
            return TimeoutError("Request timed out")
        if isinstance(e, httpx.ConnectError):
            return ConnectionError("Failed to connect to gateway")
        return ConnectionError(f"Request failed: {e}")


def _provider_value(provider: Union[Provider, str]) -> str:
    return provider.value if isinstance(provider, Provider) else str(provider)


class InferenceGatewayClient(_BaseClient):
    """
    Inference Gateway Python client.

    Args:
        base_url: Gateway API root. Defaults to $INFERENCE_GATEWAY_URL or
            http://localhost:8080/v1
        api_key: Bearer token. Defaults to $INFERENCE_GATEWAY_API_KEY
        default_headers: Headers added to every request
        default_query: Query parameters added to every request
        timeout: Request timeout in seconds. Defaults to 30.
        max_retries: Retries for non-streaming requests. Defaults to 2.
        http_client: An httpx.Client to use instead of creating one
        metrics: StreamMetrics collector for stream metrics
        tracer_provider: OpenTelemetry tracer provider for stream spans
        options: A complete ClientOptions; keyword arguments override it

    Example:
        >>> client = InferenceGatewayClient()
        >>> result = client.stream_chat_completion(
        ...     ChatCompletionRequest(model="gpt-4o", messages=[Message.user("Hi")]),
        ...     StreamCallbacks(on_content=lambda t: print(t, end="")),
        ...     provider=Provider.OPENAI,
        ... )
        >>> print(result.finish_reason)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._owns_client = self.options.http_client is None
        self._client: httpx.Client = self.options.http_client or httpx.Client(
            timeout=self.options.timeout
        )

    def with_options(self, **overrides) -> "InferenceGatewayClient":
        """
        New client with merged options.

        Headers and query parameters are merged; other options are replaced.
        """
        return InferenceGatewayClient(options=self.options.merge(**overrides))

    # ============================================================
    # Models & Tools API
    # ============================================================

    def list_models(self, provider: Optional[Union[Provider, str]] = None) -> ListModelsResponse:
        """
        List the models the gateway serves.

        Args:
            provider: Only list models of this provider.
        """
        response = self._request_with_retry(
            "GET",
            "/models",
            params=self._provider_query(provider),
        )
        return ListModelsResponse.from_dict(response or {})

    def list_tools(self) -> ListToolsResponse:
        """List the MCP tools exposed through the gateway."""
        response = self._request_with_retry("GET", "/mcp/tools")
        return ListToolsResponse.from_dict(response or {})

    # ============================================================
    # Chat API
    # ============================================================

    def create_chat_completion(
        self,
        request: RequestLike,
        provider: Optional[Union[Provider, str]] = None,
    ) -> ChatCompletionResponse:
        """
        Create a (non-streaming) chat completion.

        Args:
            request: ChatCompletionRequest or an equivalent dict.
            provider: Route to this provider.

        Returns:
            ChatCompletionResponse
        """
        response = self._request_with_retry(
            "POST",
            "/chat/completions",
            params=self._provider_query(provider),
            json=request_payload(request, stream=False),
        )
        return ChatCompletionResponse.from_dict(response or {})

    def stream_chat_completion(
        self,
        request: RequestLike,
        callbacks: CallbacksLike = None,
        provider: Optional[Union[Provider, str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> StreamResult:
        """
        Create a streaming chat completion.

        Callbacks fire as the stream is consumed; the call returns once the
        stream completed, was truncated, or was cancelled.

        Args:
            request: ChatCompletionRequest or an equivalent dict.
            callbacks: StreamCallbacks or a dict of handler name to callable.
            provider: Route to this provider.
            cancel_token: Token to stop the stream early.

        Returns:
            StreamResult with the accumulated content and tool calls.

        Raises:
            InferenceGatewayError: Non-2xx response (typed per status)
            ConnectionError / TimeoutError: No response from the gateway
            StreamError: Transport failure mid-stream, or an empty stream
                that ended without a terminal event
            CallbackError: A callback raised
        """
        payload = request_payload(request, stream=True)
        http_request = self._build_request(
            self._client,
            "POST",
            "/chat/completions",
            params=self._provider_query(provider),
            headers={"Accept": "text/event-stream"},
            json=payload,
        )
        session = StreamSession(**self._stream_session_kwargs(payload, callbacks, provider, cancel_token))
        return session.run(lambda: self._client.send(http_request, stream=True))

    # ============================================================
    # Proxy & Health API
    # ============================================================

    def proxy(
        self,
        provider: Union[Provider, str],
        path: str,
        method: str = "GET",
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Send a request straight to a provider's API through the gateway.

        Args:
            provider: Target provider.
            path: Provider API path, e.g. "v1/models".
            method: HTTP method.
            json: JSON body.

        Returns:
            Decoded JSON body (or text for non-JSON responses).
        """
        kwargs: Dict[str, Any] = {"params": params, "headers": headers}
        if json is not None:
            kwargs["json"] = json
        return self._request(
            method.upper(),
            f"/proxy/{_provider_value(provider)}/{path.lstrip('/')}",
            **kwargs
        )

    def health_check(self) -> bool:
        """True when the gateway's /health endpoint answers with 2xx. Never raises."""
        try:
            response = self._client.get(
                f"{self.options.root_url}/health",
                headers=self._headers(),
                timeout=self.options.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Gateway health check failed", error=str(e))
            return False
        return response.is_success

    # ============================================================
    # Private methods
    # ============================================================

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make an HTTP request and handle errors."""
        with TimedOperation(f"{method} {path}", logger):
            try:
                request = self._build_request(self._client, method, path, **kwargs)
                response = self._client.send(request)
            except httpx.HTTPError as e:
                raise self._translate_transport_error(e) from e
            return self._handle_response(response)

    def _request_with_retry(self, method: str, path: str, **kwargs) -> Any:
        """Make an HTTP request with retry logic."""
        return self._retry_handler.execute(lambda: self._request(method, path, **kwargs))

    # ============================================================
    # Context Manager
    # ============================================================

    def close(self):
        """Close the HTTP client if this client created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
