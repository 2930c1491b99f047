"""
Inference Gateway SDK - Async Client

Async client for non-blocking gateway interactions.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

import httpx

from .client import CallbacksLike, RequestLike, _BaseClient, _provider_value, logger
from .models import ChatCompletionResponse, ListModelsResponse, ListToolsResponse, Provider, request_payload
from .observability.logging import TimedOperation
from .streaming.session import AsyncStreamSession, CancellationToken, StreamResult


class AsyncInferenceGatewayClient(_BaseClient):
    """
    Inference Gateway async Python client.

    Takes the same arguments as InferenceGatewayClient; `http_client`
    must be an httpx.AsyncClient. Stream callbacks may be coroutine
    functions.

    Example:
        >>> async with AsyncInferenceGatewayClient() as client:
        ...     result = await client.stream_chat_completion(
        ...         {"model": "llama3", "messages": [{"role": "user", "content": "Hi"}]},
        ...         {"on_content": lambda t: print(t, end="")},
        ...         provider="ollama",
        ...     )
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._owns_client = self.options.http_client is None
        self._client: httpx.AsyncClient = self.options.http_client or httpx.AsyncClient(
            timeout=self.options.timeout
        )

    def with_options(self, **overrides) -> "AsyncInferenceGatewayClient":
        """New client with merged options."""
        return AsyncInferenceGatewayClient(options=self.options.merge(**overrides))

    # ============================================================
    # Models & Tools API
    # ============================================================

    async def list_models(self, provider: Optional[Union[Provider, str]] = None) -> ListModelsResponse:
        """List the models the gateway serves."""
        response = await self._request_with_retry(
            "GET",
            "/models",
            params=self._provider_query(provider),
        )
        return ListModelsResponse.from_dict(response or {})

    async def list_tools(self) -> ListToolsResponse:
        """List the MCP tools exposed through the gateway."""
        response = await self._request_with_retry("GET", "/mcp/tools")
        return ListToolsResponse.from_dict(response or {})

    # ============================================================
    # Chat API
    # ============================================================

    async def create_chat_completion(
        self,
        request: RequestLike,
        provider: Optional[Union[Provider, str]] = None,
    ) -> ChatCompletionResponse:
        """Create a (non-streaming) chat completion."""
        response = await self._request_with_retry(
            "POST",
            "/chat/completions",
            params=self._provider_query(provider),
            json=request_payload(request, stream=False),
        )
        return ChatCompletionResponse.from_dict(response or {})

    async def stream_chat_completion(
        self,
        request: RequestLike,
        callbacks: CallbacksLike = None,
        provider: Optional[Union[Provider, str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> StreamResult:
        """
        Create a streaming chat completion.

        See InferenceGatewayClient.stream_chat_completion.
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
        session = AsyncStreamSession(**self._stream_session_kwargs(payload, callbacks, provider, cancel_token))
        return await session.run(lambda: self._client.send(http_request, stream=True))

    # ============================================================
    # Proxy & Health API
    # ============================================================

    async def proxy(
        self,
        provider: Union[Provider, str],
        path: str,
        method: str = "GET",
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Send a request straight to a provider's API through the gateway."""
        kwargs: Dict[str, Any] = {"params": params, "headers": headers}
        if json is not None:
            kwargs["json"] = json
        return await self._request(
            method.upper(),
            f"/proxy/{_provider_value(provider)}/{path.lstrip('/')}",
            **kwargs
        )

    async def health_check(self) -> bool:
        """True when the gateway's /health endpoint answers with 2xx. Never raises."""
        try:
            response = await self._client.get(
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

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Make an HTTP request and handle errors."""
        async with TimedOperation(f"{method} {path}", logger):
            try:
                request = self._build_request(self._client, method, path, **kwargs)
                response = await self._client.send(request)
            except httpx.HTTPError as e:
                raise self._translate_transport_error(e) from e
            return self._handle_response(response)

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> Any:
        """Make an HTTP request with retry logic."""
        return await self._retry_handler.execute_async(lambda: self._request(method, path, **kwargs))

    # ============================================================
    # Context Manager
    # ============================================================

    async def close(self):
        """Close the HTTP client if this client created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
