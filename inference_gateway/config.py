"""
Inference Gateway SDK - Client Configuration

Options shared by the sync and async clients.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


DEFAULT_BASE_URL = "http://localhost:8080/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 2

ENV_BASE_URL = "INFERENCE_GATEWAY_URL"
ENV_API_KEY = "INFERENCE_GATEWAY_API_KEY"
ENV_TIMEOUT = "INFERENCE_GATEWAY_TIMEOUT"


@dataclass
class ClientOptions:
    """
    Client configuration.

    Attributes:
        base_url: Gateway API root, including the `/v1` prefix
        api_key: Sent as a bearer token when set
        default_headers: Headers added to every request
        default_query: Query parameters added to every request
        timeout: Request timeout in seconds
        max_retries: Retries for non-streaming requests
        http_client: Pre-built httpx.Client / httpx.AsyncClient to use instead
            of creating one (custom transports, proxies, test doubles)
        metrics: StreamMetrics collector; the global one when None
        tracer_provider: OpenTelemetry tracer provider; the global one when None
    """
    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    default_headers: Dict[str, str] = field(default_factory=dict)
    default_query: Dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    http_client: Optional[Any] = None
    metrics: Optional[Any] = None
    tracer_provider: Optional[Any] = None

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    @classmethod
    def from_env(cls, **overrides) -> "ClientOptions":
        """
        Build options from the environment.

        Reads INFERENCE_GATEWAY_URL, INFERENCE_GATEWAY_API_KEY and
        INFERENCE_GATEWAY_TIMEOUT. Keyword arguments that are not None win
        over the environment.
        """
        values: Dict[str, Any] = {}

        base_url = os.getenv(ENV_BASE_URL)
        if base_url:
            values["base_url"] = base_url

        api_key = os.getenv(ENV_API_KEY)
        if api_key:
            values["api_key"] = api_key

        timeout = os.getenv(ENV_TIMEOUT)
        if timeout:
            try:
                values["timeout"] = float(timeout)
            except ValueError:
                raise ValueError(f"{ENV_TIMEOUT} must be a number of seconds, got {timeout!r}")

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def merge(self, **overrides) -> "ClientOptions":
        """
        New options with `overrides` applied.

        Headers and query parameters are merged key by key; every other
        field is replaced when the override is not None.
        """
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key == "default_headers":
                changes[key] = {**self.default_headers, **value}
            elif key == "default_query":
                changes[key] = {**self.default_query, **value}
            else:
                changes[key] = value
        return replace(self, **changes)

    @property
    def root_url(self) -> str:
        """Gateway root without the `/v1` API prefix."""
        if self.base_url.endswith("/v1"):
            return self.base_url[: -len("/v1")]
        return self.base_url
