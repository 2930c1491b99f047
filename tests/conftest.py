"""
Inference Gateway SDK - Pytest Configuration

Configures:
- Clean client environment for every test
- Isolated Prometheus registries and in-memory OpenTelemetry exporters
- Client factories bound to scripted gateways
"""

from typing import Callable

import httpx
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry

from inference_gateway import AsyncInferenceGatewayClient, InferenceGatewayClient
from inference_gateway.observability.metrics import setup_metrics

from helpers import BASE_URL, CallbackRecorder


# ============================================================
# Environment Configuration
# ============================================================

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's environment out of client configuration."""
    for name in ("INFERENCE_GATEWAY_URL", "INFERENCE_GATEWAY_API_KEY", "INFERENCE_GATEWAY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


# ============================================================
# Observability
# ============================================================

@pytest.fixture
def registry() -> CollectorRegistry:
    """Fresh Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return setup_metrics(registry)


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter) -> TracerProvider:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


# ============================================================
# Clients
# ============================================================

@pytest.fixture
def make_client(metrics, tracer_provider):
    """Factory for a sync client talking to a scripted gateway."""
    def factory(handler: Callable, **kwargs) -> InferenceGatewayClient:
        kwargs.setdefault("base_url", BASE_URL)
        kwargs.setdefault("metrics", metrics)
        kwargs.setdefault("tracer_provider", tracer_provider)
        return InferenceGatewayClient(
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            **kwargs
        )
    return factory


@pytest.fixture
def make_async_client(metrics, tracer_provider):
    """Factory for an async client talking to a scripted gateway."""
    def factory(handler: Callable, **kwargs) -> AsyncInferenceGatewayClient:
        kwargs.setdefault("base_url", BASE_URL)
        kwargs.setdefault("metrics", metrics)
        kwargs.setdefault("tracer_provider", tracer_provider)
        return AsyncInferenceGatewayClient(
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            **kwargs
        )
    return factory
