"""
Inference Gateway SDK - OpenTelemetry Tracing

Client-side spans for gateway calls.

Features:
- One CLIENT span per streaming call (`chat.stream`) with model, provider,
  outcome and token usage attributes
- Exceptions recorded on the span
- No-op unless the application installs a tracer provider

Usage:
    from inference_gateway.observability.tracing import setup_tracing

    # Optional, at application startup
    setup_tracing(service_name="my-app", console_export=True)
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor, SpanProcessor
from opentelemetry.trace import Span, SpanKind, Status, StatusCode


INSTRUMENTATION_NAME = "inference_gateway"


@dataclass
class TraceContext:
    """Identifiers of a span, for log correlation."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> Optional["TraceContext"]:
        """Create TraceContext from a span; None for non-recording spans."""
        ctx = span.get_span_context()
        if not ctx.is_valid:
            return None
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """Generate W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


class TracingManager:
    """
    Creates SDK spans.

    Uses the global tracer provider unless one is passed in, so an
    application that never configures OpenTelemetry gets no-op spans.
    """

    def __init__(self, tracer_provider: Optional[trace.TracerProvider] = None):
        self.tracer = trace.get_tracer(INSTRUMENTATION_NAME, tracer_provider=tracer_provider)

    def start_client_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """
        Start a client span for an outgoing gateway call.

        Returns:
            Context manager that yields the span
        """
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.CLIENT,
            attributes={k: v for k, v in (attributes or {}).items() if v is not None},
            record_exception=False,
            set_status_on_exception=False,
        )

    @contextmanager
    def stream_span(
        self,
        model: str,
        provider: Optional[str] = None,
        stream_id: Optional[str] = None,
    ) -> Iterator[Span]:
        """
        Span covering one streaming chat completion.

        Usage:
            with tracing.stream_span("gpt-4o", "openai", state.stream_id) as span:
                ...
                tracing.record_outcome(span, "completed")
        """
        with self.start_client_span(
            "chat.stream",
            attributes={
                "gen_ai.operation.name": "chat",
                "gen_ai.request.model": model,
                "gen_ai.system": provider,
                "inference_gateway.stream_id": stream_id,
            },
        ) as span:
            yield span

    def record_usage(self, span: Span, usage: Any):
        """Add token usage attributes."""
        if usage is None:
            return
        span.set_attribute("gen_ai.usage.input_tokens", usage.prompt_tokens)
        span.set_attribute("gen_ai.usage.output_tokens", usage.completion_tokens)
        span.set_attribute("gen_ai.usage.total_tokens", usage.total_tokens)

    def record_outcome(self, span: Span, outcome: str, finish_reason: Optional[str] = None):
        span.set_attribute("inference_gateway.outcome", outcome)
        if finish_reason:
            span.set_attribute("gen_ai.response.finish_reasons", [finish_reason])
        if outcome != "failed":
            span.set_status(Status(StatusCode.OK))

    def record_exception(self, span: Span, exception: BaseException):
        """Record an exception on the span and mark it failed."""
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def setup_tracing(
    service_name: str = "inference-gateway-client",
    console_export: bool = False,
    span_processor: Optional[SpanProcessor] = None,
    set_global: bool = True,
) -> TracerProvider:
    """
    Install an OpenTelemetry tracer provider.

    Optional convenience for applications without their own setup.

    Args:
        service_name: Name of the service
        console_export: Export spans to stdout (for debugging)
        span_processor: Extra processor, e.g. wrapping an OTLP exporter
        set_global: Register as the global tracer provider

    Returns:
        The tracer provider
    """
    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))

    if span_processor is not None:
        provider.add_span_processor(span_processor)
    if console_export:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    if set_global:
        trace.set_tracer_provider(provider)

    return provider


_tracing_instance: Optional[TracingManager] = None


def get_tracing_manager() -> TracingManager:
    """Get the shared manager bound to the global tracer provider."""
    global _tracing_instance
    if _tracing_instance is None:
        _tracing_instance = TracingManager()
    return _tracing_instance
