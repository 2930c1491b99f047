"""
Inference Gateway SDK - Prometheus Metrics

Client-side stream metrics with the Prometheus client library.

Metrics exposed:
- inference_gateway_streams_total: Streams by model, provider and outcome
- inference_gateway_stream_events_total: Classified stream events by type
- inference_gateway_malformed_frames_total: Frames that could not be parsed
- inference_gateway_tool_calls_total: Tool calls by status (resolved/abandoned)
- inference_gateway_time_to_first_content_seconds: Latency to the first content delta
- inference_gateway_stream_duration_seconds: Full stream duration

Usage:
    from prometheus_client import CollectorRegistry
    from inference_gateway.observability.metrics import setup_metrics

    registry = CollectorRegistry()
    metrics = setup_metrics(registry)
    client = InferenceGatewayClient(metrics=metrics)
"""

from typing import Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class StreamMetrics:
    """
    Stream metrics collector.

    One instance per registry: Prometheus refuses to register the same
    metric name twice on a registry.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.streams_total = Counter(
            "inference_gateway_streams_total",
            "Total number of streaming chat completions",
            labelnames=["model", "provider", "outcome"],
            registry=registry,
        )

        self.events_total = Counter(
            "inference_gateway_stream_events_total",
            "Total number of classified stream events",
            labelnames=["type"],
            registry=registry,
        )

        self.malformed_frames_total = Counter(
            "inference_gateway_malformed_frames_total",
            "Total number of stream frames that could not be parsed",
            registry=registry,
        )

        self.tool_calls_total = Counter(
            "inference_gateway_tool_calls_total",
            "Total number of tool calls reconstructed from streams",
            labelnames=["status"],  # status = resolved/abandoned
            registry=registry,
        )

        self.time_to_first_content = Histogram(
            "inference_gateway_time_to_first_content_seconds",
            "Time from request start to the first content delta",
            labelnames=["model", "provider"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")),
            registry=registry,
        )

        # Streams typically range from 1s to several minutes
        self.stream_duration = Histogram(
            "inference_gateway_stream_duration_seconds",
            "Streaming chat completion duration in seconds",
            labelnames=["model", "provider", "outcome"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, 300.0, float("inf")),
            registry=registry,
        )

    def record_stream(
        self,
        model: str,
        provider: str,
        outcome: str,
        duration_seconds: float,
    ):
        """Record a finished stream (completed, truncated, cancelled or failed)."""
        self.streams_total.labels(model=model, provider=provider, outcome=outcome).inc()
        self.stream_duration.labels(
            model=model,
            provider=provider,
            outcome=outcome,
        ).observe(duration_seconds)

    def record_event(self, event_type: str):
        self.events_total.labels(type=event_type).inc()

    def record_malformed_frame(self):
        self.malformed_frames_total.inc()

    def record_tool_call(self, complete: bool):
        self.tool_calls_total.labels(status="resolved" if complete else "abandoned").inc()

    def record_time_to_first_content(self, model: str, provider: str, seconds: float):
        self.time_to_first_content.labels(model=model, provider=provider).observe(seconds)


# One collector per registry
_collectors: Dict[int, StreamMetrics] = {}


def setup_metrics(registry: Optional[CollectorRegistry] = None) -> StreamMetrics:
    """
    Get the collector for a registry, creating it on first use.

    Safe to call multiple times - returns the existing instance.
    """
    registry = registry if registry is not None else REGISTRY
    collector = _collectors.get(id(registry))
    if collector is None or collector.registry is not registry:
        collector = StreamMetrics(registry)
        _collectors[id(registry)] = collector
    return collector


def get_metrics() -> StreamMetrics:
    """Get the collector registered on the global registry."""
    return setup_metrics(REGISTRY)
