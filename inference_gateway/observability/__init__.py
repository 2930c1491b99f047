"""
Inference Gateway SDK - Observability

Structured logging, OpenTelemetry tracing and Prometheus metrics.
"""

from .logging import (
    JSONFormatter,
    LogContext,
    StructuredLogger,
    TimedOperation,
    bind_log_context,
    get_logger,
    setup_logging,
)
from .metrics import StreamMetrics, get_metrics, setup_metrics
from .tracing import TraceContext, TracingManager, get_tracing_manager, setup_tracing

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredLogger",
    "TimedOperation",
    "bind_log_context",
    "get_logger",
    "setup_logging",
    # Metrics
    "StreamMetrics",
    "get_metrics",
    "setup_metrics",
    # Tracing
    "TraceContext",
    "TracingManager",
    "get_tracing_manager",
    "setup_tracing",
]
