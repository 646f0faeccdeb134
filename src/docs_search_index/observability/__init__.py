"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from docs_search_index.observability.context import get_trace_context, set_trace_context, trace_context
from docs_search_index.observability.logging import JsonFormatter, configure_logging
from docs_search_index.observability.metrics import (
    BUILD_COUNT,
    BUILD_LATENCY,
    INDEX_DOC_COUNT,
    RECORDS_REJECTED,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    set_metrics_enabled,
    track_latency,
)
from docs_search_index.observability.tracing import create_span, get_tracer, init_tracing, reset_tracer


__all__ = [
    "BUILD_COUNT",
    "BUILD_LATENCY",
    "INDEX_DOC_COUNT",
    "RECORDS_REJECTED",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "reset_tracer",
    "set_metrics_enabled",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
