"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    FEEDBACK_CACHE_LOOKUPS,
    PIPELINE_DURATION,
    PIPELINE_QUEUE_DEPTH,
    PIPELINE_RUNS,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    observe_pipeline_run,
    observe_request,
    record_cache_lookup,
)

__all__ = [
    "ERROR_COUNTER",
    "FEEDBACK_CACHE_LOOKUPS",
    "PIPELINE_DURATION",
    "PIPELINE_QUEUE_DEPTH",
    "PIPELINE_RUNS",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "observe_pipeline_run",
    "observe_request",
    "record_cache_lookup",
]
