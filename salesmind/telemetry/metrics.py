"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

PIPELINE_RUNS = Counter(
    "salesmind_pipeline_runs_total",
    "Recording processing runs by final status",
    ("outcome",),
)

PIPELINE_DURATION = Histogram(
    "salesmind_pipeline_duration_seconds",
    "Wall time of a recording processing run",
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0),
)

PIPELINE_QUEUE_DEPTH = Gauge(
    "salesmind_pipeline_queue_depth",
    "Recordings waiting for a processing worker",
)

FEEDBACK_CACHE_LOOKUPS = Counter(
    "salesmind_feedback_cache_lookups_total",
    "Feedback cache lookups by result",
    ("result",),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def observe_pipeline_run(outcome: str, duration_seconds: float) -> None:
    """Record the final status and duration of one processing run."""

    PIPELINE_RUNS.labels(outcome=outcome).inc()
    PIPELINE_DURATION.observe(max(duration_seconds, 0))


def record_cache_lookup(hit: bool) -> None:
    FEEDBACK_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()
