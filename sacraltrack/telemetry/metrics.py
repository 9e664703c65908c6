"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

VALIDATION_COUNTER = Counter(
    "audio_validations_total",
    "Uploaded audio files inspected by the validator",
    ("outcome",),
)

TRANSCODE_COUNTER = Counter(
    "audio_transcodes_total",
    "WAV to MP3 conversions attempted",
    ("outcome",),
)

SEGMENT_UPLOAD_COUNTER = Counter(
    "audio_segments_uploaded_total",
    "Audio segments sent to object storage",
    ("outcome",),
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
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=str(status_code),
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


def record_validation(outcome: str) -> None:
    """Count a validator verdict (``valid``, ``wrong_type``, ``decode_error``, ``too_long``)."""

    VALIDATION_COUNTER.labels(outcome=outcome).inc()


def record_transcode(success: bool) -> None:
    TRANSCODE_COUNTER.labels(outcome="success" if success else "failure").inc()


def record_segment_upload(success: bool) -> None:
    SEGMENT_UPLOAD_COUNTER.labels(outcome="success" if success else "failure").inc()
