"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEGMENT_UPLOAD_COUNTER,
    TRANSCODE_COUNTER,
    VALIDATION_COUNTER,
    observe_request,
    record_segment_upload,
    record_transcode,
    record_validation,
)

__all__ = [
    "ERROR_COUNTER",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEGMENT_UPLOAD_COUNTER",
    "TRANSCODE_COUNTER",
    "VALIDATION_COUNTER",
    "observe_request",
    "record_segment_upload",
    "record_transcode",
    "record_validation",
]
