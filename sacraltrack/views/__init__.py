"""Pydantic schemas used as views in the MVC architecture."""

from .audio import (
    ProgressResponse,
    ProgressUpdate,
    SegmentResponse,
    TrackResponse,
    ValidationResponse,
)
from .common import ErrorResponse

__all__ = [
    "ErrorResponse",
    "ProgressResponse",
    "ProgressUpdate",
    "SegmentResponse",
    "TrackResponse",
    "ValidationResponse",
]
