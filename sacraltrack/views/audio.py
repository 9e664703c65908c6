"""Schemas for the audio ingestion endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResponse(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    duration: Optional[float] = None


class SegmentResponse(BaseModel):
    segment_id: str
    file_url: str
    duration: int = 10


class TrackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    artist: str
    genre: Optional[str] = None
    duration: float
    audio_url: str
    manifest_url: str
    segment_ids: list[str]
    created_at: Optional[datetime] = None


class ProgressUpdate(BaseModel):
    progress: float = Field(ge=0, le=100)


class ProgressResponse(BaseModel):
    track_id: str
    progress: float
