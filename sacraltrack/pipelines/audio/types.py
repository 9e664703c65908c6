"""Typed containers shared across the audio ingestion pipeline.

These dataclasses live in their own module so the stage modules
(`validation`, `transcoding`, `segmentation`, `manifest`, `progress`,
`packaging`) can import them without creating circular dependencies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

NOMINAL_SEGMENT_DURATION = 10
"""Duration advertised for every segment, regardless of its real length."""


@dataclass(frozen=True)
class SourceAudio:
    """Raw upload as received from the client."""

    content: bytes
    content_type: str
    filename: str


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of inspecting a `SourceAudio` before transcoding."""

    is_valid: bool
    error: Optional[str] = None
    duration: Optional[float] = None


@dataclass(frozen=True)
class TranscodedAudio:
    """Encoded audio plus a revocable local reference for preview.

    The file behind ``local_url`` belongs to the upload session that created
    it and must be released once the preview is no longer needed.
    """

    local_url: str
    content: bytes
    mime_type: str
    filename: str
    local_path: Path = field(repr=False)

    def release(self) -> None:
        """Delete the preview file backing ``local_url``."""

        try:
            self.local_path.unlink(missing_ok=True)
            parent = self.local_path.parent
            if parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
        except OSError:
            logger.warning("Could not release transcoded preview %s", self.local_path, exc_info=True)

    @property
    def released(self) -> bool:
        return not self.local_path.exists()

    def __enter__(self) -> "TranscodedAudio":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


@dataclass(frozen=True)
class TranscodeFailure:
    """Tagged failure returned by the transcoder instead of raising."""

    error: str


@dataclass(frozen=True)
class Segment:
    """A stored chunk of a track."""

    id: str
    url: str
    index: int
    duration: int = NOMINAL_SEGMENT_DURATION


@dataclass(frozen=True)
class UploadProgressRecord:
    """Progress hint persisted per track."""

    track_id: str
    progress: float
    timestamp_ms: int


@dataclass(frozen=True)
class PackagedTrack:
    """Everything produced by a successful packaging run."""

    track_id: str
    duration: float
    audio_id: str
    audio_url: str
    manifest_id: str
    manifest_url: str
    segments: tuple[Segment, ...]

    @property
    def segment_ids(self) -> list[str]:
        return [segment.id for segment in self.segments]

    @property
    def segment_urls(self) -> list[str]:
        return [segment.url for segment in self.segments]


__all__ = [
    "NOMINAL_SEGMENT_DURATION",
    "PackagedTrack",
    "Segment",
    "SourceAudio",
    "TranscodeFailure",
    "TranscodedAudio",
    "UploadProgressRecord",
    "ValidationResult",
]
