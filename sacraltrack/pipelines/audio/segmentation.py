"""Chunking and segment upload stage of the audio pipeline."""

from __future__ import annotations

import logging
import math
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable

from fastapi.concurrency import run_in_threadpool

from sacraltrack.services.storage import ObjectStorage, StorageError, unique_id
from sacraltrack.telemetry import record_segment_upload

from .transcoding import OUTPUT_MIME_TYPE
from .types import NOMINAL_SEGMENT_DURATION, Segment

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when storage settings needed for an upload are absent."""


class SegmentUploadError(RuntimeError):
    """Raised when a single segment cannot be stored."""

    def __init__(self, index: int, message: str) -> None:
        super().__init__(message)
        self.index = index


class SegmentationError(RuntimeError):
    """Raised when ffmpeg cannot cut the encoded track into chunks."""


def segment_filename(index: int) -> str:
    return f"segment-{index}.mp3"


def segment_count(duration: float, segment_seconds: int = NOMINAL_SEGMENT_DURATION) -> int:
    """Number of chunks needed to cover ``duration`` (at least one)."""

    return max(1, math.ceil(duration / segment_seconds))


def build_segment_command(
    audio_path: str | Path,
    output_pattern: str | Path,
    *,
    segment_seconds: int = NOMINAL_SEGMENT_DURATION,
    ffmpeg_binary: str = "ffmpeg",
) -> list[str]:
    """One segment-muxer pass that copies the MP3 frames without re-encoding."""

    return [
        ffmpeg_binary,
        "-y",
        "-i",
        str(audio_path),
        "-map",
        "0:a",
        "-f",
        "segment",
        "-segment_time",
        str(segment_seconds),
        "-c",
        "copy",
        "-segment_format",
        "mp3",
        str(output_pattern),
    ]


def _segment_index(path: Path) -> int:
    return int(path.stem.rsplit("_", 1)[-1])


def split_audio(
    audio_path: str | Path,
    duration: float,
    *,
    segment_seconds: int = NOMINAL_SEGMENT_DURATION,
    ffmpeg_binary: str = "ffmpeg",
) -> list[bytes]:
    """Cut an encoded track into consecutive MP3 chunks, in playback order."""

    with tempfile.TemporaryDirectory(prefix="segments-") as tmp_dir:
        out_dir = Path(tmp_dir)
        command = build_segment_command(
            audio_path,
            out_dir / "segment_%03d.mp3",
            segment_seconds=segment_seconds,
            ffmpeg_binary=ffmpeg_binary,
        )
        try:
            subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
            paths = sorted(out_dir.glob("segment_*.mp3"), key=_segment_index)
            chunks = [path.read_bytes() for path in paths]
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            raise SegmentationError(f"ffmpeg failed to segment {audio_path}: {stderr.strip()[-300:]}") from exc
        except OSError as exc:
            raise SegmentationError(f"Could not segment {audio_path}: {exc}") from exc

    if not chunks:
        raise SegmentationError(f"ffmpeg produced no segments for {audio_path}")
    for index, chunk in enumerate(chunks):
        if not chunk:
            raise SegmentationError(f"Segment {index} is empty")

    expected = segment_count(duration, segment_seconds)
    if len(chunks) != expected:
        # Frame-boundary cuts can add or drop a trailing sliver.
        logger.debug("Expected %d segments for %.2fs, ffmpeg wrote %d", expected, duration, len(chunks))
    logger.info("Split %s into %d segments of %ds", audio_path, len(chunks), segment_seconds)
    return chunks


async def split_audio_async(audio_path: str | Path, duration: float, **kwargs) -> list[bytes]:
    return await run_in_threadpool(split_audio, audio_path, duration, **kwargs)


class SegmentUploader:
    """Persist chunks to object storage and describe them as `Segment` values."""

    def __init__(
        self,
        storage: ObjectStorage,
        *,
        bucket_id: str | None,
        endpoint: str | None,
    ) -> None:
        self._storage = storage
        self._bucket_id = bucket_id
        self._endpoint = endpoint

    def require_configuration(self) -> str:
        missing = [
            name
            for name, value in (("bucket_id", self._bucket_id), ("endpoint", self._endpoint))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing required Appwrite configuration: {', '.join(missing)}")
        return self._bucket_id  # type: ignore[return-value]

    async def upload_segment(self, blob: bytes, index: int) -> Segment:
        """Upload one chunk; every failure is raised, nothing is retried."""

        bucket_id = self.require_configuration()
        filename = segment_filename(index)
        logger.debug("Uploading %s (%d bytes) to bucket %s", filename, len(blob), bucket_id)

        try:
            file_id = await self._storage.create_file(
                bucket_id,
                unique_id(),
                filename,
                blob,
                OUTPUT_MIME_TYPE,
            )
        except StorageError as exc:
            logger.error("Error uploading segment %d: %s", index, exc)
            record_segment_upload(False)
            raise SegmentUploadError(index, f"Failed to upload segment {index}: {exc}") from exc

        if not file_id:
            logger.error("Storage returned no id for segment %d", index)
            record_segment_upload(False)
            raise SegmentUploadError(index, f"Failed to upload segment {index} to storage")

        record_segment_upload(True)
        segment = Segment(
            id=file_id,
            url=self._storage.file_url(bucket_id, file_id),
            index=index,
            duration=NOMINAL_SEGMENT_DURATION,
        )
        logger.info("Uploaded segment %d as %s", index, file_id)
        return segment

    async def upload_segments(self, blobs: Iterable[bytes]) -> list[Segment]:
        """Upload chunks one after another, keeping submission order."""

        segments: list[Segment] = []
        for index, blob in enumerate(blobs):
            segments.append(await self.upload_segment(blob, index))
        return segments


__all__ = [
    "ConfigurationError",
    "SegmentUploadError",
    "SegmentUploader",
    "SegmentationError",
    "build_segment_command",
    "segment_count",
    "segment_filename",
    "split_audio",
    "split_audio_async",
]
