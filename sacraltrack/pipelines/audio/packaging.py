"""End-to-end packaging of an uploaded WAV into a streamable track.

Stages run strictly in order and stop at the first failure. Segments that
were stored before a later failure stay in the bucket; nothing is rolled
back.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from sacraltrack.services.storage import ObjectStorage, StorageError, unique_id

from .manifest import create_m3u8_file
from .progress import ProgressTracker
from .segmentation import SegmentUploader, split_audio_async
from .tagging import TrackMetadata, tag_transcoded
from .transcoding import Transcoder
from .types import (
    NOMINAL_SEGMENT_DURATION,
    PackagedTrack,
    SourceAudio,
    TranscodeFailure,
    ValidationResult,
)
from .validation import MAX_DURATION_SECONDS, validate_upload

logger = logging.getLogger(__name__)

Splitter = Callable[..., Awaitable[list[bytes]]]

# Progress milestones reported to the tracker.
PROGRESS_VALIDATED = 5
PROGRESS_TRANSCODED = 25
PROGRESS_SPLIT = 50
PROGRESS_SEGMENTS_DONE = 90
PROGRESS_COMPLETE = 100


class PipelineError(RuntimeError):
    """Base class for stage failures reported by `TrackPackager`."""


class ValidationFailed(PipelineError):
    def __init__(self, result: ValidationResult) -> None:
        super().__init__(result.error or "Invalid audio file")
        self.result = result


class TranscodeFailed(PipelineError):
    def __init__(self, failure: TranscodeFailure) -> None:
        super().__init__(failure.error)
        self.failure = failure


class TrackPackager:
    """Validate, transcode, segment, upload and index one track."""

    def __init__(
        self,
        *,
        transcoder: Transcoder,
        uploader: SegmentUploader,
        storage: ObjectStorage,
        progress: ProgressTracker,
        splitter: Splitter = split_audio_async,
        max_duration: float = MAX_DURATION_SECONDS,
        segment_seconds: int = NOMINAL_SEGMENT_DURATION,
        ffmpeg_binary: str = "ffmpeg",
    ) -> None:
        self._transcoder = transcoder
        self._uploader = uploader
        self._storage = storage
        self._progress = progress
        self._split = splitter
        self._max_duration = max_duration
        self._segment_seconds = segment_seconds
        self._ffmpeg = ffmpeg_binary

    async def package(
        self,
        track_id: str,
        source: SourceAudio,
        metadata: TrackMetadata | None = None,
    ) -> PackagedTrack:
        """Run every stage for ``source``; ``metadata`` is written as ID3 tags when given."""

        validation = await validate_upload(source, max_duration=self._max_duration)
        if not validation.is_valid:
            raise ValidationFailed(validation)
        duration = validation.duration or 0.0
        bucket_id = self._uploader.require_configuration()
        await self._progress.save(track_id, PROGRESS_VALIDATED)

        transcoded = await self._transcoder.transcode(source)
        if isinstance(transcoded, TranscodeFailure):
            raise TranscodeFailed(transcoded)

        with transcoded:
            await self._progress.save(track_id, PROGRESS_TRANSCODED)
            audio = transcoded
            if metadata is not None and not metadata.is_empty():
                audio = await tag_transcoded(transcoded, metadata)
            audio_id = await self._store(bucket_id, audio.filename, audio.content, audio.mime_type)

            chunks = await self._split(
                audio.local_path,
                duration,
                segment_seconds=self._segment_seconds,
                ffmpeg_binary=self._ffmpeg,
            )
        await self._progress.save(track_id, PROGRESS_SPLIT)

        segments = []
        span = PROGRESS_SEGMENTS_DONE - PROGRESS_SPLIT
        for index, chunk in enumerate(chunks):
            segments.append(await self._uploader.upload_segment(chunk, index))
            await self._progress.save(track_id, PROGRESS_SPLIT + span * (index + 1) / len(chunks))

        manifest = create_m3u8_file(segment.url for segment in segments)
        manifest_id = await self._store(bucket_id, manifest.name, manifest.content, manifest.content_type)
        await self._progress.save(track_id, PROGRESS_COMPLETE)

        packaged = PackagedTrack(
            track_id=track_id,
            duration=duration,
            audio_id=audio_id,
            audio_url=self._storage.file_url(bucket_id, audio_id),
            manifest_id=manifest_id,
            manifest_url=self._storage.file_url(bucket_id, manifest_id),
            segments=tuple(segments),
        )
        logger.info(
            "Packaged track %s: %.1fs, %d segments, manifest %s",
            track_id,
            duration,
            len(segments),
            manifest_id,
        )
        return packaged

    async def _store(self, bucket_id: str, filename: str, data: bytes, content_type: str) -> str:
        """Upload a whole-track asset (MP3 or playlist) and return its id."""

        try:
            file_id = await self._storage.create_file(
                bucket_id,
                unique_id(),
                filename,
                data,
                content_type,
            )
        except StorageError:
            logger.exception("Failed to upload %s", filename)
            raise
        if not file_id:
            raise StorageError(f"Failed to upload {filename} to storage")
        return file_id


__all__ = [
    "PipelineError",
    "TrackPackager",
    "TranscodeFailed",
    "ValidationFailed",
]
