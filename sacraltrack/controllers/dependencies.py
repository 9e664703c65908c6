"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sacraltrack.config.settings import settings
from sacraltrack.database import get_session
from sacraltrack.pipelines.audio import (
    JsonFileStore,
    ProgressTracker,
    SegmentUploader,
    TrackPackager,
    Transcoder,
)
from sacraltrack.pipelines.audio.packaging import Splitter
from sacraltrack.pipelines.audio.segmentation import split_audio_async
from sacraltrack.services.storage import ObjectStorage, get_storage
from sacraltrack.services.tracks import TrackRepository

SessionDep = Annotated[AsyncSession, Depends(get_session)]
StorageDep = Annotated[ObjectStorage, Depends(get_storage)]


def get_transcoder() -> Transcoder:
    return Transcoder(
        ffmpeg_binary=settings.audio.ffmpeg_binary,
        bitrate=settings.audio.bitrate,
        work_dir=settings.audio.work_dir,
    )


def get_splitter() -> Splitter:
    return split_audio_async


@lru_cache(maxsize=1)
def get_progress_tracker() -> ProgressTracker:
    """Process-wide tracker backed by the JSON file in the progress settings."""

    return ProgressTracker(
        JsonFileStore(settings.progress.store_path),
        ttl_seconds=settings.progress.ttl_seconds,
    )


def get_track_repository(session: SessionDep) -> TrackRepository:
    return TrackRepository(session)


def get_segment_uploader(storage: StorageDep) -> SegmentUploader:
    return SegmentUploader(
        storage,
        bucket_id=settings.storage.bucket_id,
        endpoint=settings.storage.endpoint,
    )


TranscoderDep = Annotated[Transcoder, Depends(get_transcoder)]
SplitterDep = Annotated[Splitter, Depends(get_splitter)]
ProgressDep = Annotated[ProgressTracker, Depends(get_progress_tracker)]
TrackRepositoryDep = Annotated[TrackRepository, Depends(get_track_repository)]
SegmentUploaderDep = Annotated[SegmentUploader, Depends(get_segment_uploader)]


def get_track_packager(
    storage: StorageDep,
    transcoder: TranscoderDep,
    uploader: SegmentUploaderDep,
    progress: ProgressDep,
    splitter: SplitterDep,
) -> TrackPackager:
    return TrackPackager(
        transcoder=transcoder,
        uploader=uploader,
        storage=storage,
        progress=progress,
        splitter=splitter,
        max_duration=settings.audio.max_duration_seconds,
        segment_seconds=settings.audio.segment_seconds,
        ffmpeg_binary=settings.audio.ffmpeg_binary,
    )


TrackPackagerDep = Annotated[TrackPackager, Depends(get_track_packager)]


__all__ = [
    "ProgressDep",
    "SegmentUploaderDep",
    "SessionDep",
    "StorageDep",
    "TrackPackagerDep",
    "TrackRepositoryDep",
    "get_progress_tracker",
    "get_segment_uploader",
    "get_splitter",
    "get_track_packager",
    "get_track_repository",
    "get_transcoder",
]
