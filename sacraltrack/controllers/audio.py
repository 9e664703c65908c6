"""Audio ingestion endpoints.

For a stage-by-stage map see `sacraltrack.pipelines.audio.flow.AudioPipeline`.
The POST `/audio/tracks` pipeline performs:

1. WAV validation (type, header, 12 minute limit).
2. MP3 transcoding through ffmpeg.
3. Splitting into ten second chunks and uploading them in order.
4. Building and uploading the HLS playlist, then persisting the track row.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response

from sacraltrack.config.settings import settings
from sacraltrack.controllers.dependencies import (
    ProgressDep,
    SegmentUploaderDep,
    TrackPackagerDep,
    TrackRepositoryDep,
)
from sacraltrack.pipelines.audio import (
    MANIFEST_CONTENT_TYPE,
    AudioPipeline,
    ConfigurationError,
    SegmentationError,
    SegmentUploadError,
    TaggingError,
    TrackMetadata,
    TranscodeFailed,
    ValidationFailed,
    generate_m3u8,
    read_source_audio,
    read_upload_bytes,
    validate_upload,
)
from sacraltrack.services.storage import StorageError, unique_id
from sacraltrack.services.tracks import TrackRepositoryError
from sacraltrack.views import (
    ErrorResponse,
    ProgressResponse,
    ProgressUpdate,
    SegmentResponse,
    TrackResponse,
    ValidationResponse,
)

router = APIRouter(prefix="/audio", tags=["audio"])

logger = logging.getLogger(__name__)
pipeline_logger = logging.getLogger("sacraltrack.pipelines.audio")

# Track.id column width.
TRACK_ID_MAX_LENGTH = 64

PIPELINE_STAGES = tuple(AudioPipeline.describe())
"""Ordered pipeline metadata used for quick reference and debugging."""

_AUDIO_FILE_UPLOAD = File(...)
_SEGMENT_FILE_UPLOAD = File(None)
_INDEX_FORM = Form(...)
_NAME_FORM = Form(...)
_ARTIST_FORM = Form(...)
_GENRE_FORM = Form(None)
_TRACK_ID_FORM = Form(None, min_length=1, max_length=TRACK_ID_MAX_LENGTH)


@router.post("/validate", response_model=ValidationResponse)
async def validate_audio(audio_file: UploadFile = _AUDIO_FILE_UPLOAD) -> ValidationResponse:
    """Check that an upload is a decodable WAV of at most twelve minutes."""

    source = await read_source_audio(audio_file, max_bytes=settings.audio.max_upload_bytes)
    result = await validate_upload(source, max_duration=settings.audio.max_duration_seconds)
    return ValidationResponse(is_valid=result.is_valid, error=result.error, duration=result.duration)


_PIPELINE_ERRORS = {
    code: {"model": ErrorResponse}
    for code in (
        status.HTTP_400_BAD_REQUEST,
        status.HTTP_409_CONFLICT,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        status.HTTP_502_BAD_GATEWAY,
    )
}


@router.post(
    "/tracks",
    response_model=TrackResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_PIPELINE_ERRORS,
)
async def create_track(
    packager: TrackPackagerDep,
    repository: TrackRepositoryDep,
    name: str = _NAME_FORM,
    artist: str = _ARTIST_FORM,
    genre: Optional[str] = _GENRE_FORM,
    track_id: Optional[str] = _TRACK_ID_FORM,
    audio_file: UploadFile = _AUDIO_FILE_UPLOAD,
) -> TrackResponse:
    """Package an uploaded WAV into an MP3, HLS segments and a playlist."""

    if track_id is not None and await repository.get(track_id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Track {track_id} already exists")
    track_id = track_id or unique_id()
    metadata = TrackMetadata(title=name, artist=artist, genre=genre)
    source = await read_source_audio(audio_file, max_bytes=settings.audio.max_upload_bytes)
    pipeline_logger.info("track=%s | received %s (%d bytes)", track_id, source.filename, len(source.content))

    try:
        packaged = await packager.package(track_id, source, metadata)
    except ValidationFailed as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except (TranscodeFailed, ConfigurationError, TaggingError, SegmentationError) as exc:
        pipeline_logger.error("track=%s | %s", track_id, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except (SegmentUploadError, StorageError) as exc:
        pipeline_logger.error("track=%s | %s", track_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    try:
        track = await repository.add(packaged, name=name, artist=artist, genre=genre)
    except TrackRepositoryError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    pipeline_logger.info("track=%s | stored with %d segments", track_id, len(packaged.segments))
    return TrackResponse.model_validate(track)


@router.post("/segments", response_model=SegmentResponse)
async def upload_segment(
    uploader: SegmentUploaderDep,
    index: int = _INDEX_FORM,
    segment: Optional[UploadFile] = _SEGMENT_FILE_UPLOAD,
) -> SegmentResponse:
    """Store a single pre-cut segment and return its id and public URL."""

    if segment is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    blob = await read_upload_bytes(segment, max_bytes=settings.audio.max_upload_bytes)
    try:
        stored = await uploader.upload_segment(blob, index)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except SegmentUploadError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return SegmentResponse(segment_id=stored.id, file_url=stored.url, duration=stored.duration)


@router.get("/tracks/{track_id}", response_model=TrackResponse)
async def get_track(track_id: str, repository: TrackRepositoryDep) -> TrackResponse:
    track = await repository.get(track_id)
    if track is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Track not found")
    return TrackResponse.model_validate(track)


@router.get("/tracks/{track_id}/playlist.m3u8")
async def get_playlist(track_id: str, repository: TrackRepositoryDep) -> Response:
    """Render the VOD playlist for a stored track."""

    track = await repository.get(track_id)
    if track is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Track not found")
    return Response(generate_m3u8(track.segment_urls or []), media_type=MANIFEST_CONTENT_TYPE)


@router.get("/progress/{track_id}", response_model=ProgressResponse)
async def read_progress(track_id: str, tracker: ProgressDep) -> ProgressResponse:
    return ProgressResponse(track_id=track_id, progress=await tracker.get(track_id))


@router.put("/progress/{track_id}", response_model=ProgressResponse)
async def write_progress(track_id: str, payload: ProgressUpdate, tracker: ProgressDep) -> ProgressResponse:
    await tracker.save(track_id, payload.progress)
    return ProgressResponse(track_id=track_id, progress=payload.progress)
