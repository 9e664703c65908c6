"""Request ingestion helpers (first stage of the audio pipeline)."""

from __future__ import annotations

import mimetypes
from typing import Final

from fastapi import HTTPException, UploadFile, status

from .types import SourceAudio

_WAV_EXTENSIONS: Final[tuple[str, ...]] = (".wav", ".wave")


def resolve_content_type(upload: UploadFile) -> str:
    """Prefer the client-declared type; guess from the filename otherwise.

    Browsers often send ``application/octet-stream`` for WAV files, so a
    ``.wav`` filename upgrades a generic type to ``audio/wav``.
    """

    content_type = (upload.content_type or "").strip()
    generic = not content_type or content_type == "application/octet-stream"
    if generic and upload.filename:
        if upload.filename.lower().endswith(_WAV_EXTENSIONS):
            return "audio/wav"
        guessed_type, _ = mimetypes.guess_type(upload.filename)
        if guessed_type:
            return guessed_type
    return content_type or "application/octet-stream"


async def read_upload_bytes(upload: UploadFile, *, max_bytes: int) -> bytes:
    """Load the upload fully into memory, rejecting empty or oversized payloads."""

    data = await upload.read(max_bytes + 1)
    await upload.close()

    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded audio file is empty",
        )
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Audio file must not exceed {max_bytes // (1024 * 1024)}MB",
        )
    return data


async def read_source_audio(upload: UploadFile, *, max_bytes: int) -> SourceAudio:
    content_type = resolve_content_type(upload)
    content = await read_upload_bytes(upload, max_bytes=max_bytes)
    return SourceAudio(
        content=content,
        content_type=content_type,
        filename=upload.filename or "upload.wav",
    )


__all__ = ["read_source_audio", "read_upload_bytes", "resolve_content_type"]
