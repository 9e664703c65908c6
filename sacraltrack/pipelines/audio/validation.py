"""WAV validation stage of the audio pipeline."""

from __future__ import annotations

import io
import logging
import struct

from fastapi.concurrency import run_in_threadpool
from mutagen import MutagenError
from mutagen.wave import WAVE

from sacraltrack.telemetry import record_validation

from .types import SourceAudio, ValidationResult

logger = logging.getLogger(__name__)

MAX_DURATION_SECONDS = 720.0

WRONG_TYPE_ERROR = "Please upload a WAV file"
INVALID_FORMAT_ERROR = "Invalid WAV file format"
TOO_LONG_ERROR = "Audio file must not exceed 12 minutes"


class AudioDecodeError(ValueError):
    """Raised when the payload cannot be decoded as WAV audio."""


def is_wav_type(content_type: str | None) -> bool:
    """Return True when the declared content type indicates a WAV container."""

    return "wav" in (content_type or "").lower()


def decode_duration(content: bytes) -> float:
    """Read the RIFF/WAVE header and return the audio duration in seconds.

    Any WAVE format code is accepted (integer PCM, IEEE float, extensible);
    the length is the data chunk size over the block alignment.
    """

    try:
        info = WAVE(io.BytesIO(content)).info
    except (MutagenError, struct.error, ZeroDivisionError) as exc:
        raise AudioDecodeError(str(exc) or "truncated WAV payload") from exc

    if info.sample_rate <= 0:
        raise AudioDecodeError("WAV header declares a zero sample rate")
    return float(info.length)


def validate_audio_file(
    source: SourceAudio,
    *,
    max_duration: float = MAX_DURATION_SECONDS,
) -> ValidationResult:
    """Inspect an upload and report whether it may proceed to transcoding."""

    if not is_wav_type(source.content_type):
        logger.info("Rejected %s: declared type %r is not WAV", source.filename, source.content_type)
        record_validation("wrong_type")
        return ValidationResult(is_valid=False, error=WRONG_TYPE_ERROR)

    try:
        duration = decode_duration(source.content)
    except AudioDecodeError as exc:
        logger.info("Rejected %s: %s", source.filename, exc)
        record_validation("decode_error")
        return ValidationResult(is_valid=False, error=INVALID_FORMAT_ERROR)

    if duration > max_duration:
        logger.info("Rejected %s: %.2fs exceeds %.0fs", source.filename, duration, max_duration)
        record_validation("too_long")
        return ValidationResult(is_valid=False, error=TOO_LONG_ERROR, duration=duration)

    logger.debug("Accepted %s (%.2fs)", source.filename, duration)
    record_validation("valid")
    return ValidationResult(is_valid=True, duration=duration)


async def validate_upload(
    source: SourceAudio,
    *,
    max_duration: float = MAX_DURATION_SECONDS,
) -> ValidationResult:
    """Run `validate_audio_file` off the event loop."""

    return await run_in_threadpool(validate_audio_file, source, max_duration=max_duration)


__all__ = [
    "AudioDecodeError",
    "INVALID_FORMAT_ERROR",
    "MAX_DURATION_SECONDS",
    "TOO_LONG_ERROR",
    "WRONG_TYPE_ERROR",
    "decode_duration",
    "is_wav_type",
    "validate_audio_file",
    "validate_upload",
]
