"""WAV to MP3 transcoding stage of the audio pipeline."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Sequence

from fastapi.concurrency import run_in_threadpool

from sacraltrack.telemetry import record_transcode

from .types import SourceAudio, TranscodedAudio, TranscodeFailure

logger = logging.getLogger(__name__)

TRANSCODE_ERROR = "An error occurred while converting the audio file"
DEFAULT_BITRATE = "192k"
OUTPUT_EXTENSION = "mp3"
OUTPUT_MIME_TYPE = "audio/mp3"


def remove_file_extension(filename: str) -> str:
    """Strip everything from the last dot onwards (``a.b.wav`` -> ``a.b``)."""

    dot = filename.rfind(".")
    return filename[:dot] if dot != -1 else filename


class TranscodeError(RuntimeError):
    """Internal signal for a failed ffmpeg run; never leaves `Transcoder.transcode`."""


class Transcoder:
    """Convert validated WAV uploads into constant-bitrate MP3 via ffmpeg."""

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        bitrate: str = DEFAULT_BITRATE,
        work_dir: str | Path | None = None,
    ) -> None:
        self._ffmpeg = ffmpeg_binary
        self._bitrate = bitrate
        self._work_dir = Path(work_dir) if work_dir else None

    @property
    def bitrate(self) -> str:
        return self._bitrate

    @staticmethod
    def output_name(filename: str) -> str:
        return f"{remove_file_extension(Path(filename).name)}.{OUTPUT_EXTENSION}"

    def build_command(self, input_path: str | Path, output_path: str | Path) -> list[str]:
        return [
            self._ffmpeg,
            "-y",
            "-i",
            str(input_path),
            "-b:a",
            self._bitrate,
            str(output_path),
        ]

    async def transcode(self, source: SourceAudio) -> TranscodedAudio | TranscodeFailure:
        """Encode ``source`` to MP3; failures come back as `TranscodeFailure`."""

        try:
            result = await run_in_threadpool(self._transcode_sync, source)
        except (OSError, TranscodeError) as exc:
            logger.error("Transcoding %s failed: %s", source.filename, exc)
            record_transcode(False)
            return TranscodeFailure(error=TRANSCODE_ERROR)

        record_transcode(True)
        logger.info(
            "Transcoded %s -> %s (%d bytes at %s)",
            source.filename,
            result.filename,
            len(result.content),
            self._bitrate,
        )
        return result

    def _transcode_sync(self, source: SourceAudio) -> TranscodedAudio:
        if self._work_dir is not None:
            self._work_dir.mkdir(parents=True, exist_ok=True)
        session_dir = Path(tempfile.mkdtemp(prefix="transcode-", dir=self._work_dir))

        input_name = Path(source.filename).name or "upload.wav"
        output_name = self.output_name(input_name)
        if output_name == input_name:
            input_name = f"source-{input_name}"
        input_path = session_dir / input_name
        output_path = session_dir / output_name

        try:
            input_path.write_bytes(source.content)
            self._run(self.build_command(input_path, output_path))
            if not output_path.exists():
                raise TranscodeError(f"ffmpeg produced no output for {input_name}")
            content = output_path.read_bytes()
        except Exception:
            shutil.rmtree(session_dir, ignore_errors=True)
            raise
        finally:
            input_path.unlink(missing_ok=True)

        return TranscodedAudio(
            local_url=output_path.as_uri(),
            content=content,
            mime_type=OUTPUT_MIME_TYPE,
            filename=output_name,
            local_path=output_path,
        )

    def _run(self, command: Sequence[str]) -> None:
        try:
            subprocess.run(
                list(command),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            raise TranscodeError(f"ffmpeg exited with {exc.returncode}: {stderr.strip()[-500:]}") from exc


__all__ = [
    "DEFAULT_BITRATE",
    "OUTPUT_MIME_TYPE",
    "TRANSCODE_ERROR",
    "TranscodeError",
    "Transcoder",
    "remove_file_extension",
]
