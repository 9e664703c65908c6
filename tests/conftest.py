"""Shared fixtures and fakes for the audio pipeline tests."""

from __future__ import annotations

import io
import struct
import wave
from pathlib import Path
from typing import Optional

import pytest

from sacraltrack.models.track import Track
from sacraltrack.pipelines.audio import SourceAudio, TranscodedAudio, TranscodeFailure
from sacraltrack.services.storage import StorageError


def make_wav(seconds: float, *, rate: int = 100, channels: int = 1) -> bytes:
    """Build a silent 16-bit PCM WAV.

    A low sample rate keeps multi-minute fixtures small.
    """

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * channels * int(seconds * rate))
    return buffer.getvalue()


_KSDATAFORMAT_SUBTYPE_PCM = bytes.fromhex("0100000000001000800000aa00389b71")


def make_raw_wav(
    seconds: float,
    *,
    rate: int = 8000,
    channels: int = 1,
    bits: int = 32,
    format_code: int = 3,
    extensible: bool = False,
) -> bytes:
    """Assemble a RIFF/WAVE file by hand, for formats the ``wave`` writer can't emit.

    ``format_code=3`` gives IEEE float; ``extensible=True`` writes a
    WAVE_FORMAT_EXTENSIBLE header with a PCM subformat.
    """

    block_align = channels * bits // 8
    data = b"\x00" * (block_align * int(seconds * rate))
    if extensible:
        fmt = struct.pack("<HHIIHH", 0xFFFE, channels, rate, rate * block_align, block_align, bits)
        fmt += struct.pack("<HHI", 22, bits, 0) + _KSDATAFORMAT_SUBTYPE_PCM
    else:
        fmt = struct.pack("<HHIIHH", format_code, channels, rate, rate * block_align, block_align, bits)
    body = b"WAVE"
    body += b"fmt " + struct.pack("<I", len(fmt)) + fmt
    if format_code != 1 or extensible:
        body += b"fact" + struct.pack("<II", 4, len(data) // block_align)
    body += b"data" + struct.pack("<I", len(data)) + data
    return b"RIFF" + struct.pack("<I", len(body)) + body


def wav_source(seconds: float = 25, *, content_type: str = "audio/wav", filename: str = "song.wav") -> SourceAudio:
    return SourceAudio(content=make_wav(seconds), content_type=content_type, filename=filename)


class FakeStorage:
    """In-memory object storage recording every upload in call order."""

    def __init__(self, *, fail_on: set[int] | None = None, blank_on: set[int] | None = None) -> None:
        self.files: list[dict] = []
        self.attempts = 0
        self._fail_on = fail_on or set()
        self._blank_on = blank_on or set()

    async def create_file(self, bucket_id, file_id, filename, data, content_type) -> Optional[str]:
        attempt = self.attempts
        self.attempts += 1
        if attempt in self._fail_on:
            raise StorageError("bucket unavailable")
        if attempt in self._blank_on:
            return None
        self.files.append(
            {
                "bucket_id": bucket_id,
                "file_id": file_id,
                "filename": filename,
                "data": data,
                "content_type": content_type,
            }
        )
        return file_id

    def file_url(self, bucket_id: str, file_id: str) -> str:
        return f"https://cdn.test/{bucket_id}/{file_id}"

    async def aclose(self) -> None:
        return None

    @property
    def filenames(self) -> list[str]:
        return [item["filename"] for item in self.files]


class FakeTranscoder:
    """Writes the WAV bytes back out as a pretend MP3 without running ffmpeg."""

    def __init__(self, work_dir: Path, *, fail: bool = False) -> None:
        self.work_dir = work_dir
        self.fail = fail
        self.calls = 0
        self.last: TranscodedAudio | None = None

    async def transcode(self, source: SourceAudio) -> TranscodedAudio | TranscodeFailure:
        self.calls += 1
        if self.fail:
            return TranscodeFailure(error="An error occurred while converting the audio file")
        session_dir = self.work_dir / f"transcode-{self.calls}"
        session_dir.mkdir(parents=True, exist_ok=True)
        output = session_dir / "song.mp3"
        # MPEG frame sync, no ID3 header yet.
        output.write_bytes(b"\xff\xfb\x90\x00" + source.content[:16])
        self.last = TranscodedAudio(
            local_url=output.as_uri(),
            content=output.read_bytes(),
            mime_type="audio/mp3",
            filename=output.name,
            local_path=output,
        )
        return self.last


class FakeSplitter:
    """Returns one chunk per started ten seconds, like the ffmpeg splitter."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def __call__(self, audio_path, duration, **kwargs) -> list[bytes]:
        self.calls.append({"audio_path": Path(audio_path), "duration": duration, **kwargs})
        count = max(1, -(-int(duration) // kwargs.get("segment_seconds", 10)))
        return [f"chunk-{index}".encode() for index in range(count)]


class FakeTrackRepository:
    def __init__(self) -> None:
        self.tracks: dict[str, Track] = {}

    async def add(self, packaged, *, name, artist, genre=None) -> Track:
        track = Track(
            id=packaged.track_id,
            name=name,
            artist=artist,
            genre=genre,
            duration=packaged.duration,
            audio_id=packaged.audio_id,
            audio_url=packaged.audio_url,
            manifest_id=packaged.manifest_id,
            manifest_url=packaged.manifest_url,
            segment_ids=packaged.segment_ids,
            segment_urls=packaged.segment_urls,
        )
        self.tracks[track.id] = track
        return track

    async def get(self, track_id: str) -> Optional[Track]:
        return self.tracks.get(track_id)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transcoder(tmp_path: Path) -> FakeTranscoder:
    return FakeTranscoder(tmp_path / "work")


@pytest.fixture
def splitter() -> FakeSplitter:
    return FakeSplitter()
