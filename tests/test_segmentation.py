"""Splitting encoded tracks and uploading the resulting segments."""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from conftest import FakeStorage, wav_source
from sacraltrack.pipelines.audio import (
    ConfigurationError,
    SegmentUploader,
    SegmentUploadError,
    Transcoder,
    build_segment_command,
    split_audio,
)
from sacraltrack.pipelines.audio.segmentation import SegmentationError, segment_count, segment_filename


def _uploader(storage, bucket_id="tracks", endpoint="https://cloud.test/v1"):
    return SegmentUploader(storage, bucket_id=bucket_id, endpoint=endpoint)


@pytest.mark.parametrize(
    ("duration", "expected"),
    [(0, 1), (9.5, 1), (10, 1), (10.01, 2), (25, 3), (720, 72)],
)
def test_segment_count_covers_duration(duration, expected):
    assert segment_count(duration, 10) == expected


def test_upload_segment_returns_stored_reference(storage):
    segment = asyncio.run(_uploader(storage).upload_segment(b"chunk", 3))

    assert segment.index == 3
    assert segment.duration == 10
    assert segment.url == f"https://cdn.test/tracks/{segment.id}"
    assert storage.files[0]["filename"] == segment_filename(3) == "segment-3.mp3"
    assert storage.files[0]["content_type"] == "audio/mp3"
    assert storage.files[0]["bucket_id"] == "tracks"


@pytest.mark.parametrize(
    ("bucket_id", "endpoint", "missing"),
    [(None, "https://cloud.test/v1", "bucket_id"), ("tracks", None, "endpoint"), ("", "", "bucket_id, endpoint")],
)
def test_missing_configuration_fails_without_network_io(storage, bucket_id, endpoint, missing):
    uploader = _uploader(storage, bucket_id=bucket_id, endpoint=endpoint)

    with pytest.raises(ConfigurationError, match="Missing required Appwrite configuration") as excinfo:
        asyncio.run(uploader.upload_segment(b"chunk", 0))

    assert str(excinfo.value).endswith(missing)
    assert storage.attempts == 0


def test_storage_error_is_wrapped_with_segment_index():
    storage = FakeStorage(fail_on={0})

    with pytest.raises(SegmentUploadError, match="Failed to upload segment 4: bucket unavailable") as excinfo:
        asyncio.run(_uploader(storage).upload_segment(b"chunk", 4))

    assert excinfo.value.index == 4


def test_missing_file_id_is_an_upload_error():
    storage = FakeStorage(blank_on={0})

    with pytest.raises(SegmentUploadError, match="Failed to upload segment 0 to storage"):
        asyncio.run(_uploader(storage).upload_segment(b"chunk", 0))


def test_upload_segments_preserves_order(storage):
    blobs = [b"a", b"b", b"c"]

    segments = asyncio.run(_uploader(storage).upload_segments(blobs))

    assert [segment.index for segment in segments] == [0, 1, 2]
    assert [item["data"] for item in storage.files] == blobs
    assert storage.filenames == ["segment-0.mp3", "segment-1.mp3", "segment-2.mp3"]


def test_upload_segments_stops_at_first_failure():
    storage = FakeStorage(fail_on={1})

    with pytest.raises(SegmentUploadError) as excinfo:
        asyncio.run(_uploader(storage).upload_segments([b"a", b"b", b"c"]))

    assert excinfo.value.index == 1
    assert storage.filenames == ["segment-0.mp3"]
    assert storage.attempts == 2


def test_split_audio_reports_missing_encoder(tmp_path):
    audio = tmp_path / "track.mp3"
    audio.write_bytes(b"ID3")

    with pytest.raises(SegmentationError):
        split_audio(audio, 12, ffmpeg_binary="ffmpeg-binary-that-does-not-exist")


def test_segment_command_is_a_single_stream_copy(tmp_path):
    command = build_segment_command(tmp_path / "song.mp3", tmp_path / "segment_%03d.mp3", segment_seconds=10)

    assert command == [
        "ffmpeg",
        "-y",
        "-i",
        str(tmp_path / "song.mp3"),
        "-map",
        "0:a",
        "-f",
        "segment",
        "-segment_time",
        "10",
        "-c",
        "copy",
        "-segment_format",
        "mp3",
        str(tmp_path / "segment_%03d.mp3"),
    ]
    assert "-b:a" not in command


def _fake_segment_muxer(sizes):
    """Stand in for ffmpeg: write ``segment_NNN.mp3`` files in a scrambled order."""

    calls = []

    def run(command, **kwargs):
        calls.append(command)
        out_dir = Path(command[-1]).parent
        for index in sorted(sizes, reverse=True):
            (out_dir / f"segment_{index:03d}.mp3").write_bytes(b"x" * sizes[index] + bytes([index]))
        return subprocess.CompletedProcess(command, 0, b"", b"")

    return run, calls


def test_split_audio_runs_ffmpeg_once_and_orders_chunks(tmp_path, monkeypatch):
    audio = tmp_path / "song.mp3"
    audio.write_bytes(b"\xff\xfb")
    run, calls = _fake_segment_muxer({index: 1 for index in range(12)})
    monkeypatch.setattr(subprocess, "run", run)

    chunks = split_audio(audio, 115)

    assert len(calls) == 1
    assert [chunk[-1] for chunk in chunks] == list(range(12))
    assert calls[0][-1].endswith("segment_%03d.mp3")


def test_split_audio_rejects_empty_output(tmp_path, monkeypatch):
    run, _ = _fake_segment_muxer({})
    monkeypatch.setattr(subprocess, "run", run)

    with pytest.raises(SegmentationError, match="no segments"):
        split_audio(tmp_path / "song.mp3", 5)


def test_split_audio_wraps_ffmpeg_failure(tmp_path, monkeypatch):
    def run(command, **kwargs):
        raise subprocess.CalledProcessError(1, command, output=b"", stderr=b"Invalid data found")

    monkeypatch.setattr(subprocess, "run", run)

    with pytest.raises(SegmentationError, match="Invalid data found"):
        split_audio(tmp_path / "song.mp3", 5)


@pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
def test_split_audio_cuts_encoded_track_into_ten_second_chunks(tmp_path):
    result = asyncio.run(Transcoder(work_dir=tmp_path).transcode(wav_source(25)))

    with result:
        chunks = split_audio(result.local_path, 25)

    # Stream copy cuts on frame boundaries.
    assert abs(len(chunks) - 3) <= 1
    assert all(chunks)
