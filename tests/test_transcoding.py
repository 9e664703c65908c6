"""Transcoder command construction and failure handling."""

from __future__ import annotations

import asyncio
import shutil

import pytest

from conftest import make_wav, wav_source
from sacraltrack.pipelines.audio import SourceAudio, TranscodedAudio, TranscodeFailure, Transcoder
from sacraltrack.pipelines.audio.transcoding import TRANSCODE_ERROR, remove_file_extension

requires_ffmpeg = pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")


@pytest.mark.parametrize(
    ("filename", "expected"),
    [("song.wav", "song"), ("my.song.final.wav", "my.song.final"), ("noext", "noext")],
)
def test_remove_file_extension(filename, expected):
    assert remove_file_extension(filename) == expected


def test_output_name_swaps_extension_for_mp3():
    assert Transcoder.output_name("Morning Raga.wav") == "Morning Raga.mp3"
    assert Transcoder.output_name("/uploads/take.2.wav") == "take.2.mp3"


def test_build_command_uses_configured_binary_and_bitrate():
    transcoder = Transcoder(ffmpeg_binary="/opt/ffmpeg", bitrate="256k")

    command = transcoder.build_command("in.wav", "out.mp3")

    assert command == ["/opt/ffmpeg", "-y", "-i", "in.wav", "-b:a", "256k", "out.mp3"]
    assert transcoder.bitrate == "256k"


def test_missing_encoder_yields_tagged_failure(tmp_path):
    transcoder = Transcoder(ffmpeg_binary="ffmpeg-binary-that-does-not-exist", work_dir=tmp_path)

    result = asyncio.run(transcoder.transcode(wav_source(2)))

    assert isinstance(result, TranscodeFailure)
    assert result.error == TRANSCODE_ERROR
    assert list(tmp_path.iterdir()) == []


def test_encoder_error_exit_yields_tagged_failure(tmp_path):
    false_binary = shutil.which("false")
    if false_binary is None:
        pytest.skip("no `false` binary available")
    transcoder = Transcoder(ffmpeg_binary=false_binary, work_dir=tmp_path)

    result = asyncio.run(transcoder.transcode(wav_source(2)))

    assert isinstance(result, TranscodeFailure)
    assert list(tmp_path.iterdir()) == []


@requires_ffmpeg
def test_transcodes_wav_to_mp3_and_releases_preview(tmp_path):
    transcoder = Transcoder(work_dir=tmp_path)

    source = SourceAudio(content=make_wav(3, rate=8000), content_type="audio/wav", filename="clip.wav")

    result = asyncio.run(transcoder.transcode(source))

    assert isinstance(result, TranscodedAudio)
    assert result.filename == "clip.mp3"
    assert result.mime_type == "audio/mp3"
    assert result.content
    assert result.local_url.startswith("file://")
    assert result.local_path.exists()

    result.release()

    assert result.released
    assert list(tmp_path.iterdir()) == []
