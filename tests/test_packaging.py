"""End-to-end packaging with fake transcoder, splitter and storage."""

from __future__ import annotations

import asyncio
import io
from datetime import date

import pytest
from mutagen.id3 import ID3, ID3NoHeaderError

from conftest import FakeStorage, FakeTranscoder, wav_source
from sacraltrack.pipelines.audio import (
    ConfigurationError,
    InMemoryStore,
    ProgressTracker,
    SegmentUploader,
    SegmentUploadError,
    SourceAudio,
    TaggingError,
    TrackMetadata,
    TrackPackager,
    TranscodeFailed,
    ValidationFailed,
    parse_m3u8,
)
from sacraltrack.pipelines.audio import tagging
from sacraltrack.pipelines.audio.tagging import TAG_COMMENT
from sacraltrack.services.storage import StorageError


class RecordingTracker(ProgressTracker):
    def __init__(self) -> None:
        super().__init__(InMemoryStore())
        self.history: list[float] = []

    def save_sync(self, track_id: str, progress: float) -> None:
        self.history.append(progress)
        super().save_sync(track_id, progress)


def _packager(storage, transcoder, splitter, *, bucket_id="tracks", tracker=None):
    return TrackPackager(
        transcoder=transcoder,
        uploader=SegmentUploader(storage, bucket_id=bucket_id, endpoint="https://cloud.test/v1"),
        storage=storage,
        progress=tracker or RecordingTracker(),
        splitter=splitter,
    )


def test_packages_track_end_to_end(storage, transcoder, splitter):
    tracker = RecordingTracker()

    packaged = asyncio.run(_packager(storage, transcoder, splitter, tracker=tracker).package("t1", wav_source(25)))

    assert packaged.track_id == "t1"
    assert packaged.duration == pytest.approx(25.0)
    assert len(packaged.segments) == 3
    assert [segment.index for segment in packaged.segments] == [0, 1, 2]
    assert storage.filenames == [
        "song.mp3",
        "segment-0.mp3",
        "segment-1.mp3",
        "segment-2.mp3",
        "playlist.m3u8",
    ]
    assert packaged.audio_url == f"https://cdn.test/tracks/{packaged.audio_id}"
    assert packaged.manifest_url == f"https://cdn.test/tracks/{packaged.manifest_id}"

    manifest = storage.files[-1]
    assert manifest["content_type"] == "application/x-mpegURL"
    assert parse_m3u8(manifest["data"].decode("utf-8")) == packaged.segment_urls

    assert tracker.history == pytest.approx([5, 25, 50, 50 + 40 / 3, 50 + 80 / 3, 90, 100])
    assert tracker.get_sync("t1") == 100


def test_splitter_receives_transcoded_file_and_settings(storage, transcoder, splitter):
    asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(12)))

    call = splitter.calls[0]
    assert call["audio_path"] == transcoder.last.local_path
    assert call["duration"] == pytest.approx(12.0)
    assert call["segment_seconds"] == 10


def test_transcoded_preview_is_released_after_splitting(storage, transcoder, splitter):
    asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(5)))

    assert transcoder.last.released


def test_invalid_upload_stops_before_any_side_effect(storage, transcoder, splitter):
    tracker = RecordingTracker()
    source = SourceAudio(content=b"ID3", content_type="audio/mpeg", filename="song.mp3")

    with pytest.raises(ValidationFailed, match="Please upload a WAV file") as excinfo:
        asyncio.run(_packager(storage, transcoder, splitter, tracker=tracker).package("t1", source))

    assert excinfo.value.result.is_valid is False
    assert tracker.history == []
    assert transcoder.calls == 0
    assert storage.attempts == 0


def test_missing_bucket_fails_before_transcoding(storage, transcoder, splitter):
    with pytest.raises(ConfigurationError):
        asyncio.run(_packager(storage, transcoder, splitter, bucket_id=None).package("t1", wav_source(5)))

    assert transcoder.calls == 0
    assert storage.attempts == 0


def test_transcode_failure_is_raised(tmp_path, storage, splitter):
    tracker = RecordingTracker()
    transcoder = FakeTranscoder(tmp_path, fail=True)

    with pytest.raises(TranscodeFailed, match="converting the audio file"):
        asyncio.run(_packager(storage, transcoder, splitter, tracker=tracker).package("t1", wav_source(5)))

    assert tracker.history == [5]
    assert storage.attempts == 0


def test_segment_failure_leaves_earlier_uploads_in_place(transcoder, splitter):
    storage = FakeStorage(fail_on={2})

    with pytest.raises(SegmentUploadError) as excinfo:
        asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(25)))

    assert excinfo.value.index == 1
    assert storage.filenames == ["song.mp3", "segment-0.mp3"]
    assert transcoder.last.released


def test_missing_manifest_id_is_a_storage_error(transcoder, splitter):
    storage = FakeStorage(blank_on={2})

    with pytest.raises(StorageError, match="playlist.m3u8"):
        asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(5)))


def test_metadata_is_written_as_id3_tags_before_storing(storage, transcoder, splitter):
    metadata = TrackMetadata(title="Morning Raga", artist="Anandi", genre="ambient", year=2024)

    asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(12), metadata))

    song = storage.files[0]
    assert song["filename"] == "song.mp3"
    tags = ID3(io.BytesIO(song["data"]))
    assert tags["TIT2"].text == ["Morning Raga"]
    assert tags["TPE1"].text == ["Anandi"]
    assert tags["TCON"].text == ["ambient"]
    assert str(tags["TDRC"].text[0]) == "2024"
    assert tags.getall("COMM")[0].text == [TAG_COMMENT] == ["Processed with Sacral Track"]
    # Segments are cut from the tagged file.
    assert splitter.calls[0]["audio_path"] == transcoder.last.local_path


def test_year_defaults_to_current_year(storage, transcoder, splitter):
    metadata = TrackMetadata(title="Morning Raga")

    asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(5), metadata))

    tags = ID3(io.BytesIO(storage.files[0]["data"]))
    assert str(tags["TDRC"].text[0]) == str(date.today().year)
    assert "TPE1" not in tags


def test_song_is_stored_untagged_without_metadata(storage, transcoder, splitter):
    asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(5)))

    assert storage.files[0]["data"].startswith(b"\xff\xfb")
    with pytest.raises(ID3NoHeaderError):
        ID3(io.BytesIO(storage.files[0]["data"]))


def test_tagging_failure_is_raised_before_storing(storage, transcoder, splitter, monkeypatch):
    def broken(path, metadata):
        raise OSError("read-only file system")

    monkeypatch.setattr(tagging, "write_id3_tags", broken)

    with pytest.raises(TaggingError, match="read-only file system"):
        asyncio.run(_packager(storage, transcoder, splitter).package("t1", wav_source(5), TrackMetadata(title="x")))

    assert storage.attempts == 0
    assert transcoder.last.released
