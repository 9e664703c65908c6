"""ID3 tagging of the encoded MP3 before it is stored and segmented."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from mutagen import MutagenError
from mutagen.id3 import COMM, ID3, TCON, TDRC, TIT2, TPE1, ID3NoHeaderError

from .types import TranscodedAudio

logger = logging.getLogger(__name__)

TAG_COMMENT = "Processed with Sacral Track"


class TaggingError(RuntimeError):
    """Raised when ID3 tags cannot be written to the encoded track."""


@dataclass(frozen=True)
class TrackMetadata:
    """Descriptive fields written into the MP3's ID3 tag."""

    title: Optional[str] = None
    artist: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None

    def is_empty(self) -> bool:
        return not (self.title or self.artist or self.genre)


def write_id3_tags(path: str | Path, metadata: TrackMetadata) -> bytes:
    """Tag the MP3 at ``path`` in place and return the tagged file's bytes."""

    try:
        tags = ID3(str(path))
    except ID3NoHeaderError:
        tags = ID3()

    if metadata.title:
        tags.setall("TIT2", [TIT2(encoding=3, text=metadata.title)])
    if metadata.artist:
        tags.setall("TPE1", [TPE1(encoding=3, text=metadata.artist)])
    if metadata.genre:
        tags.setall("TCON", [TCON(encoding=3, text=metadata.genre)])
    year = metadata.year or date.today().year
    tags.setall("TDRC", [TDRC(encoding=3, text=str(year))])
    tags.setall("COMM", [COMM(encoding=3, lang="eng", desc="", text=TAG_COMMENT)])

    tags.save(str(path))
    return Path(path).read_bytes()


async def tag_transcoded(transcoded: TranscodedAudio, metadata: TrackMetadata) -> TranscodedAudio:
    """Return ``transcoded`` with its file and content carrying the ID3 tag."""

    try:
        content = await run_in_threadpool(write_id3_tags, transcoded.local_path, metadata)
    except (MutagenError, OSError) as exc:
        logger.error("Tagging %s failed: %s", transcoded.filename, exc)
        raise TaggingError(f"Failed to write track metadata to {transcoded.filename}: {exc}") from exc

    logger.debug("Tagged %s (title=%r, artist=%r)", transcoded.filename, metadata.title, metadata.artist)
    return dataclasses.replace(transcoded, content=content)


__all__ = [
    "TAG_COMMENT",
    "TaggingError",
    "TrackMetadata",
    "tag_transcoded",
    "write_id3_tags",
]
