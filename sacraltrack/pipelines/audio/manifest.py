"""HLS playlist (M3U8) assembly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .types import NOMINAL_SEGMENT_DURATION

MANIFEST_FILENAME = "playlist.m3u8"
MANIFEST_CONTENT_TYPE = "application/x-mpegURL"

_HEADER = (
    "#EXTM3U",
    "#EXT-X-VERSION:3",
    f"#EXT-X-TARGETDURATION:{NOMINAL_SEGMENT_DURATION}",
    "#EXT-X-MEDIA-SEQUENCE:0",
    "#EXT-X-PLAYLIST-TYPE:VOD",
)
_ENTRY_TAG = f"#EXTINF:{NOMINAL_SEGMENT_DURATION},"
_FOOTER = "#EXT-X-ENDLIST"


@dataclass(frozen=True)
class ManifestFile:
    """A playlist packaged for upload."""

    name: str
    content: bytes
    content_type: str = MANIFEST_CONTENT_TYPE


@dataclass(frozen=True)
class Manifest:
    """Ordered segment references; rebuild rather than patch."""

    segments: tuple[str, ...]

    @property
    def text(self) -> str:
        return generate_m3u8(self.segments)

    def to_file(self) -> ManifestFile:
        return create_m3u8_file(self.segments)


def generate_m3u8(segment_urls: Iterable[str]) -> str:
    """Render a VOD playlist listing ``segment_urls`` in the given order."""

    lines = list(_HEADER)
    for url in segment_urls:
        lines.append(_ENTRY_TAG)
        lines.append(url)
    lines.append(_FOOTER)
    return "\n".join(lines)


def create_m3u8_file(segment_ids: Iterable[str]) -> ManifestFile:
    return ManifestFile(
        name=MANIFEST_FILENAME,
        content=generate_m3u8(segment_ids).encode("utf-8"),
    )


def parse_m3u8(text: str) -> list[str]:
    """Return segment references from a playlist, in order."""

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or lines[0] != "#EXTM3U":
        raise ValueError("Not an M3U8 playlist: missing #EXTM3U header")
    return [line for line in lines[1:] if not line.startswith("#")]


__all__ = [
    "MANIFEST_CONTENT_TYPE",
    "MANIFEST_FILENAME",
    "Manifest",
    "ManifestFile",
    "create_m3u8_file",
    "generate_m3u8",
    "parse_m3u8",
]
