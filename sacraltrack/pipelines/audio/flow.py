"""High-level orchestration map for the audio ingestion pipeline.

``TrackPackager`` in ``packaging.py`` runs the stages; this module documents
the canonical execution order so contributors can jump to the right module:

1. ``ingestion`` – read the multipart upload and resolve its content type.
2. ``validation`` – confirm the WAV container and the 12 minute limit.
3. ``transcoding`` – encode to 192 kbps MP3 with ffmpeg.
4. ``tagging`` – write title, artist, genre, year and comment as ID3 tags.
5. ``segmentation`` – cut 10 second chunks in one ffmpeg pass and upload each in order.
6. ``manifest`` – render the VOD playlist and upload it next to the chunks.
7. ``progress`` – record percentage milestones for the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the audio pipeline."""

    order: int
    name: str
    module: str
    summary: str


class AudioPipeline:
    """Utility wrapper documenting the ``POST /audio/tracks`` flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Ingestion",
            "sacraltrack.pipelines.audio.ingestion",
            "Read the upload into memory, enforce the size cap, resolve the content type.",
        ),
        PipelineStage(
            2,
            "Validation",
            "sacraltrack.pipelines.audio.validation",
            "Reject non-WAV uploads, undecodable files and tracks longer than 12 minutes.",
        ),
        PipelineStage(
            3,
            "Transcoding",
            "sacraltrack.pipelines.audio.transcoding",
            "Encode the WAV to constant bitrate MP3 and keep a local preview file.",
        ),
        PipelineStage(
            4,
            "Tagging",
            "sacraltrack.pipelines.audio.tagging",
            "Write the track metadata into the MP3 as ID3 tags.",
        ),
        PipelineStage(
            5,
            "Segment Upload",
            "sacraltrack.pipelines.audio.segmentation",
            "Split the MP3 into 10 second chunks without re-encoding and store each in the bucket.",
        ),
        PipelineStage(
            6,
            "Manifest",
            "sacraltrack.pipelines.audio.manifest",
            "Build the M3U8 playlist from segment URLs and store it.",
        ),
        PipelineStage(
            7,
            "Progress",
            "sacraltrack.pipelines.audio.progress",
            "Persist percentage milestones keyed by track id (24h expiry).",
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)


__all__ = ["AudioPipeline", "PipelineStage"]
