"""Audio ingestion and HLS packaging pipeline.

Modules are organised by the order in which ``POST /audio/tracks`` executes
them; see `flow.AudioPipeline` for the stage map. The FastAPI controllers
import from here.
"""

from .flow import AudioPipeline, PipelineStage
from .ingestion import read_source_audio, read_upload_bytes, resolve_content_type
from .manifest import (
    MANIFEST_CONTENT_TYPE,
    Manifest,
    ManifestFile,
    create_m3u8_file,
    generate_m3u8,
    parse_m3u8,
)
from .packaging import PipelineError, TrackPackager, TranscodeFailed, ValidationFailed
from .progress import InMemoryStore, JsonFileStore, KeyValueStore, ProgressTracker
from .segmentation import (
    ConfigurationError,
    SegmentationError,
    SegmentUploadError,
    SegmentUploader,
    build_segment_command,
    split_audio,
)
from .tagging import TaggingError, TrackMetadata, tag_transcoded, write_id3_tags
from .transcoding import Transcoder
from .types import (
    PackagedTrack,
    Segment,
    SourceAudio,
    TranscodedAudio,
    TranscodeFailure,
    UploadProgressRecord,
    ValidationResult,
)
from .validation import validate_audio_file, validate_upload

__all__ = [
    "AudioPipeline",
    "ConfigurationError",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "MANIFEST_CONTENT_TYPE",
    "Manifest",
    "ManifestFile",
    "PackagedTrack",
    "PipelineError",
    "PipelineStage",
    "ProgressTracker",
    "Segment",
    "SegmentUploadError",
    "SegmentUploader",
    "SegmentationError",
    "SourceAudio",
    "TaggingError",
    "TrackMetadata",
    "TrackPackager",
    "TranscodeFailed",
    "TranscodeFailure",
    "TranscodedAudio",
    "Transcoder",
    "UploadProgressRecord",
    "ValidationFailed",
    "ValidationResult",
    "build_segment_command",
    "create_m3u8_file",
    "generate_m3u8",
    "parse_m3u8",
    "read_source_audio",
    "read_upload_bytes",
    "resolve_content_type",
    "split_audio",
    "tag_transcoded",
    "validate_audio_file",
    "validate_upload",
    "write_id3_tags",
]
