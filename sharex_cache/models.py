from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


class MediaKind(Enum):
    IMAGE = "image"
    ANIMATION = "animation"
    OTHER = "other"


@dataclass(frozen=True)
class FileRecord:
    """
    Represents one file observed in the watched directory.
    Only metadata is kept; content is re-read from disk when requested.
    """
    name: str               # basename, the cache key
    path: Path
    size: int
    modified_at: float      # epoch seconds, the only ordering key
    kind: MediaKind
    mime_type: str = "application/octet-stream"

    @property
    def modified_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.modified_at)


@dataclass
class EncodedFrame:
    index: int              # 0-based index in the source animation
    data: bytes
    mime_type: str


@dataclass
class FrameFailure:
    index: int
    message: str


@dataclass
class ExtractedFrameSet:
    """
    Result of sampling frames from one animation.

    total_frame_count is the true count in the source and may exceed
    len(frames). stride is the effective sampling interval.
    """
    source_name: str
    frames: List[EncodedFrame]
    total_frame_count: int
    stride: int
    source: FileRecord
    max_frames: int
    requested_stride: Optional[int] = None
    failures: List[FrameFailure] = field(default_factory=list)
    passthrough: bool = False
    extracted_at: datetime = field(default_factory=datetime.now)
    # Set by the service; ties the set to the source state it was built from
    generation: Optional[int] = None

    @property
    def is_subsampled(self) -> bool:
        return len(self.frames) < self.total_frame_count

    def built_with(self, max_frames: int, frame_stride: Optional[int]) -> bool:
        """True if this set was produced with the given sampling parameters."""
        return self.max_frames == max_frames and self.requested_stride == frame_stride
