"""
Result shapes returned by the query layer, and the text they carry.

Every query answers with a QueryResult: a status plus an ordered list of
text and image blocks. The transport decides how to put them on the wire.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Union

from .models import EncodedFrame, ExtractedFrameSet, FileRecord


class ResultStatus(Enum):
    OK = "ok"
    EMPTY = "empty"                 # informational: nothing cached yet
    NOT_FOUND = "not_found"
    TOO_LARGE = "too_large"
    READ_FAILED = "read_failed"
    DECODE_FAILED = "decode_failed"
    UNCONFIGURED = "unconfigured"


ERROR_STATUSES = {
    ResultStatus.NOT_FOUND,
    ResultStatus.TOO_LARGE,
    ResultStatus.READ_FAILED,
    ResultStatus.DECODE_FAILED,
    ResultStatus.UNCONFIGURED,
}


@dataclass
class TextBlock:
    text: str


@dataclass
class ImageBlock:
    data: bytes
    mime_type: str
    name: str               # suggested filename when saved


Block = Union[TextBlock, ImageBlock]


@dataclass
class QueryResult:
    status: ResultStatus
    content: List[Block] = field(default_factory=list)

    @classmethod
    def message(cls, status: ResultStatus, text: str) -> "QueryResult":
        return cls(status, [TextBlock(text)])

    @property
    def is_error(self) -> bool:
        return self.status in ERROR_STATUSES

    @property
    def text(self) -> str:
        return "\n".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def images(self) -> List[ImageBlock]:
        return [b for b in self.content if isinstance(b, ImageBlock)]


# --- Formatting Helpers ---

def format_kb(size: int) -> str:
    return f"{size / 1024:.2f} KB"


def format_mb(size: int) -> str:
    return f"{size / 1024 / 1024:.2f} MB"


def format_time(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def screenshot_blocks(record: FileRecord, data: bytes) -> List[Block]:
    return [
        TextBlock(f"Screenshot: {record.name} ({format_time(record.modified_at)})"),
        ImageBlock(data=data, mime_type=record.mime_type, name=record.name),
    ]


def frame_set_result(frame_set: ExtractedFrameSet) -> QueryResult:
    """
    Renders an extraction result. When frames were subsampled the header
    states the true total, the number shown and the sampling interval.
    """
    record = frame_set.source

    if frame_set.passthrough:
        frame = frame_set.frames[0]
        return QueryResult(ResultStatus.OK, [
            TextBlock(f"GIF: {record.name} (static/single frame)"),
            ImageBlock(data=frame.data, mime_type=frame.mime_type, name=record.name),
        ])

    total = frame_set.total_frame_count
    shown = len(frame_set.frames)
    header = (
        f"GIF: {record.name}\n"
        f"Size: {format_kb(record.size)}\n"
        f"Total frames: {total}\n"
        f"Showing: {shown} frames"
    )
    if frame_set.is_subsampled:
        header += f" (every {frame_set.stride} frames)"
    if frame_set.failures:
        header += f"\n{len(frame_set.failures)} sampled frame(s) could not be decoded"

    content: List[Block] = [TextBlock(header)]
    stem = Path(record.name).stem

    # Frames and failures interleaved in source order
    entries = [(f.index, f) for f in frame_set.frames] + [(f.index, f) for f in frame_set.failures]
    for index, entry in sorted(entries, key=lambda e: e[0]):
        label = f"Frame {index + 1}/{total}:"
        if isinstance(entry, EncodedFrame):
            content.append(TextBlock(label))
            content.append(ImageBlock(data=entry.data, mime_type=entry.mime_type,
                                      name=f"{stem}_frame{index + 1:03d}.png"))
        else:
            content.append(TextBlock(f"{label} could not be decoded ({entry.message})"))

    status = ResultStatus.OK if frame_set.frames else ResultStatus.DECODE_FAILED
    return QueryResult(status, content)
