import logging
import math
from typing import List, Optional, Tuple

from PIL import Image

from .. import config
from ..exceptions import FileReadError, FileTooLargeError, FrameDecodeError
from ..models import EncodedFrame, ExtractedFrameSet, FileRecord, FrameFailure
from .codec import PillowCodec


def sample_indices(total: int, max_frames: int, frame_stride: Optional[int] = None) -> Tuple[int, List[int]]:
    """
    Picks evenly spaced frame indices from an animation of `total` frames.

    Default: target = min(total, max_frames), stride = max(1, total // target).
    An explicit frame_stride overrides the stride and the target becomes
    min(max_frames, ceil(total / frame_stride)).

    Returns (stride, indices). Indices are clamped to total - 1.
    """
    if total < 1:
        return 1, []
    max_frames = max(1, max_frames)

    if frame_stride is not None and frame_stride >= 1:
        stride = frame_stride
        target = min(max_frames, math.ceil(total / stride))
    else:
        target = min(total, max_frames)
        stride = max(1, total // target)

    return stride, [min(i * stride, total - 1) for i in range(target)]


class FrameExtractor:
    """
    Decodes a bounded, evenly spaced subset of an animation's frames and
    re-encodes each one as PNG.

    Strategy:
      1. Refuse files above the size ceiling (no decode at all).
      2. Probe the true frame count.
      3. Single-frame files are passed through untouched.
      4. Otherwise sample, decode and encode; per-frame failures are kept
         as inline diagnostics and the rest of the frames are still returned.

    The result is not cached here; the service does the write-through so it
    can check the source record is still current.
    """

    def __init__(self, codec: Optional[PillowCodec] = None):
        self.codec = codec or PillowCodec()

    def extract_frames(self,
                       record: FileRecord,
                       max_frames: int,
                       frame_stride: Optional[int] = None,
                       size_limit: int = config.EXPLICIT_ANIMATION_MAX_BYTES) -> ExtractedFrameSet:
        # 1. Size ceiling
        if record.size > size_limit:
            raise FileTooLargeError(record.name, record.size, size_limit)

        # 2. Probe
        try:
            total = self.codec.probe_frame_count(record.path)
        except (OSError, ValueError, EOFError, Image.DecompressionBombError) as e:
            raise FrameDecodeError(f"Cannot open {record.name}: {e}") from e

        # 3. Static / single frame: extraction is not worth it
        if total <= 1:
            return self._passthrough(record, max_frames, frame_stride)

        # 4. Sample, decode, encode
        stride, indices = sample_indices(total, max_frames, frame_stride)
        logging.info(f"Extracting {len(indices)} of {total} frames from {record.name} (every {stride})")

        frames: List[EncodedFrame] = []
        failures: List[FrameFailure] = []
        try:
            for index, image, error in self.codec.iter_frames(record.path, indices):
                if error is not None:
                    logging.error(f"Failed to extract frame {index} of {record.name}: {error}")
                    failures.append(FrameFailure(index, str(error)))
                    continue
                try:
                    data = self.codec.encode(image)
                except (OSError, ValueError) as e:
                    logging.error(f"Failed to encode frame {index} of {record.name}: {e}")
                    failures.append(FrameFailure(index, str(e)))
                    continue
                frames.append(EncodedFrame(index=index, data=data, mime_type=config.FRAME_MIME))
        except OSError as e:
            # The file vanished or became unreadable mid-extraction
            raise FrameDecodeError(f"Cannot read {record.name}: {e}") from e

        return ExtractedFrameSet(
            source_name=record.name,
            frames=frames,
            total_frame_count=total,
            stride=stride,
            source=record,
            max_frames=max_frames,
            requested_stride=frame_stride,
            failures=failures,
        )

    def _passthrough(self, record: FileRecord, max_frames: int, frame_stride: Optional[int]) -> ExtractedFrameSet:
        try:
            data = self.codec.read_whole(record.path)
        except OSError as e:
            raise FileReadError(f"Failed to read {record.name}: {e}") from e

        return ExtractedFrameSet(
            source_name=record.name,
            frames=[EncodedFrame(index=0, data=data, mime_type=record.mime_type)],
            total_frame_count=1,
            stride=1,
            source=record,
            max_frames=max_frames,
            requested_stride=frame_stride,
            passthrough=True,
        )
