"""
Pillow-backed image/animation codec.
"""
import io
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from PIL import Image

from .. import config

# (index, decoded frame or None, error or None)
DecodedFrame = Tuple[int, Optional[Image.Image], Optional[Exception]]


class PillowCodec:

    def probe_frame_count(self, path: Path) -> int:
        """
        Returns the number of frames without keeping pixel data around.
        Still formats report 1.
        """
        with Image.open(path) as im:
            return getattr(im, "n_frames", 1)

    def iter_frames(self, path: Path, indices: Iterable[int]) -> Iterator[DecodedFrame]:
        """
        Opens the file once and seeks to each requested index in turn.
        A failure on one frame is yielded as its error; the remaining
        indices are still attempted.
        """
        with Image.open(path) as im:
            for index in indices:
                try:
                    im.seek(index)
                    # convert() forces the decode and detaches from the file
                    frame = im.convert("RGBA")
                except (OSError, EOFError, ValueError) as e:
                    yield index, None, e
                    continue
                yield index, frame, None

    def decode_frame(self, path: Path, index: int) -> Image.Image:
        for _, frame, error in self.iter_frames(path, [index]):
            if error is not None:
                raise error
            return frame
        raise EOFError(f"No frame {index} in {path}")

    def encode(self, image: Image.Image, fmt: str = config.FRAME_ENCODE_FORMAT) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()

    def read_whole(self, path: Path) -> bytes:
        return Path(path).read_bytes()
