import logging
from typing import List, Optional, Tuple

from . import config
from .exceptions import FileReadError, FileTooLargeError, FrameDecodeError
from .models import FileRecord
from .reporting import (
    Block,
    QueryResult,
    ResultStatus,
    TextBlock,
    format_kb,
    format_mb,
    format_time,
    frame_set_result,
    screenshot_blocks,
)

NO_SCREENSHOTS = "No screenshots found. Take a screenshot with ShareX and try again."
NO_GIFS = "No GIF files found. Record a GIF with ShareX and try again."
NO_FILES = "No files cached. Take a screenshot with ShareX to start tracking."


class QueryFacade:
    """
    The six agent-facing operations.

    Reads take a snapshot of the caches under the service lock and never
    mutate them; the only write is the frame-cache write-through done by
    service.frame_set_for(). Every failure comes back as a QueryResult.
    """

    def __init__(self, service):
        self.service = service

    @property
    def cfg(self):
        return self.service.config

    def latest_images(self, count: int = 1) -> QueryResult:
        """Newest screenshots with their bytes, re-read from disk (at most 5)."""
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        count, invalid = self._int_arg(count, 1, "count")
        if invalid:
            return invalid
        count = max(1, min(count, config.MAX_LATEST_IMAGES))
        files = self.service.images_newest_first(count)
        if not files:
            return QueryResult.message(ResultStatus.EMPTY, NO_SCREENSHOTS)

        content: List[Block] = []
        failed = 0
        for record in files:
            try:
                data = self._read(record)
            except FileReadError as e:
                failed += 1
                content.append(TextBlock(f"Failed to read screenshot {record.name}: {e}"))
                continue
            content.extend(screenshot_blocks(record, data))

        status = ResultStatus.READ_FAILED if failed == len(files) else ResultStatus.OK
        return QueryResult(status, content)

    def animation(self, index: int = 1) -> QueryResult:
        """GIF by 1-based newest-first position (1 = newest), with sampled frames."""
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        gifs = self.service.animations_newest_first()
        if not gifs:
            return QueryResult.message(ResultStatus.EMPTY, NO_GIFS)

        index, invalid = self._int_arg(index, 1, "index")
        if invalid:
            return invalid
        if index < 1 or index > len(gifs):
            return QueryResult.message(
                ResultStatus.NOT_FOUND,
                f"Invalid GIF index {index}. Please use 1-{len(gifs)}. "
                f"Use list_animations to see available GIFs.",
            )

        return self._animation_result(gifs[index - 1],
                                      max_frames=self.cfg.max_frames_per_animation,
                                      frame_stride=None,
                                      explicit=False)

    def list_animations(self) -> QueryResult:
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        gifs = self.service.animations_newest_first()
        if not gifs:
            return QueryResult.message(ResultStatus.EMPTY, NO_GIFS)

        lines = [
            f"{pos}. {g.name} - {format_kb(g.size)} - {format_time(g.modified_at)}"
            for pos, g in enumerate(gifs, start=1)
        ]
        hint = "Use index 1 for the latest GIF"
        if len(gifs) > 1:
            hint += f", or specify 2-{len(gifs)} for older ones"
        text = (
            "Available GIFs (use animation with the number):\n"
            + "\n".join(lines)
            + f"\n\n{hint}."
        )
        return QueryResult.message(ResultStatus.OK, text)

    def get_by_name(self, filename: str) -> QueryResult:
        """
        Looks a file up in either cache. GIFs go through the same extraction
        path as animation(), at their own newest-first position.
        """
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        filename = (filename or "").strip()
        with self.service.lock:
            image = self.service.images.get(filename)
            gif = self.service.animations.get(filename)

        if gif is not None:
            return self._animation_result(gif,
                                          max_frames=self.cfg.max_frames_per_animation,
                                          frame_stride=None,
                                          explicit=False)

        if image is None:
            return QueryResult.message(
                ResultStatus.NOT_FOUND,
                f'Screenshot "{filename}" not found. Use list_all to see available files.',
            )

        try:
            data = self._read(image)
        except FileReadError as e:
            return QueryResult.message(ResultStatus.READ_FAILED, f"Failed to read file: {e}")
        return QueryResult(ResultStatus.OK, screenshot_blocks(image, data))

    def list_all(self, limit: int = config.DEFAULT_LIST_LIMIT) -> QueryResult:
        """Both categories merged newest-first, plus how full each cache is."""
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        limit, invalid = self._int_arg(limit, config.DEFAULT_LIST_LIMIT, "limit")
        if invalid:
            return invalid
        limit = max(1, limit)
        with self.service.lock:
            merged = self.service.images.values_newest_first() + self.service.animations.values_newest_first()
            stats = (
                f"Images: {len(self.service.images)}/{self.service.images.capacity}, "
                f"GIFs: {len(self.service.animations)}/{self.service.animations.capacity}"
            )

        files = sorted(merged, key=lambda r: r.modified_at, reverse=True)[:limit]
        if not files:
            return QueryResult.message(ResultStatus.EMPTY, f"{NO_FILES}\n{stats}")

        file_list = "\n".join(
            f"- {f.name} ({f.mime_type}, {format_kb(f.size)}, {format_time(f.modified_at)})"
            for f in files
        )
        return QueryResult.message(
            ResultStatus.OK,
            f"Available screenshots ({len(files)} files, {stats}):\n{file_list}",
        )

    def extract_frames(self,
                       filename: Optional[str] = None,
                       max_frames: Optional[int] = None,
                       frame_stride: Optional[int] = None) -> QueryResult:
        """
        Explicit extraction with caller-chosen limits. Defaults to the newest
        GIF. Uses the larger explicit size ceiling.
        """
        unconfigured = self._unconfigured()
        if unconfigured:
            return unconfigured

        if filename:
            with self.service.lock:
                record = self.service.animations.get(filename)
                is_image = filename in self.service.images
            if record is None:
                hint = " It is a still image; use get_by_name." if is_image else ""
                return QueryResult.message(
                    ResultStatus.NOT_FOUND,
                    f'GIF "{filename}" not found.{hint} Use list_animations to see available GIFs.',
                )
        else:
            gifs = self.service.animations_newest_first(1)
            if not gifs:
                return QueryResult.message(ResultStatus.EMPTY, NO_GIFS)
            record = gifs[0]

        max_frames, invalid = self._int_arg(max_frames, self.cfg.max_frames_per_animation, "max_frames")
        if invalid:
            return invalid
        frame_stride, invalid = self._int_arg(frame_stride, None, "frame_stride")
        if invalid:
            return invalid
        max_frames = max(1, max_frames)
        if frame_stride is not None and frame_stride < 1:
            frame_stride = None

        return self._animation_result(record, max_frames=max_frames, frame_stride=frame_stride, explicit=True)

    # --- Internal Helpers ---

    def _unconfigured(self) -> Optional[QueryResult]:
        error = self.service.config_error
        if error is None:
            return None
        return QueryResult.message(
            ResultStatus.UNCONFIGURED,
            f"Screenshots directory is not available: {error}. "
            f"Set {config.ENV_PATH} or pass --dir to point at your ShareX screenshots folder.",
        )

    def _int_arg(self, value, default: Optional[int], arg: str) -> Tuple[Optional[int], Optional[QueryResult]]:
        """Coerces an integer argument. None means `default`; junk gives a usage result."""
        if value is None:
            return default, None
        try:
            return int(value), None
        except (TypeError, ValueError):
            return None, QueryResult.message(
                ResultStatus.NOT_FOUND,
                f"Invalid {arg} {value!r}: expected a whole number.",
            )

    def _read(self, record: FileRecord) -> bytes:
        try:
            return self.service.codec.read_whole(record.path)
        except OSError as e:
            logging.error(f"Failed to read {record.path}: {e}")
            raise FileReadError(str(e)) from e

    def _animation_result(self,
                          record: FileRecord,
                          max_frames: int,
                          frame_stride: Optional[int],
                          explicit: bool) -> QueryResult:
        limit = self.cfg.explicit_animation_max_bytes if explicit else self.cfg.implicit_animation_max_bytes
        try:
            frame_set = self.service.frame_set_for(record, max_frames, frame_stride, limit)
        except FileTooLargeError as e:
            text = (
                f"GIF file {record.name} is too large ({format_mb(e.size)}). "
                f"Maximum supported size here is {format_mb(e.limit)}."
            )
            if not explicit and self.cfg.explicit_animation_max_bytes > e.limit:
                text += (
                    f" Use extract_frames, which accepts files up to "
                    f"{format_mb(self.cfg.explicit_animation_max_bytes)}, with a smaller max_frames."
                )
            return QueryResult.message(ResultStatus.TOO_LARGE, text)
        except FileReadError as e:
            return QueryResult.message(ResultStatus.READ_FAILED, f"Failed to read GIF: {e}")
        except FrameDecodeError as e:
            return QueryResult.message(
                ResultStatus.DECODE_FAILED,
                f"Failed to process GIF: {e}\n\nThe GIF file might be corrupted or in an unsupported format.",
            )
        return frame_set_result(frame_set)
