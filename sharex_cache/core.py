import itertools
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .cache.bounded import BoundedCategoryCache
from .cache.frames import DerivedFrameCache
from .config import ServiceConfig
from .detect import get_sharex_screenshot_path
from .exceptions import ConfigurationError, FileTooLargeError
from .media.codec import PillowCodec
from .media.frames import FrameExtractor
from .models import ExtractedFrameSet, FileRecord
from .queries import QueryFacade
from .scanning.classify import MediaClassifier
from .scanning.sync import DirectorySynchronizer, ScanSummary
from .scanning.watcher import DirectoryWatcher


class ShareXCacheService:
    """
    Owns both category caches, the derived frame cache and the lock that
    serializes every mutation of them. The synchronizer and the query
    façade get this instance by reference.

    If the screenshots directory cannot be determined the service still
    comes up, with empty caches; config_error is then reported by every
    query.
    """

    def __init__(self,
                 cfg: Optional[ServiceConfig] = None,
                 codec: Optional[PillowCodec] = None,
                 classifier: Optional[MediaClassifier] = None,
                 detector: Callable[[], Optional[Path]] = get_sharex_screenshot_path):
        self.config = cfg or ServiceConfig()
        self.lock = threading.RLock()

        self.frames = DerivedFrameCache()
        # name -> generation; any change to a cached GIF gets a fresh value
        self._generations: Dict[str, int] = {}
        self._ticks = itertools.count(1)
        self.images = BoundedCategoryCache("images", self.config.max_images)
        # Evicting or removing a GIF drops its extracted frames with it
        self.animations = BoundedCategoryCache("gifs", self.config.max_animations,
                                               on_discard=self.discard_frames)

        self.extractor = FrameExtractor(codec)
        self.codec = self.extractor.codec

        self.watched_directory, self.config_error = self._resolve_directory(detector)

        self.synchronizer = DirectorySynchronizer(self, classifier)
        self.queries = QueryFacade(self)
        self._watcher: Optional[DirectoryWatcher] = None

    def _resolve_directory(self, detector) -> Tuple[Optional[Path], Optional[ConfigurationError]]:
        cfg = self.config
        if cfg.watched_directory is not None:
            directory = cfg.watched_directory.expanduser()
        elif cfg.auto_detect_watched_directory:
            directory = detector()
            if directory is None:
                error = ConfigurationError("Could not determine ShareX screenshots directory")
                logging.error(str(error))
                return None, error
        else:
            error = ConfigurationError("No screenshots directory configured and auto-detection is disabled")
            logging.error(str(error))
            return None, error

        if not directory.is_dir():
            error = ConfigurationError(f"Screenshots directory {directory} does not exist")
            logging.error(str(error))
            return None, error

        return directory.resolve(), None

    # --- Lifecycle ---

    def start(self, watch: bool = True, show_progress: bool = False) -> ScanSummary:
        """
        Runs the initial scan and, when watch is set, keeps the caches in
        step with the directory. Observation starts before the scan so
        nothing that changes during it is missed.
        """
        if self.config_error is not None:
            logging.warning(f"Starting without a screenshots directory: {self.config_error}")
            return ScanSummary()

        if watch:
            watcher = DirectoryWatcher(self.watched_directory, self.synchronizer,
                                       stability_threshold=self.config.stability_threshold,
                                       recursive=self.config.recursive)
            try:
                watcher.start()
                self._watcher = watcher
            except OSError as e:
                logging.error(f"Failed to start watching {self.watched_directory}: {e}")

        summary = self.synchronizer.initial_scan(show_progress=show_progress)

        if self._watcher is not None:
            self._watcher.start_pump()
        return summary

    def stop(self):
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    # --- Cache Access ---

    def images_newest_first(self, limit: Optional[int] = None) -> List[FileRecord]:
        with self.lock:
            return self.images.values_newest_first(limit)

    def animations_newest_first(self, limit: Optional[int] = None) -> List[FileRecord]:
        with self.lock:
            return self.animations.values_newest_first(limit)

    def frame_set_for(self,
                      record: FileRecord,
                      max_frames: int,
                      frame_stride: Optional[int],
                      size_limit: int) -> ExtractedFrameSet:
        """
        Cache-first frame extraction for one animation.

        The decode runs without holding the lock. The result is written
        through only if no change event touched the name in the meantime.
        Record equality is not enough: a rewrite can keep both size and mtime.
        """
        if record.size > size_limit:
            raise FileTooLargeError(record.name, record.size, size_limit)

        name = record.name
        with self.lock:
            cached = self.frames.get(name)
            if (cached is not None
                    and cached.generation == self._generations.get(name)
                    and cached.source == record
                    and cached.built_with(max_frames, frame_stride)):
                logging.debug(f"Serving cached frames for {name} (extracted {cached.extracted_at:%H:%M:%S})")
                return cached
            generation = self._generations.setdefault(name, next(self._ticks))

        frame_set = self.extractor.extract_frames(record, max_frames, frame_stride, size_limit)
        frame_set.generation = generation

        with self.lock:
            if self._generations.get(name) == generation and self.animations.get(name) == record:
                self.frames.put(name, frame_set)
            else:
                logging.debug(f"{name} changed during extraction; result not cached")
        return frame_set

    def discard_frames(self, name: str) -> bool:
        """
        Drops the extracted frames for `name` and marks any extraction of it
        still in flight as stale. Callers hold self.lock.
        """
        if name in self.animations:
            self._generations[name] = next(self._ticks)
        else:
            # Gone from the cache; re-entry starts without a generation, which
            # never matches one handed out earlier
            self._generations.pop(name, None)
        return self.frames.invalidate(name)
