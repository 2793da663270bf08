"""
Directory change source built on watchdog.

Watchdog callbacks run on the observer's OS thread. They only debounce and
enqueue; a single pump thread applies events to the synchronizer, so events
for the same path are never reordered.
"""
import logging
import os
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .. import config

ADDED = "added"
CHANGED = "changed"
REMOVED = "removed"
# A folder was deleted or moved away; everything cached under it goes
REMOVED_DIR = "removed_dir"


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    path: Path


class DebouncedEventHandler(FileSystemEventHandler):
    """
    Turns raw watchdog events into added/changed/removed notifications.

    Adds and changes are held back until the path has been quiet for
    `stability_threshold` seconds, so a screenshot still being written is
    delivered once, complete. A removal cancels any pending delivery for the
    path and goes out immediately. A folder that is deleted or moved away
    becomes a single removed_dir event for everything beneath it.

    MUST use threading.Lock: callbacks come from watchdog's thread and from
    threading.Timer threads.
    """

    def __init__(self,
                 emit: Callable[[ChangeEvent], None],
                 stability_threshold: float = config.STABILITY_THRESHOLD_SEC):
        super().__init__()
        self.emit = emit
        self.stability_threshold = stability_threshold
        self._lock = threading.Lock()
        # path -> (timer, generation, pending kind)
        self._pending: Dict[Path, Tuple[threading.Timer, int, str]] = {}
        self._generation = 0

    def on_created(self, event: FileSystemEvent) -> None:
        path = self._event_path(event)
        if path is not None:
            self._schedule(ADDED, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        path = self._event_path(event)
        if path is not None:
            self._schedule(CHANGED, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._folder_gone(event)
            return
        path = self._event_path(event)
        if path is not None:
            self._deliver_now(REMOVED, path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            # Files that land inside the tree arrive as their own move events
            self._folder_gone(event)
            return
        src = self._event_path(event)
        if src is not None:
            self._deliver_now(REMOVED, src)
        dest = Path(os.fsdecode(event.dest_path))
        if not self._ignored(dest):
            self._schedule(ADDED, dest)

    def cancel_all(self):
        with self._lock:
            for timer, _, _ in self._pending.values():
                timer.cancel()
            self._pending.clear()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # --- Internal Helpers ---

    def _event_path(self, event: FileSystemEvent) -> Optional[Path]:
        if event.is_directory:
            return None
        path = Path(os.fsdecode(event.src_path))
        if self._ignored(path):
            return None
        return path

    def _ignored(self, path: Path) -> bool:
        return path.name.startswith(".")

    def _folder_gone(self, event: FileSystemEvent):
        folder = Path(os.fsdecode(event.src_path))
        with self._lock:
            for path in [p for p in self._pending if p.is_relative_to(folder)]:
                self._pending.pop(path)[0].cancel()
            self.emit(ChangeEvent(REMOVED_DIR, folder))

    def _schedule(self, kind: str, path: Path):
        with self._lock:
            existing = self._pending.pop(path, None)
            if existing is not None:
                timer, _, previous_kind = existing
                timer.cancel()
                # A change on top of an undelivered add is still an add
                if previous_kind == ADDED:
                    kind = ADDED

            if self.stability_threshold <= 0:
                self.emit(ChangeEvent(kind, path))
                return

            self._generation += 1
            generation = self._generation
            timer = threading.Timer(self.stability_threshold, self._fire, (path, generation))
            timer.daemon = True
            self._pending[path] = (timer, generation, kind)
            timer.start()

    def _fire(self, path: Path, generation: int):
        with self._lock:
            entry = self._pending.get(path)
            # Superseded by a newer event for the same path
            if entry is None or entry[1] != generation:
                return
            del self._pending[path]
            self.emit(ChangeEvent(entry[2], path))

    def _deliver_now(self, kind: str, path: Path):
        with self._lock:
            existing = self._pending.pop(path, None)
            if existing is not None:
                existing[0].cancel()
            self.emit(ChangeEvent(kind, path))


class ChangeEventPump:
    """
    Single consumer that applies change events to a synchronizer in the
    order they were observed. A failing event is logged and the loop goes on.
    """

    _STOP = object()

    def __init__(self, synchronizer):
        self.synchronizer = synchronizer
        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def put(self, event: ChangeEvent):
        self._queue.put(event)

    def start(self):
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="sharex-cache-events", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0):
        if self._thread is None:
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None

    def drain(self) -> int:
        """Applies every queued event on the calling thread. Returns how many ran."""
        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return count
            if event is self._STOP:
                continue
            self.dispatch(event)
            count += 1

    def dispatch(self, event: ChangeEvent):
        logging.debug(f"Applying {event.kind} {event.path}")
        try:
            if event.kind == ADDED:
                self.synchronizer.on_file_appeared(event.path)
            elif event.kind == CHANGED:
                self.synchronizer.on_file_changed(event.path)
            elif event.kind == REMOVED:
                self.synchronizer.on_file_removed(event.path)
            elif event.kind == REMOVED_DIR:
                self.synchronizer.on_directory_removed(event.path)
            else:
                logging.warning(f"Unknown change event kind {event.kind!r} for {event.path}")
        except Exception as e:
            logging.exception(f"Failed to apply {event.kind} event for {event.path}: {e}")

    def _run(self):
        while True:
            event = self._queue.get()
            if event is self._STOP:
                return
            self.dispatch(event)


class DirectoryWatcher:
    """
    Watches the screenshots directory and feeds the synchronizer.

    start() begins observing right away but holds events in the queue until
    start_pump() is called, so the initial scan can run in between without
    losing anything that happens during it.
    """

    def __init__(self,
                 root: Path,
                 synchronizer,
                 stability_threshold: float = config.STABILITY_THRESHOLD_SEC,
                 recursive: bool = True):
        self.root = root
        self.recursive = recursive
        self.pump = ChangeEventPump(synchronizer)
        self.handler = DebouncedEventHandler(self.pump.put, stability_threshold)
        self._observer = None

    def start(self):
        observer = Observer()
        observer.schedule(self.handler, str(self.root), recursive=self.recursive)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logging.info(f"Watching ShareX directory: {self.root}")

    def start_pump(self):
        self.pump.start()

    def stop(self):
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.handler.cancel_all()
        self.pump.stop()
        logging.info("Stopped watching.")

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
