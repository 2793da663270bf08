import threading
import time
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from sharex_cache.scanning.watcher import (
    ADDED,
    CHANGED,
    REMOVED,
    REMOVED_DIR,
    ChangeEvent,
    ChangeEventPump,
    DebouncedEventHandler,
    DirectoryWatcher,
)

from conftest import make_png


class RecordingSynchronizer:
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def _record(self, kind, path):
        if path == self.fail_on:
            raise RuntimeError("boom")
        self.calls.append((kind, path))

    def on_file_appeared(self, path):
        self._record(ADDED, path)

    def on_file_changed(self, path):
        self._record(CHANGED, path)

    def on_file_removed(self, path):
        self._record(REMOVED, path)

    def on_directory_removed(self, path):
        self._record(REMOVED_DIR, path)


def immediate_handler():
    events = []
    return DebouncedEventHandler(events.append, stability_threshold=0), events


def test_events_are_translated(tmp_path):
    handler, events = immediate_handler()
    a = str(tmp_path / "a.png")
    b = str(tmp_path / "b.png")

    handler.on_created(FileCreatedEvent(a))
    handler.on_modified(FileModifiedEvent(a))
    handler.on_moved(FileMovedEvent(a, b))
    handler.on_deleted(FileDeletedEvent(b))

    assert events == [
        ChangeEvent(ADDED, Path(a)),
        ChangeEvent(CHANGED, Path(a)),
        ChangeEvent(REMOVED, Path(a)),
        ChangeEvent(ADDED, Path(b)),
        ChangeEvent(REMOVED, Path(b)),
    ]


def test_directories_and_hidden_files_are_ignored(tmp_path):
    handler, events = immediate_handler()
    handler.on_created(DirCreatedEvent(str(tmp_path / "2024-05")))
    handler.on_created(FileCreatedEvent(str(tmp_path / ".tmp123.png")))

    assert events == []


def test_rapid_writes_are_debounced(tmp_path):
    events = []
    delivered = threading.Event()

    def emit(event):
        events.append(event)
        delivered.set()

    handler = DebouncedEventHandler(emit, stability_threshold=0.05)
    path = str(tmp_path / "a.png")
    handler.on_created(FileCreatedEvent(path))
    handler.on_modified(FileModifiedEvent(path))
    handler.on_modified(FileModifiedEvent(path))

    assert delivered.wait(2.0)
    time.sleep(0.1)
    # One delivery, and still an add since the add never went out
    assert events == [ChangeEvent(ADDED, Path(path))]
    assert handler.pending_count == 0


def test_removal_cancels_pending_add(tmp_path):
    events = []
    handler = DebouncedEventHandler(events.append, stability_threshold=0.05)
    path = str(tmp_path / "a.png")

    handler.on_created(FileCreatedEvent(path))
    handler.on_deleted(FileDeletedEvent(path))
    time.sleep(0.15)

    assert events == [ChangeEvent(REMOVED, Path(path))]
    assert handler.pending_count == 0


def test_pump_applies_in_order_and_survives_errors(tmp_path):
    bad = tmp_path / "bad.png"
    sync = RecordingSynchronizer(fail_on=bad)
    pump = ChangeEventPump(sync)

    pump.put(ChangeEvent(ADDED, tmp_path / "a.png"))
    pump.put(ChangeEvent(CHANGED, bad))
    pump.put(ChangeEvent(CHANGED, tmp_path / "a.png"))
    pump.put(ChangeEvent(REMOVED, tmp_path / "a.png"))

    assert pump.drain() == 4
    assert sync.calls == [
        (ADDED, tmp_path / "a.png"),
        (CHANGED, tmp_path / "a.png"),
        (REMOVED, tmp_path / "a.png"),
    ]


def test_pump_thread(tmp_path):
    sync = RecordingSynchronizer()
    pump = ChangeEventPump(sync)
    pump.start()
    pump.put(ChangeEvent(ADDED, tmp_path / "a.png"))
    pump.stop()

    assert sync.calls == [(ADDED, tmp_path / "a.png")]


def test_service_follows_directory(shots, make_service):
    service = make_service(stability_threshold=0.05)
    service.start(watch=True)
    try:
        assert service.is_watching
        make_png(shots / "live.png", 1)

        deadline = time.monotonic() + 5
        while "live.png" not in service.images and time.monotonic() < deadline:
            time.sleep(0.05)
        assert "live.png" in service.images

        (shots / "live.png").unlink()
        deadline = time.monotonic() + 5
        while "live.png" in service.images and time.monotonic() < deadline:
            time.sleep(0.05)
        assert "live.png" not in service.images
    finally:
        service.stop()
    assert not service.is_watching


def test_watcher_stop_is_clean(shots):
    watcher = DirectoryWatcher(shots, RecordingSynchronizer(), stability_threshold=0.05)
    watcher.start()
    watcher.start_pump()
    assert watcher.is_running
    watcher.stop()
    assert not watcher.is_running


def test_folder_deleted_or_moved_away(tmp_path):
    events = []
    handler = DebouncedEventHandler(events.append, stability_threshold=5)
    month = tmp_path / "2024-05"
    handler.on_created(FileCreatedEvent(str(month / "a.png")))
    handler.on_created(FileCreatedEvent(str(tmp_path / "b.png")))

    handler.on_deleted(DirDeletedEvent(str(month)))
    handler.on_moved(DirMovedEvent(str(tmp_path / "2024-06"), str(tmp_path.parent / "archive")))

    assert events == [
        ChangeEvent(REMOVED_DIR, month),
        ChangeEvent(REMOVED_DIR, tmp_path / "2024-06"),
    ]
    # Only the pending add outside the folder survives
    assert handler.pending_count == 1
    handler.cancel_all()


def test_pump_applies_folder_removal(tmp_path):
    sync = RecordingSynchronizer()
    pump = ChangeEventPump(sync)
    pump.put(ChangeEvent(REMOVED_DIR, tmp_path / "2024-05"))

    assert pump.drain() == 1
    assert sync.calls == [(REMOVED_DIR, tmp_path / "2024-05")]
