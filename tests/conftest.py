import os
from pathlib import Path

import pytest
from PIL import Image

from sharex_cache.config import ServiceConfig
from sharex_cache.core import ShareXCacheService
from sharex_cache.models import FileRecord, MediaKind

BASE_TIME = 1_700_000_000


def set_mtime(path: Path, offset: float):
    """Pins a file's mtime to BASE_TIME + offset."""
    ts = BASE_TIME + offset
    os.utime(path, (ts, ts))


def make_png(path: Path, offset: float = 0, color=(255, 0, 0)) -> Path:
    with Image.new("RGB", (8, 8), color=color) as im:
        im.save(path)
    set_mtime(path, offset)
    return path


def make_gif(path: Path, frame_count: int, offset: float = 0) -> Path:
    """Writes an animated GIF whose frames all differ, so none get merged."""
    frames = [
        Image.new("RGB", (8, 8), color=((i * 6) % 256, 255 - (i * 6) % 256, (i * 40) % 256))
        for i in range(frame_count)
    ]
    frames[0].save(path, save_all=True, append_images=frames[1:], duration=50, loop=0)
    set_mtime(path, offset)
    return path


def make_record(name: str, offset: float, kind: MediaKind = MediaKind.IMAGE, size: int = 100) -> FileRecord:
    return FileRecord(
        name=name,
        path=Path("/shots") / name,
        size=size,
        modified_at=BASE_TIME + offset,
        kind=kind,
        mime_type="image/gif" if kind is MediaKind.ANIMATION else "image/png",
    )


@pytest.fixture
def shots(tmp_path):
    """An empty screenshots directory."""
    d = tmp_path / "Screenshots"
    d.mkdir()
    return d


@pytest.fixture
def make_service(shots):
    """Builds a scanned (not watching) service over the shots directory."""
    def _make(**overrides):
        cfg = ServiceConfig(watched_directory=shots, auto_detect_watched_directory=False, **overrides)
        service = ShareXCacheService(cfg)
        service.start(watch=False)
        return service
    return _make
