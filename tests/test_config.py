import json
from pathlib import Path

import pytest

from sharex_cache import config
from sharex_cache.config import ServiceConfig
from sharex_cache.detect import (
    convert_windows_path_to_wsl,
    detect_sharex,
    get_sharex_info,
    get_sharex_screenshot_path,
)


def test_defaults():
    cfg = ServiceConfig()
    assert cfg.max_images == 10
    assert cfg.max_animations == 5
    assert cfg.max_frames_per_animation == 10
    assert cfg.auto_detect_watched_directory is True
    assert cfg.implicit_animation_max_bytes == 10 * 1024 * 1024
    assert cfg.explicit_animation_max_bytes == 50 * 1024 * 1024


def test_from_env_and_overrides():
    env = {
        config.ENV_PATH: "/shots",
        config.ENV_MAX_IMAGES: "3",
        config.ENV_MAX_ANIMATIONS: "2",
        config.ENV_AUTO_DETECT: "false",
    }
    cfg = ServiceConfig.from_env(env, max_images=7, max_frames_per_animation=None)

    assert cfg.watched_directory == Path("/shots")
    assert cfg.max_images == 7
    assert cfg.max_animations == 2
    assert cfg.max_frames_per_animation == 10
    assert cfg.auto_detect_watched_directory is False


def test_from_env_ignores_bad_values(caplog):
    cfg = ServiceConfig.from_env({config.ENV_MAX_IMAGES: "lots", config.ENV_MAX_FRAMES: "0"})

    assert cfg.max_images == 10
    assert cfg.max_frames_per_animation == 10
    assert "SHAREX_MAX_IMAGES" in caplog.text


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        ServiceConfig(max_animations=0)


# --- ShareX Detection ---

def write_settings(home: Path, settings) -> Path:
    sharex_dir = home / "Documents" / "ShareX"
    sharex_dir.mkdir(parents=True)
    (sharex_dir / "ApplicationConfig.json").write_text(json.dumps(settings), encoding="utf-8")
    return sharex_dir


def test_detect_default_screenshots_folder(tmp_path):
    sharex_dir = write_settings(tmp_path, {"UseCustomScreenshotsPath": False})

    assert detect_sharex(tmp_path)
    info = get_sharex_info(tmp_path)
    assert info.path == sharex_dir / "Screenshots"
    assert info.is_default


def test_detect_custom_folder(tmp_path):
    custom = tmp_path / "captures"
    write_settings(tmp_path, {"UseCustomScreenshotsPath": True, "CustomScreenshotsPath": str(custom)})

    info = get_sharex_info(tmp_path)
    assert info.path == custom
    assert not info.is_default


def test_custom_folder_ignored_when_disabled(tmp_path):
    sharex_dir = write_settings(tmp_path, {"UseCustomScreenshotsPath": False, "CustomScreenshotsPath": "/elsewhere"})
    assert get_sharex_screenshot_path(tmp_path) == sharex_dir / "Screenshots"


def test_detect_missing_or_broken_settings(tmp_path):
    assert not detect_sharex(tmp_path)
    assert get_sharex_screenshot_path(tmp_path) is None

    sharex_dir = tmp_path / "Documents" / "ShareX"
    sharex_dir.mkdir(parents=True)
    (sharex_dir / "ApplicationConfig.json").write_text("{not json", encoding="utf-8")
    assert get_sharex_screenshot_path(tmp_path) is None


def test_windows_path_to_wsl():
    assert convert_windows_path_to_wsl(r"D:\Pictures\ShareX") == "/mnt/d/Pictures/ShareX"
    assert convert_windows_path_to_wsl(r"relative\path") == "relative/path"
