"""
Locates the ShareX screenshots folder.

ShareX keeps its settings in ~/Documents/ShareX/ApplicationConfig.json.
Screenshots go to CustomScreenshotsPath when UseCustomScreenshotsPath is
set, otherwise to the Screenshots folder next to the settings.
"""
import json
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import config


@dataclass
class ShareXInfo:
    path: Optional[Path]
    is_default: bool


def sharex_config_dir(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / "Documents" / config.SHAREX_DIR_NAME


def detect_sharex(home: Optional[Path] = None) -> bool:
    """True if a ShareX settings folder exists."""
    return sharex_config_dir(home).is_dir()


def convert_windows_path_to_wsl(windows_path: str) -> str:
    """D:\\path\\to\\file -> /mnt/d/path/to/file. Non-drive paths only get slashes normalized."""
    normalized = windows_path.replace("\\", "/")
    match = re.match(r"^([A-Za-z]):(.*)", normalized)
    if match:
        return f"/mnt/{match.group(1).lower()}{match.group(2)}"
    return normalized


def _local_path(raw: str) -> Path:
    # ShareX writes Windows paths; translate them when running under WSL/Linux
    if not sys.platform.startswith("win") and re.match(r"^[A-Za-z]:[\\/]", raw):
        return Path(convert_windows_path_to_wsl(raw))
    return Path(raw)


def get_sharex_screenshot_path(home: Optional[Path] = None) -> Optional[Path]:
    """
    Returns the screenshots folder ShareX is configured to use, or None when
    the settings file is missing or unreadable.
    """
    config_dir = sharex_config_dir(home)
    settings_path = config_dir / config.SHAREX_SETTINGS_FILE

    try:
        with settings_path.open("r", encoding="utf-8-sig") as f:
            settings = json.load(f)
    except FileNotFoundError:
        logging.debug(f"ShareX settings not found at {settings_path}")
        return None
    except (OSError, ValueError) as e:
        logging.warning(f"Could not read ShareX settings {settings_path}: {e}")
        return None

    if not isinstance(settings, dict):
        logging.warning(f"Unexpected ShareX settings format in {settings_path}")
        return None

    custom = settings.get("CustomScreenshotsPath")
    if settings.get("UseCustomScreenshotsPath") and custom:
        return _local_path(str(custom))

    return config_dir / config.SHAREX_DEFAULT_SCREENSHOTS


def get_sharex_info(home: Optional[Path] = None) -> ShareXInfo:
    path = get_sharex_screenshot_path(home)
    default_path = sharex_config_dir(home) / config.SHAREX_DEFAULT_SCREENSHOTS
    return ShareXInfo(path=path, is_default=path == default_path)
