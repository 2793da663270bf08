"""
Configuration constants and service options for the ShareX cache.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .models import MediaKind

# --- File Type Definitions ---
IMAGE_EXTS = {'.png', '.jpg', '.jpeg', '.jpe', '.bmp', '.webp', '.tif', '.tiff', '.ico'}
ANIMATION_EXTS = {'.gif'}

# Extension to Kind Mapping
# Used to quickly classify files without complex if/else chains
EXT_TO_KIND = {}
for ext in IMAGE_EXTS: EXT_TO_KIND[ext] = MediaKind.IMAGE
for ext in ANIMATION_EXTS: EXT_TO_KIND[ext] = MediaKind.ANIMATION

EXT_TO_MIME = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.jpe': 'image/jpeg',
    '.bmp': 'image/bmp',
    '.webp': 'image/webp',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
    '.ico': 'image/x-icon',
    '.gif': 'image/gif',
}
DEFAULT_MIME = 'application/octet-stream'

# --- Cache Capacities ---
DEFAULT_MAX_IMAGES = 10
DEFAULT_MAX_ANIMATIONS = 5
DEFAULT_MAX_FRAMES_PER_ANIMATION = 10

# --- Query Limits ---
MAX_LATEST_IMAGES = 5
DEFAULT_LIST_LIMIT = 20

# --- Frame Extraction ---
# Implicit "show me the latest GIF" calls get the tighter ceiling.
# Explicit extraction calls may go up to the absolute ceiling.
IMPLICIT_ANIMATION_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
EXPLICIT_ANIMATION_MAX_BYTES = 50 * 1024 * 1024  # 50 MB
FRAME_ENCODE_FORMAT = 'PNG'
FRAME_MIME = 'image/png'

# --- Watching ---
# Seconds a path must stay quiet before an add/change is delivered
STABILITY_THRESHOLD_SEC = 1.0

# --- ShareX Detection ---
SHAREX_DIR_NAME = "ShareX"
SHAREX_SETTINGS_FILE = "ApplicationConfig.json"
SHAREX_DEFAULT_SCREENSHOTS = "Screenshots"

# --- Environment Overrides ---
ENV_PATH = "SHAREX_PATH"
ENV_MAX_IMAGES = "SHAREX_MAX_IMAGES"
ENV_MAX_ANIMATIONS = "SHAREX_MAX_GIFS"
ENV_MAX_FRAMES = "SHAREX_MAX_FRAMES"
ENV_AUTO_DETECT = "SHAREX_AUTO_DETECT"


@dataclass
class ServiceConfig:
    """
    Options recognized by the service.

    watched_directory wins over auto-detection when both are available.
    """
    max_images: int = DEFAULT_MAX_IMAGES
    max_animations: int = DEFAULT_MAX_ANIMATIONS
    max_frames_per_animation: int = DEFAULT_MAX_FRAMES_PER_ANIMATION
    watched_directory: Optional[Path] = None
    auto_detect_watched_directory: bool = True
    implicit_animation_max_bytes: int = IMPLICIT_ANIMATION_MAX_BYTES
    explicit_animation_max_bytes: int = EXPLICIT_ANIMATION_MAX_BYTES
    recursive: bool = True
    stability_threshold: float = STABILITY_THRESHOLD_SEC

    def __post_init__(self):
        if self.watched_directory is not None:
            self.watched_directory = Path(self.watched_directory)
        for field_name in ('max_images', 'max_animations', 'max_frames_per_animation'):
            if getattr(self, field_name) < 1:
                raise ValueError(f"{field_name} must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ServiceConfig":
        """
        Builds a config from SHAREX_* environment variables.
        Keyword overrides (e.g. from CLI flags) win over the environment;
        None-valued overrides are ignored.
        """
        env = os.environ if environ is None else environ
        values = {}

        if env.get(ENV_PATH):
            values['watched_directory'] = Path(env[ENV_PATH])

        for var, field_name in ((ENV_MAX_IMAGES, 'max_images'),
                                (ENV_MAX_ANIMATIONS, 'max_animations'),
                                (ENV_MAX_FRAMES, 'max_frames_per_animation')):
            raw = env.get(var)
            if not raw:
                continue
            try:
                parsed = int(raw)
            except ValueError:
                logging.warning(f"Ignoring {var}={raw!r}: not an integer")
                continue
            if parsed < 1:
                logging.warning(f"Ignoring {var}={raw!r}: must be at least 1")
                continue
            values[field_name] = parsed

        if env.get(ENV_AUTO_DETECT):
            values['auto_detect_watched_directory'] = env[ENV_AUTO_DETECT].strip().lower() not in ('0', 'false', 'no', 'off')

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
