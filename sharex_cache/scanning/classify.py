from pathlib import Path

from .. import config
from ..models import MediaKind


class MediaClassifier:
    """Maps a path to its MediaKind. Classification happens once, at ingestion."""

    def classify(self, path: Path) -> MediaKind:
        name = path.name
        # AppleDouble files and other dot-files are never screenshots
        if name.startswith("."):
            return MediaKind.OTHER
        return config.EXT_TO_KIND.get(path.suffix.lower(), MediaKind.OTHER)

    def mime_type_for(self, path: Path) -> str:
        return config.EXT_TO_MIME.get(path.suffix.lower(), config.DEFAULT_MIME)
