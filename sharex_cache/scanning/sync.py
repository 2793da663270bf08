import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from tqdm import tqdm

from ..models import FileRecord, MediaKind
from .classify import MediaClassifier


@dataclass
class ScanSummary:
    files_seen: int = 0
    images_kept: int = 0
    animations_kept: int = 0
    skipped: int = 0        # files of kind OTHER
    failed: int = 0         # stat errors, unreadable directories


class DirectorySynchronizer:
    """
    Reconciles the service's category caches with the watched directory.

    initial_scan() loads a snapshot; the on_file_* handlers apply change
    events one at a time. Every cache mutation happens under service.lock.
    A failure on a single file is logged and that file is skipped.
    """

    def __init__(self, service, classifier: Optional[MediaClassifier] = None):
        self.service = service
        self.classifier = classifier or MediaClassifier()

    @property
    def root(self) -> Optional[Path]:
        return self.service.watched_directory

    # --- Initial Scan ---

    def initial_scan(self, show_progress: bool = False) -> ScanSummary:
        """
        Lists the watched directory and loads, per category, only the newest
        `capacity` files. Replaces whatever the caches held before, so
        running it twice on an unchanged directory gives identical contents.
        """
        summary = ScanSummary()
        if self.root is None:
            logging.warning("No watched directory; skipping initial scan.")
            return summary

        if not self.root.is_dir():
            logging.error(f"Watched directory {self.root} does not exist or is not a directory.")
            summary.failed += 1
            return summary

        logging.info(f"Scanning {self.root} (recursive={self.service.config.recursive})...")

        found: Dict[MediaKind, List[FileRecord]] = {MediaKind.IMAGE: [], MediaKind.ANIMATION: []}
        paths = list(self._iter_files(self.root, summary))

        for path in tqdm(paths, desc="Scanning", unit="file", disable=not show_progress):
            summary.files_seen += 1
            try:
                record = self.build_record(path)
            except OSError as e:
                logging.error(f"Failed to stat {path}: {e}")
                summary.failed += 1
                continue

            if record.kind is MediaKind.OTHER:
                summary.skipped += 1
                continue
            found[record.kind].append(record)

        images = self._newest(found[MediaKind.IMAGE], self.service.images.capacity)
        animations = self._newest(found[MediaKind.ANIMATION], self.service.animations.capacity)
        self._replace_contents(images, animations)

        summary.images_kept = len(images)
        summary.animations_kept = len(animations)
        logging.info(
            f"Scan complete. {summary.files_seen} files, kept {summary.images_kept} images "
            f"and {summary.animations_kept} GIFs ({summary.skipped} skipped, {summary.failed} failed)."
        )
        return summary

    def _newest(self, records: List[FileRecord], capacity: int) -> List[FileRecord]:
        """
        Keeps the `capacity` newest records, preserving walk order among
        survivors. A later duplicate basename replaces an earlier one, as an
        upsert would.
        """
        by_name: Dict[str, int] = {}
        deduped: List[FileRecord] = []
        for record in records:
            if record.name in by_name:
                deduped[by_name[record.name]] = record
            else:
                by_name[record.name] = len(deduped)
                deduped.append(record)

        ranked = sorted(range(len(deduped)), key=lambda i: (deduped[i].modified_at, i), reverse=True)
        keep = sorted(ranked[:capacity])
        return [deduped[i] for i in keep]

    def _replace_contents(self, images: List[FileRecord], animations: List[FileRecord]):
        service = self.service
        with service.lock:
            previous = {r.name: r for r in service.animations.values_newest_first()}

            service.images.clear(notify=False)
            service.animations.clear(notify=False)
            for record in images:
                service.images.upsert(record)
            for record in animations:
                service.animations.upsert(record)

            # Frame sets survive only when their source record is unchanged
            for name, old in previous.items():
                if service.animations.get(name) != old:
                    service.discard_frames(name)

    # --- Change Events ---

    def on_file_appeared(self, path: Path):
        self._ingest(Path(path), "added")

    def on_file_changed(self, path: Path):
        self._ingest(Path(path), "changed")

    def on_file_removed(self, path: Path):
        name = Path(path).name
        service = self.service
        with service.lock:
            removed = service.images.remove(name)
            removed = service.animations.remove(name) or removed
            service.discard_frames(name)
        if removed:
            logging.info(f"Removed {name} from cache")

    def on_directory_removed(self, path: Path):
        """Drops every cached file that lived under a deleted or moved-away folder."""
        folder = Path(path)
        service = self.service
        gone = []
        with service.lock:
            for cache in (service.images, service.animations):
                for record in cache.values_newest_first():
                    if record.path.is_relative_to(folder):
                        cache.remove(record.name)
                        service.discard_frames(record.name)
                        gone.append(record.name)
        if gone:
            logging.info(f"Removed {len(gone)} cached files from {folder}: {', '.join(gone)}")

    def _ingest(self, path: Path, reason: str):
        try:
            record = self.build_record(path)
        except OSError as e:
            logging.error(f"Failed to process file {path}: {e}")
            return

        if record.kind is MediaKind.OTHER:
            logging.debug(f"Ignoring {path} ({reason}): not an image or GIF")
            return

        service = self.service
        with service.lock:
            if record.kind is MediaKind.ANIMATION:
                # Content may have changed; never serve the old frames
                service.discard_frames(record.name)
                evicted = service.animations.upsert(record)
            else:
                evicted = service.images.upsert(record)

        if record.name in evicted:
            logging.debug(f"{record.name} ({reason}) is older than every cached {record.kind.value}; not kept")
        else:
            logging.info(f"Cached {record.kind.value} {record.name} ({reason})")

    # --- Helpers ---

    def build_record(self, path: Path) -> FileRecord:
        """Stats and classifies a path. Raises OSError if the file is gone."""
        stat_result = path.stat()
        return FileRecord(
            name=path.name,
            path=path.resolve(),
            size=stat_result.st_size,
            modified_at=stat_result.st_mtime,
            kind=self.classifier.classify(path),
            mime_type=self.classifier.mime_type_for(path),
        )

    def _iter_files(self, root: Path, summary: ScanSummary) -> Iterator[Path]:
        """Depth-first walker using os.scandir. Hidden entries are skipped."""
        recursive = self.service.config.recursive
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot list {current}: {e}")
                summary.failed += 1
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                if e.name.startswith("."):
                    continue
                try:
                    if e.is_dir(follow_symlinks=False):
                        dirs.append(Path(e.path))
                    elif e.is_file():
                        yield Path(e.path)
                except OSError as err:
                    logging.warning(f"Skipping {e.path}: {err}")
                    summary.failed += 1

            if recursive:
                # Push dirs reversed so we process A before Z
                for d in reversed(dirs):
                    stack.append(d)
