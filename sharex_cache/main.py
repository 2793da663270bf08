import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from . import config
from .config import ServiceConfig
from .core import ShareXCacheService
from .detect import detect_sharex, get_sharex_info
from .reporting import ImageBlock, QueryResult, TextBlock


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Logs to stderr (stdout is reserved for query output) and optionally a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="ShareX Cache: query recent screenshots and GIFs")

    p.add_argument("--dir", type=Path, default=None, help=f"Screenshots directory (default: ${config.ENV_PATH} or auto-detected)")
    p.add_argument("--no-auto-detect", action="store_true", help="Do not look for ShareX settings")
    p.add_argument("--max-images", type=int, default=None, help=f"Images to keep cached (default {config.DEFAULT_MAX_IMAGES})")
    p.add_argument("--max-gifs", type=int, default=None, help=f"GIFs to keep cached (default {config.DEFAULT_MAX_ANIMATIONS})")
    p.add_argument("--max-frames", type=int, default=None, help=f"Frames sampled per GIF (default {config.DEFAULT_MAX_FRAMES_PER_ANIMATION})")
    p.add_argument("--no-recursive", action="store_true", help="Only look at the top level of the directory")
    p.add_argument("--save-dir", type=Path, default=None, help="Write returned images/frames into this folder")
    p.add_argument("--progress", action="store_true", help="Show a progress bar during the initial scan")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    sub = p.add_subparsers(dest="command", required=True)

    latest = sub.add_parser("latest", help="Most recent screenshot(s)")
    latest.add_argument("--count", type=int, default=1, help=f"How many (max {config.MAX_LATEST_IMAGES})")

    gif = sub.add_parser("gif", help="A GIF with sampled frames (1 = newest)")
    gif.add_argument("--index", type=int, default=1)

    sub.add_parser("gifs", help="List cached GIFs with their index numbers")

    get = sub.add_parser("get", help="A screenshot or GIF by filename")
    get.add_argument("filename")

    lst = sub.add_parser("list", help="List cached files with metadata")
    lst.add_argument("--limit", type=int, default=config.DEFAULT_LIST_LIMIT)

    extract = sub.add_parser("extract", help="Extract GIF frames with explicit limits")
    extract.add_argument("--filename", default=None, help="GIF to extract (default: newest)")
    extract.add_argument("--max-frames", dest="extract_max_frames", type=int, default=None)
    extract.add_argument("--stride", type=int, default=None, help="Take every Nth frame")

    sub.add_parser("watch", help="Keep the cache in sync and log changes until Ctrl-C")
    sub.add_parser("detect", help="Show the ShareX screenshots folder, if found")

    return p.parse_args(argv)


def build_config(args) -> ServiceConfig:
    return ServiceConfig.from_env(
        watched_directory=args.dir,
        auto_detect_watched_directory=False if args.no_auto_detect else None,
        max_images=args.max_images,
        max_animations=args.max_gifs,
        max_frames_per_animation=args.max_frames,
        recursive=False if args.no_recursive else None,
    )


def run_query(service: ShareXCacheService, args) -> QueryResult:
    q = service.queries
    if args.command == "latest":
        return q.latest_images(args.count)
    if args.command == "gif":
        return q.animation(args.index)
    if args.command == "gifs":
        return q.list_animations()
    if args.command == "get":
        return q.get_by_name(args.filename)
    if args.command == "list":
        return q.list_all(args.limit)
    if args.command == "extract":
        return q.extract_frames(args.filename, args.extract_max_frames, args.stride)
    raise ValueError(f"Unknown command: {args.command}")


def print_result(result: QueryResult, save_dir: Optional[Path] = None, out=None):
    """Prints text blocks; image blocks become a one-line summary (and a file when save_dir is set)."""
    out = out or sys.stdout
    if save_dir:
        save_dir.mkdir(parents=True, exist_ok=True)

    for block in result.content:
        if isinstance(block, TextBlock):
            print(block.text, file=out)
        elif isinstance(block, ImageBlock):
            line = f"[{block.mime_type}, {len(block.data)} bytes]"
            if save_dir:
                target = save_dir / block.name
                target.write_bytes(block.data)
                line += f" -> {target}"
            print(line, file=out)


def run_detect() -> int:
    if not detect_sharex():
        print("ShareX not found - pass --dir or set " + config.ENV_PATH)
        return 1
    info = get_sharex_info()
    if info.path is None:
        print("ShareX found, but its settings could not be read")
        return 1
    print(f"{info.path}{' (default)' if info.is_default else ''}")
    return 0


def run_watch(service: ShareXCacheService) -> int:
    if not service.is_watching:
        logging.error("Not watching anything; see earlier errors.")
        return 1
    logging.info("Watching for changes. Press Ctrl-C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logging.info("Stopping...")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if args.command == "detect":
        return run_detect()

    # 1. Config
    try:
        cfg = build_config(args)
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        return 2

    # 2. Execution
    service = ShareXCacheService(cfg)
    try:
        with service:
            service.start(watch=args.command == "watch", show_progress=args.progress)
            if args.command == "watch":
                return run_watch(service)

            result = run_query(service, args)
            print_result(result, args.save_dir)
            return 1 if result.is_error else 0
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except Exception:
        logging.exception("Fatal error.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
