import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .core import ClutterlogApp
from .exceptions import ClutterlogError


def setup_logging(site_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the site state directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    state_dir = site_root / config.STATE_DIR
    state_dir.mkdir(parents=True, exist_ok=True)
    log_file = state_dir / config.LOG_FILE

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(prog="clutterlog", description="Media ingestion and thumbnail pipeline")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = p.add_subparsers(dest="command", required=True)

    update_p = sub.add_parser("update", help="Sync stored media dates with the media directory")
    update_p.add_argument("--site", type=Path, default=Path("."), help="Site root (default: current directory)")

    build_p = sub.add_parser("build", help="Sync, then generate thumbnails and copy media")
    build_p.add_argument("--site", type=Path, default=Path("."), help="Site root (default: current directory)")
    build_p.add_argument("-o", "--output", type=Path, default=None, help="Output directory (default: site/build)")
    build_p.add_argument("--base-url", default="", help="Prefix for image and thumbnail URLs")
    build_p.add_argument("--size", type=int, default=config.THUMB_SIZE, help="Thumbnail edge in pixels")
    build_p.add_argument("--workers", type=int, default=None, help="Parallel workers (default: CPU count)")
    build_p.add_argument("--transcodes", type=int, default=config.MAX_CONCURRENT_TRANSCODES,
                         help="Max concurrent ffmpeg processes")
    build_p.add_argument("--timeout", type=float, default=config.FFMPEG_TIMEOUT_SEC,
                         help="Seconds before an ffmpeg run is abandoned")
    build_p.add_argument("--no-progress", action="store_true", help="Hide progress bars")

    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    site_root = args.site.resolve()

    try:
        setup_logging(site_root, args.verbose)
        logging.info(f"Site: {site_root}")

        app = ClutterlogApp(site_root)

        if args.command == "update":
            result = app.update()
            print(result.summary())
            return 0

        report = app.build(
            output_dir=args.output.resolve() if args.output else None,
            base_url=args.base_url,
            size=args.size,
            max_workers=args.workers,
            max_transcodes=args.transcodes,
            transcode_timeout=args.timeout,
            show_progress=not args.no_progress,
        )
        print(report.format())
        return 0 if report.ok else 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except (ClutterlogError, OSError):
        logging.exception(f"Fatal error during {args.command}.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
