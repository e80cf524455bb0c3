import json
import logging
import os
import shutil
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set
from urllib.parse import quote

from tqdm import tqdm

from . import config
from .exceptions import MediaFileError, FileOperationError
from .metadata.sidecar import read_caption
from .models import GalleryRecord, MediaEntry, SyncResult
from .reporting import BuildReport
from .storage.store import MetadataStore
from .sync import SyncEngine
from .thumbnails.animated import AnimatedThumbnailGenerator, FfmpegTranscoder, Transcoder
from .thumbnails.static import ThumbnailGenerator


class BuildStage(Enum):
    IDLE = 'idle'
    SCANNING = 'scanning'
    SYNCING = 'syncing'
    GENERATING = 'generating'
    COPYING = 'copying'
    DONE = 'done'


class BuildPipeline:
    """
    Sync, then derive thumbnails and copy originals into the output tree.

    Stages run strictly in order. Failures for a single file are recorded in
    the report and the pipeline moves on; scan and store failures propagate.
    """

    def __init__(self,
                 sync_engine: SyncEngine,
                 static_generator: Optional[ThumbnailGenerator] = None,
                 animated_generator: Optional[AnimatedThumbnailGenerator] = None,
                 max_workers: Optional[int] = None,
                 show_progress: bool = True):
        self.sync_engine = sync_engine
        self.static_generator = static_generator or ThumbnailGenerator()
        self.animated_generator = animated_generator or AnimatedThumbnailGenerator()
        self.max_workers = max_workers or os.cpu_count() or 1
        self.show_progress = show_progress
        self.stage = BuildStage.IDLE

    def run(self, media_dir: Path, output_dir: Path, base_url: str = "") -> BuildReport:
        start = time.monotonic()
        report = BuildReport()

        # --- Step 1: Scanning ---
        self._enter(BuildStage.SCANNING)
        scanned = self.sync_engine.scanner.scan(media_dir)

        # --- Step 2: Syncing ---
        # The store must match the directory before any thumbnail work starts
        self._enter(BuildStage.SYNCING)
        sync_result = self.sync_engine.sync(scanned, media_dir)
        report.added = len(sync_result.added)
        report.removed = len(sync_result.removed)
        entries = list(sync_result.entries.values())

        dest_media = output_dir / config.MEDIA_DIR
        dest_media.mkdir(parents=True, exist_ok=True)

        # Files whose outputs would overwrite each other are left out entirely
        failed = self._find_collisions(entries, report)
        buildable = [e for e in entries if e.filename not in failed]

        # --- Step 3: Generating ---
        self._enter(BuildStage.GENERATING)
        failed |= self._generate_all(buildable, media_dir, dest_media, report)

        # --- Step 4: Copying ---
        self._enter(BuildStage.COPYING)
        failed |= self._copy_all(buildable, media_dir, dest_media, report)

        self._enter(BuildStage.DONE)
        report.records = [
            self._make_record(entry, media_dir, base_url)
            for entry in entries
            if entry.filename not in failed
        ]
        report.elapsed_seconds = time.monotonic() - start

        if report.failures:
            logging.warning(f"Build finished with {report.items_failed} failed file(s)")
        logging.info(f"Build complete: {report.items_processed} items in {report.elapsed_seconds:.1f}s")
        return report

    def _enter(self, stage: BuildStage) -> None:
        logging.info(f"Build stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    def _find_collisions(self, entries: List[MediaEntry], report: BuildReport) -> Set[str]:
        """
        Maps every planned output name (original and thumbnail) to the files
        producing it. Returns the filenames sharing an output with another file.
        """
        producers: Dict[str, List[str]] = defaultdict(list)
        for entry in entries:
            producers[entry.filename].append(entry.filename)
            producers[entry.thumb_filename()].append(entry.filename)

        colliding: Set[str] = set()
        for output_name, owners in sorted(producers.items()):
            if len(owners) < 2:
                continue
            for owner in owners:
                others = ", ".join(o for o in owners if o != owner)
                message = f"output '{output_name}' is also produced by {others}"
                logging.error(f"Output collision for {owner}: {message}")
                report.add_failure(owner, BuildStage.GENERATING.value, message)
                colliding.add(owner)
        return colliding

    def _generate_all(self,
                      entries: List[MediaEntry],
                      media_dir: Path,
                      dest_media: Path,
                      report: BuildReport) -> Set[str]:
        """Generates every thumbnail on a bounded pool. Returns failed filenames."""
        failed: Set[str] = set()
        if not entries:
            return failed

        logging.info(f"Generating {len(entries)} thumbnails with {self.max_workers} workers")
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_entry = {
                executor.submit(self._generate_one, entry, media_dir, dest_media): entry
                for entry in entries
            }
            for future in tqdm(as_completed(future_to_entry), total=len(future_to_entry),
                               desc="Generating", disable=not self.show_progress):
                entry = future_to_entry[future]
                try:
                    report.total_thumb_bytes += future.result()
                except MediaFileError as e:
                    logging.error(f"Thumbnail failed for {entry.filename}: {e.message}")
                    report.add_failure(entry.filename, BuildStage.GENERATING.value, e.message)
                    failed.add(entry.filename)
                except OSError as e:
                    logging.error(f"Thumbnail failed for {entry.filename}: {e}")
                    report.add_failure(entry.filename, BuildStage.GENERATING.value, str(e))
                    failed.add(entry.filename)
        return failed

    def _generate_one(self, entry: MediaEntry, media_dir: Path, dest_media: Path) -> int:
        source = media_dir / entry.filename
        thumb_path = dest_media / entry.thumb_filename()

        if entry.is_animated:
            self.animated_generator.generate(source, thumb_path)
        else:
            self.static_generator.generate(source, thumb_path)
        return thumb_path.stat().st_size

    def _copy_all(self,
                  entries: List[MediaEntry],
                  media_dir: Path,
                  dest_media: Path,
                  report: BuildReport) -> Set[str]:
        failed: Set[str] = set()
        for entry in tqdm(entries, desc="Copying", disable=not self.show_progress):
            try:
                report.total_media_bytes += self._copy_one(entry, media_dir, dest_media)
            except FileOperationError as e:
                logging.error(f"Copy failed for {entry.filename}: {e.message}")
                report.add_failure(entry.filename, BuildStage.COPYING.value, e.message)
                failed.add(entry.filename)
        return failed

    def _copy_one(self, entry: MediaEntry, media_dir: Path, dest_media: Path) -> int:
        src = media_dir / entry.filename
        dest = dest_media / entry.filename
        try:
            shutil.copy2(src, dest)
            return dest.stat().st_size
        except OSError as e:
            raise FileOperationError(entry.filename, f"copy to {dest} failed: {e}") from e

    def _make_record(self, entry: MediaEntry, media_dir: Path, base_url: str) -> GalleryRecord:
        title, description = read_caption(media_dir / entry.filename)
        return GalleryRecord(
            filename=entry.filename,
            title=title,
            description=description,
            datetime=entry.datetime,
            image_url=media_url(base_url, entry.filename),
            thumb_url=media_url(base_url, entry.thumb_filename()),
        )


def media_url(base_url: str, filename: str) -> str:
    """URL of a file in the output media directory; relative when base_url is empty."""
    path = f"{config.MEDIA_DIR}/{quote(filename)}"
    base = base_url.rstrip('/')
    return f"{base}/{path}" if base else path


def write_gallery(records: List[GalleryRecord], output_dir: Path) -> Path:
    """Writes the records handed to the templating stage as JSON."""
    path = output_dir / config.GALLERY_FILE
    payload = [r.to_dict() for r in records]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding='utf-8')
    return path


class ClutterlogApp:
    """
    Entry point for a site directory laid out as:

        <site>/media/                   source media (flat)
        <site>/.clutterlog/metamedia.json
        <site>/build/                   default output
    """

    def __init__(self, site_root: Path, store: Optional[MetadataStore] = None):
        self.site_root = site_root
        self.media_dir = site_root / config.MEDIA_DIR
        self.store = store or MetadataStore.for_site(site_root)
        self.sync_engine = SyncEngine(self.store)

    def update(self) -> SyncResult:
        """Reconciles the metadata store with the media directory."""
        logging.info(f"Updating metadata for {self.media_dir}")
        return self.sync_engine.update(self.media_dir)

    def build(self,
              output_dir: Optional[Path] = None,
              base_url: str = "",
              size: int = config.THUMB_SIZE,
              max_workers: Optional[int] = None,
              max_transcodes: int = config.MAX_CONCURRENT_TRANSCODES,
              transcode_timeout: float = config.FFMPEG_TIMEOUT_SEC,
              transcoder: Optional[Transcoder] = None,
              show_progress: bool = True) -> BuildReport:
        """
        Runs sync and the full pipeline, then writes the gallery data.
        """
        output_dir = output_dir or self.site_root / config.BUILD_DIR
        logging.info(f"Building {self.site_root} -> {output_dir}")

        pipeline = BuildPipeline(
            self.sync_engine,
            static_generator=ThumbnailGenerator(size=size),
            animated_generator=AnimatedThumbnailGenerator(
                transcoder=transcoder or FfmpegTranscoder(timeout=transcode_timeout),
                size=size,
                max_concurrent=max_transcodes,
            ),
            max_workers=max_workers,
            show_progress=show_progress,
        )
        report = pipeline.run(self.media_dir, output_dir, base_url)
        gallery_path = write_gallery(report.records, output_dir)
        logging.info(f"Gallery data written to {gallery_path}")
        return report
