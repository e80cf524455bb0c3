import logging
from pathlib import Path
from typing import Dict, Iterable

from .metadata.dates import DateResolver
from .models import MediaEntry, ScannedMedia, SyncResult
from .scanning.filesystem import MediaScanner
from .storage.store import MetadataStore


class SyncEngine:
    """
    Reconciles the persisted metadata store with the media directory.

    Entries present on both sides are never re-resolved, which keeps dates
    stable across clones whose filesystem timestamps differ.
    """

    def __init__(self,
                 store: MetadataStore,
                 resolver: DateResolver = None,
                 scanner: MediaScanner = None):
        self.store = store
        self.resolver = resolver or DateResolver()
        self.scanner = scanner or MediaScanner()

    def update(self, media_dir: Path) -> SyncResult:
        """Scan + sync: the `update` operation."""
        scanned = self.scanner.scan(media_dir)
        return self.sync(scanned, media_dir)

    def sync(self, scanned: Iterable[ScannedMedia], media_dir: Path) -> SyncResult:
        """
        Applies removals then additions and persists the result once.

        Raises:
            StoreCorruptError: the existing store cannot be parsed.
        """
        current: Dict[str, MediaEntry] = self.store.load()
        scanned_by_name = {m.filename: m for m in scanned}

        removed = set(current) - set(scanned_by_name)
        to_add = set(scanned_by_name) - set(current)

        entries: Dict[str, MediaEntry] = {}
        for filename, entry in current.items():
            if filename in removed:
                logging.debug(f"Removing stale entry: {filename}")
                continue
            # Kind is derived from the name, the date is left untouched
            entry.media_kind = scanned_by_name[filename].media_kind
            entries[filename] = entry

        for filename in sorted(to_add):
            dt, source = self.resolver.resolve(media_dir / filename)
            logging.debug(f"Resolved {filename}: {dt.isoformat()} ({source})")
            entries[filename] = MediaEntry(
                filename=filename,
                media_kind=scanned_by_name[filename].media_kind,
                datetime=dt,
                date_source=source,
            )

        entries = dict(sorted(entries.items()))
        self.store.save(entries)

        result = SyncResult(entries=entries, added=to_add, removed=removed)
        logging.info(f"Metadata updated: {result.summary()}")
        return result
