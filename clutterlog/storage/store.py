"""
Persisted mapping from media filename to its resolved date.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

from .. import config
from ..exceptions import StoreCorruptError
from ..models import MediaEntry


class MetadataStore:
    """
    JSON document, one entry per filename, sorted by filename so that the
    file is stable under git and byte-identical across no-op saves:

        {"media": {"a.jpg": {"date_source": "exif-original",
                             "datetime": "2024-01-01T10:00:00+00:00"}},
         "version": 1}
    """

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def for_site(cls, site_root: Path) -> 'MetadataStore':
        return cls(site_root / config.STATE_DIR / config.STORE_FILE)

    def load(self) -> Dict[str, MediaEntry]:
        """Returns the stored entries, or an empty mapping if no store exists yet."""
        if not self.path.exists():
            logging.debug(f"No metadata store at {self.path}, starting empty")
            return {}

        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreCorruptError(f"Failed to parse {self.path}: {e}") from e

        if not isinstance(data, dict) or set(data) != {'version', 'media'}:
            raise StoreCorruptError(
                f"Failed to parse {self.path}: expected exactly 'version' and 'media' keys"
            )
        if data['version'] != config.STORE_VERSION:
            raise StoreCorruptError(
                f"Failed to parse {self.path}: unsupported version {data['version']!r}"
            )
        if not isinstance(data['media'], dict):
            raise StoreCorruptError(f"Failed to parse {self.path}: expected a 'media' table")

        entries: Dict[str, MediaEntry] = {}
        for filename, raw in sorted(data['media'].items()):
            entries[filename] = self._entry_from_dict(filename, raw)
        return entries

    def save(self, entries: Dict[str, MediaEntry]) -> None:
        """
        Writes atomically: a crash mid-write leaves the previous store intact.
        """
        document = {
            'version': config.STORE_VERSION,
            'media': {
                filename: self._entry_to_dict(entry)
                for filename, entry in sorted(entries.items())
            },
        }
        content = json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False) + "\n"

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logging.debug(f"Saved {len(entries)} entries to {self.path}")

    # --- Serialization Helpers ---

    def _entry_to_dict(self, entry: MediaEntry) -> dict:
        dt = entry.datetime.astimezone(timezone.utc).replace(microsecond=0)
        return {
            'datetime': dt.isoformat(),
            'date_source': entry.date_source,
        }

    def _entry_from_dict(self, filename: str, raw) -> MediaEntry:
        if not isinstance(raw, dict):
            raise StoreCorruptError(f"{self.path}: entry '{filename}' is not a table")

        try:
            dt_str = raw['datetime']
            source = raw['date_source']
        except KeyError as e:
            raise StoreCorruptError(f"{self.path}: entry '{filename}' is missing {e}") from e

        if source not in config.DATE_SOURCES:
            raise StoreCorruptError(
                f"{self.path}: entry '{filename}' has unknown date_source '{source}'"
            )

        return MediaEntry(
            filename=filename,
            media_kind=config.kind_for(filename),
            datetime=self._parse_datetime(filename, dt_str),
            date_source=source,
        )

    def _parse_datetime(self, filename: str, value) -> datetime:
        """Accepts ISO-8601 with an offset, a 'Z' suffix, or no zone (read as UTC)."""
        if not isinstance(value, str):
            raise StoreCorruptError(f"{self.path}: entry '{filename}' has a non-string datetime")
        clean = value.strip()
        if clean.endswith('Z'):
            clean = clean[:-1] + '+00:00'
        try:
            dt = datetime.fromisoformat(clean)
        except ValueError as e:
            raise StoreCorruptError(
                f"{self.path}: entry '{filename}' has invalid datetime '{value}'"
            ) from e
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
