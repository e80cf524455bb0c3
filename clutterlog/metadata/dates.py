import logging
import os
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Tuple

import exifread

from .. import config
from ..exceptions import MetadataParseError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DateResolver:
    """
    Produces a single best-guess creation timestamp for a media file.

    Fallback chain, first success wins:
      1-3. EXIF DateTimeOriginal -> DateTimeDigitized -> DateTime (via 'exifread')
      4.   Filesystem creation time, where the platform reports one
      5.   Filesystem modification time

    EXIF timestamps carry no zone; they are read as UTC so a file resolves
    to the same instant on every machine.
    """

    def resolve(self, path: Path) -> Tuple[datetime, str]:
        """
        Returns:
            (datetime, date_source). Never raises.
        """
        if path.suffix.lower() in config.EXIF_EXTS:
            try:
                found = self._date_from_exif(self._read_exif_tags(path))
                if found:
                    return found
            except MetadataParseError as e:
                logging.debug(f"Ignoring unreadable EXIF in {path.name}: {e}")

        try:
            stat_result = path.stat()
        except OSError as e:
            logging.warning(f"Could not stat {path}: {e}")
            return EPOCH, config.FS_MODIFIED

        return self._date_from_stat(stat_result)

    def _read_exif_tags(self, path: Path) -> dict:
        try:
            with path.open('rb') as f:
                # details=False skips makernotes and thumbnails
                return exifread.process_file(f, details=False)
        except Exception as e:
            raise MetadataParseError(str(e)) from e

    def _date_from_exif(self, tags) -> Optional[Tuple[datetime, str]]:
        for tag, source in config.DATE_TAGS:
            if tag not in tags:
                continue
            dt = self._parse_exif_date(str(tags[tag]))
            if dt:
                return dt, source
        return None

    def _parse_exif_date(self, value: str) -> Optional[datetime]:
        """
        Parses "YYYY:MM:DD HH:MM:SS". Sub-seconds and NUL padding are
        dropped; blank or malformed values count as absent.
        """
        clean = value.replace('\x00', '').strip()
        if '.' in clean:
            clean = clean.split('.')[0]
        try:
            naive = datetime.strptime(clean[:19], "%Y:%m:%d %H:%M:%S")
        except ValueError:
            return None
        return naive.replace(tzinfo=timezone.utc)

    def _date_from_stat(self, stat_result: os.stat_result) -> Tuple[datetime, str]:
        birthtime = getattr(stat_result, 'st_birthtime', None)
        if birthtime:
            return self._from_timestamp(birthtime), config.FS_CREATED
        return self._from_timestamp(stat_result.st_mtime), config.FS_MODIFIED

    @staticmethod
    def _from_timestamp(ts: float) -> datetime:
        return datetime.fromtimestamp(int(ts), tz=timezone.utc)
