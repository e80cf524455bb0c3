import os
import logging
from pathlib import Path
from typing import List

from .. import config
from ..exceptions import ScanError
from ..models import ScannedMedia


class MediaScanner:
    """
    Lists a flat media directory and classifies entries by extension.
    """

    def scan(self, directory: Path) -> List[ScannedMedia]:
        """
        Returns supported media files sorted by filename.

        os.scandir order is platform-specific, so the result is sorted here
        and nowhere else.

        Raises:
            ScanError: the directory exists but cannot be listed.
        """
        if not directory.exists():
            logging.warning(f"Media directory {directory} does not exist; treating as empty")
            return []

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            raise ScanError(f"Cannot list media directory {directory}: {e}") from e

        found = []
        for e in entries:
            if not e.is_file(follow_symlinks=True):
                continue
            # AppleDouble metadata files masquerade as media
            if e.name.startswith("._"):
                continue

            kind = config.kind_for(e.name)
            if kind is None:
                logging.debug(f"Skipping unsupported file: {e.name}")
                continue
            found.append(ScannedMedia(filename=e.name, media_kind=kind))

        found.sort(key=lambda m: m.filename)
        logging.info(f"Scanned {directory}: {len(found)} media files")
        return found
