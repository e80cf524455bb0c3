"""
Optional `<stem>.txt` sidecars supplying a title and description.
"""
import logging
from pathlib import Path
from typing import Tuple

from .. import config


def read_caption(media_path: Path) -> Tuple[str, str]:
    """
    Returns (title, description) for a media file.

    Two or more lines: first line is the title, the rest the description.
    One line: the stem is the title, the line is the description.
    No sidecar: the stem is the title, description is empty.
    """
    stem = media_path.stem
    txt_path = media_path.with_suffix(config.SIDECAR_EXT)
    if not txt_path.is_file():
        return stem, ""

    try:
        content = txt_path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        logging.warning(f"Could not read sidecar {txt_path.name}: {e}")
        return stem, ""

    lines = content.splitlines()
    if len(lines) >= 2:
        return lines[0].strip(), "\n".join(lines[1:]).strip()
    if len(lines) == 1:
        return stem, lines[0].strip()
    return stem, ""
