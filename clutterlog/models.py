from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import Optional, Set, Dict

from . import config


@dataclass(frozen=True)
class ScannedMedia:
    """
    A supported media file found in the media directory.
    """
    filename: str
    media_kind: str


@dataclass
class MediaEntry:
    """
    One record per media file. `filename` is the sole key.
    """
    filename: str
    media_kind: Optional[str]   # static-image/animated-image/video, None if unsupported
    datetime: datetime          # UTC, whole seconds
    date_source: str            # provenance only, never used for ordering

    @property
    def is_animated(self) -> bool:
        return self.media_kind in (config.ANIMATED_IMAGE, config.VIDEO)

    def thumb_filename(self) -> str:
        """
        Deterministic thumbnail name: `<stem>_thumb.<ext>`.
        Animated sources always produce the animated output format.
        """
        path = PurePath(self.filename)
        ext = config.ANIMATED_THUMB_EXT if self.is_animated else path.suffix.lower()
        return f"{path.stem}{config.THUMB_SUFFIX}{ext}"


@dataclass
class SyncResult:
    entries: Dict[str, MediaEntry]
    added: Set[str] = field(default_factory=set)
    removed: Set[str] = field(default_factory=set)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)

    def summary(self) -> str:
        return f"{len(self.added)} added, {len(self.removed)} removed"


@dataclass
class GalleryRecord:
    """
    Data handed to the templating collaborator for one media file.
    """
    filename: str
    title: str
    description: str
    datetime: datetime
    image_url: str
    thumb_url: str

    def to_dict(self) -> dict:
        return {
            'filename': self.filename,
            'title': self.title,
            'description': self.description,
            'datetime': self.datetime.strftime("%Y-%m-%dT%H:%M:%S"),
            'image_url': self.image_url,
            'thumb_url': self.thumb_url,
        }


@dataclass
class BuildFailure:
    filename: str
    stage: str      # generating/copying
    message: str
