import os
import pytest
from datetime import datetime, timezone
from pathlib import Path
from PIL import Image

from clutterlog import config
from clutterlog.exceptions import ExternalToolMissingError


def write_image(path: Path, size=(800, 600), color=(0, 0, 255), fmt=None, mode='RGB') -> Path:
    """Writes a solid-colour image; format inferred from the extension unless given."""
    img = Image.new(mode, size, color)
    img.save(path, format=fmt)
    return path


def set_mtime(path: Path, dt: datetime) -> None:
    ts = dt.replace(tzinfo=timezone.utc).timestamp()
    os.utime(path, (ts, ts))


def fs_source(path: Path) -> str:
    """The filesystem provenance this platform reports for a file."""
    return config.FS_CREATED if getattr(path.stat(), 'st_birthtime', None) else config.FS_MODIFIED


class FakeTranscoder:
    """Stands in for ffmpeg: records calls and writes a placeholder artifact."""

    def __init__(self, payload: bytes = b"RIFF....WEBPfake"):
        self.payload = payload
        self.calls = []

    def invoke(self, source, dest, params):
        self.calls.append((source, dest, params))
        dest.write_bytes(self.payload)


class MissingTranscoder:
    def invoke(self, source, dest, params):
        raise ExternalToolMissingError(source.name, "'ffmpeg' is not installed or not on PATH")


@pytest.fixture
def site(tmp_path):
    """A site root with an empty media directory."""
    root = tmp_path / "site"
    (root / config.MEDIA_DIR).mkdir(parents=True)
    return root


@pytest.fixture
def media_dir(site):
    return site / config.MEDIA_DIR


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder()


@pytest.fixture
def no_exif(monkeypatch):
    """Makes exifread report no tags for every file."""
    import clutterlog.metadata.dates as dates_module
    monkeypatch.setattr(dates_module.exifread, "process_file", lambda f, details=False: {})
