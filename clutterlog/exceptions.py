"""
Custom exception hierarchy for clutterlog.

Per-file errors carry the offending filename so that the build can
aggregate them into its end-of-run report.
"""


class ClutterlogError(Exception):
    """Base exception for all clutterlog errors."""
    pass


class ScanError(ClutterlogError):
    """Raised when the media directory cannot be listed."""
    pass


class MetadataParseError(ClutterlogError):
    """Raised when embedded metadata is present but unreadable."""
    pass


class StoreCorruptError(ClutterlogError):
    """Raised when the persisted metadata store cannot be parsed."""
    pass


class MediaFileError(ClutterlogError):
    """Base for failures tied to a single media file."""

    def __init__(self, filename: str, message: str):
        super().__init__(f"{filename}: {message}")
        self.filename = filename
        self.message = message


class ThumbnailError(MediaFileError):
    """Raised when a static thumbnail cannot be decoded or encoded."""
    pass


class ExternalToolMissingError(MediaFileError):
    """Raised when the external transcoder executable is not installed."""
    pass


class TranscodeFailedError(MediaFileError):
    """Raised when the external transcoder exits non-zero or times out."""
    pass


class FileOperationError(MediaFileError):
    """Raised when copying a file into the output tree fails."""
    pass
