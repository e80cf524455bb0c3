"""
Configuration constants for clutterlog.
"""

# --- Media Kinds ---
STATIC_IMAGE = 'static-image'
ANIMATED_IMAGE = 'animated-image'
VIDEO = 'video'

# --- File Type Definitions ---
STATIC_IMAGE_EXTS = {'.png', '.jpg', '.jpeg', '.webp'}
ANIMATED_IMAGE_EXTS = {'.gif'}
VIDEO_EXTS = {'.mp4', '.webm'}

# Extension to Kind Mapping
# Classification is by extension only, never by content sniffing
EXT_TO_KIND = {}
for ext in STATIC_IMAGE_EXTS: EXT_TO_KIND[ext] = STATIC_IMAGE
for ext in ANIMATED_IMAGE_EXTS: EXT_TO_KIND[ext] = ANIMATED_IMAGE
for ext in VIDEO_EXTS: EXT_TO_KIND[ext] = VIDEO

# Formats that can carry an EXIF block readable by exifread
EXIF_EXTS = {'.jpg', '.jpeg', '.webp', '.png'}

# --- Date Provenance ---
EXIF_ORIGINAL = 'exif-original'
EXIF_DIGITIZED = 'exif-digitized'
EXIF_DATETIME = 'exif-datetime'
FS_CREATED = 'fs-created'
FS_MODIFIED = 'fs-modified'

DATE_SOURCES = (EXIF_ORIGINAL, EXIF_DIGITIZED, EXIF_DATETIME, FS_CREATED, FS_MODIFIED)

# Checked in order, first parseable tag wins
DATE_TAGS = [
    ('EXIF DateTimeOriginal', EXIF_ORIGINAL),
    ('EXIF DateTimeDigitized', EXIF_DIGITIZED),
    ('Image DateTime', EXIF_DATETIME),
]

# --- Thumbnails ---
THUMB_SIZE = 350
THUMB_SUFFIX = '_thumb'
ANIMATED_THUMB_EXT = '.webp'
JPEG_QUALITY = 85
LOOP_DURATION_SEC = 2.0

# --- External Transcoder ---
FFMPEG_BIN = 'ffmpeg'
FFMPEG_TIMEOUT_SEC = 120
MAX_CONCURRENT_TRANSCODES = 2

# --- Site Layout ---
MEDIA_DIR = 'media'
BUILD_DIR = 'build'
STATE_DIR = '.clutterlog'
STORE_FILE = 'metamedia.json'
STORE_VERSION = 1
LOG_FILE = 'clutterlog.log'
GALLERY_FILE = 'gallery.json'
SIDECAR_EXT = '.txt'


def kind_for(filename: str):
    """Returns the media kind for a filename, or None if unsupported."""
    dot = filename.rfind('.')
    if dot <= 0:
        return None
    return EXT_TO_KIND.get(filename[dot:].lower())
