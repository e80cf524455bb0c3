"""
ThumbnailGenerator - square center-cropped thumbnails for still images.
"""
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .. import config
from ..exceptions import ThumbnailError


def center_crop_box(width: int, height: int) -> Tuple[int, int, int, int]:
    """
    Largest centered square inside a width x height image.

    Returns:
        (left, top, right, bottom) as accepted by Image.crop
    """
    crop = min(width, height)
    left = (width - crop) // 2
    top = (height - crop) // 2
    return left, top, left + crop, top + crop


class ThumbnailGenerator:
    """
    Crops the longer axis symmetrically, then resamples the square with
    Lanczos to size x size. Output is written in the source's raster format.
    """

    FORMATS = {
        '.jpg': 'JPEG',
        '.jpeg': 'JPEG',
        '.png': 'PNG',
        '.webp': 'WEBP',
    }

    def __init__(self, size: int = config.THUMB_SIZE, quality: int = config.JPEG_QUALITY):
        self.size = size
        self.quality = quality

    def generate(self, source: Path, dest: Path) -> None:
        """
        Raises:
            ThumbnailError: the source cannot be decoded or the thumbnail encoded.
        """
        output_format = self._get_output_format(source.suffix)
        try:
            with Image.open(source) as img:
                img = ImageOps.exif_transpose(img)
                thumb = img.crop(center_crop_box(*img.size)).resize(
                    (self.size, self.size), Image.Resampling.LANCZOS
                )
                # Source metadata (exif, icc_profile) must not reach the encoder
                thumb.info = {}
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ThumbnailError(source.name, f"cannot decode image: {e}") from e

        try:
            self._save(thumb, dest, output_format)
        except (OSError, ValueError) as e:
            raise ThumbnailError(source.name, f"cannot write thumbnail: {e}") from e

        logging.debug(f"Thumbnail written: {dest.name}")

    def _save(self, img: Image.Image, dest: Path, output_format: str) -> None:
        if output_format == 'JPEG':
            img = self._convert_color_mode(img)
            img.save(dest, format='JPEG', quality=self.quality)
        elif output_format == 'PNG':
            img.save(dest, format='PNG')
        else:
            img.save(dest, format='WEBP', quality=self.quality, method=4)

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """JPEG has no alpha; flatten onto white."""
        if img.mode == 'P':
            img = img.convert('RGBA')
        if img.mode in ('RGBA', 'LA'):
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    def _get_output_format(self, extension: str) -> str:
        return self.FORMATS.get(extension.lower(), 'JPEG')
