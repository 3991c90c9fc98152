"""
PillowCodec - Image codec implemented with Pillow.
"""

import io
import logging
import os
import re
from typing import Optional, Tuple

from PIL import Image, ImageSequence, UnidentifiedImageError

from .codec import ImageCodec, ImageSource, format_for_media_type, size_of, temporary_path
from .errors import ImageProcessingError
from .metadata import ImageMetadata
from .thumbnails import ThumbnailSpec

GEOMETRY_PATTERN = re.compile(r'^\s*(\d*)(?:x(\d*))?')


class PillowCodec(ImageCodec):
    """
    Identifies, resizes and converts images using Pillow.

    Thumbnails keep their aspect ratio and are never upscaled.
    """

    def __init__(self, quality: int = 82, logger: Optional[logging.Logger] = None):
        """
        Initialize codec.

        Args:
            quality: JPEG/WebP quality for output (default: 82)
            logger: Optional logger instance
        """
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)

    def _open(self, source: ImageSource) -> Image.Image:
        path = source if isinstance(source, str) else None
        try:
            if path is None:
                return Image.open(io.BytesIO(bytes(source)))
            return Image.open(path)
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Can't read image: {e}", path, e) from e

    def identify(self, source: ImageSource) -> ImageMetadata:
        with self._open(source) as img:
            media_type = Image.MIME.get(img.format or '', '')
            width, height = img.size
        return ImageMetadata(
            format=format_for_media_type(media_type),
            media_type=media_type,
            size=size_of(source),
            width=width,
            height=height,
        )

    def resize(self, src_path: str, dest_path: str, spec: ThumbnailSpec) -> None:
        output_format = self._get_output_format(dest_path)
        try:
            with self._open(src_path) as img:
                img.seek(0)
                thumb = img.copy()
            thumb.thumbnail(self._parse_geometry(spec.size, thumb.size), Image.Resampling.LANCZOS)
            self._save(thumb, dest_path, output_format, progressive=spec.progressive)
        except ImageProcessingError:
            raise
        except (OSError, ValueError, KeyError) as e:
            self.logger.error(f"Error generating thumbnail: {e}")
            raise ImageProcessingError(f"Error during resizing: {e}", src_path, e) from e

        if not os.path.exists(dest_path):
            raise ImageProcessingError("Error during resizing: no output written", src_path)

    def convert(self, src_path: str, format: str) -> bytes:
        output_format = self._get_output_format(f".{format}")
        with temporary_path(suffix=f".{format}") as tmp_path:
            try:
                with self._open(src_path) as img:
                    frame = next(iter(ImageSequence.Iterator(img))).copy()
                self._save(frame, tmp_path, output_format)
            except ImageProcessingError:
                raise
            except (OSError, ValueError, KeyError) as e:
                raise ImageProcessingError(f"Error during conversion to {format}: {e}", src_path, e) from e
            with open(tmp_path, 'rb') as f:
                return f.read()

    def _save(self, img: Image.Image, path: str, output_format: str, progressive: bool = False) -> None:
        if output_format == 'JPEG':
            img = self._convert_color_mode(img)
            img.save(path, format='JPEG', quality=self.quality, optimize=True, progressive=progressive)
        elif output_format == 'PNG':
            img.save(path, format='PNG', optimize=True)
        elif output_format == 'GIF':
            img.save(path, format='GIF', interlace=progressive)
        elif output_format == 'WEBP':
            img.save(path, format='WEBP', quality=self.quality)
        else:
            if output_format == 'BMP' and img.mode not in ('1', 'L', 'P', 'RGB'):
                img = self._convert_color_mode(img)
            img.save(path, format=output_format)

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Flatten onto white and convert to RGB for formats without alpha."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode == 'P':
            img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img

    @staticmethod
    def _get_output_format(path: str) -> str:
        """Pillow format name for a path's extension."""
        ext = os.path.splitext(path)[1].lower()
        output_format = Image.registered_extensions().get(ext)
        if not output_format:
            raise ImageProcessingError(f"Unsupported output format: {ext or path}")
        return output_format

    @staticmethod
    def _parse_geometry(size, current: Tuple[int, int]) -> Tuple[int, int]:
        """
        Bounding box for an ImageMagick-style geometry ('128', '128x96', 'x96').
        """
        if isinstance(size, int):
            return size, size
        match = GEOMETRY_PATTERN.match(str(size))
        width, height = match.group(1), match.group(2)
        if not width and not height:
            raise ValueError(f"Invalid geometry: {size!r}")
        if match.group(2) is None:
            height = width
        return (
            int(width) if width else current[0],
            int(height) if height else current[1],
        )
