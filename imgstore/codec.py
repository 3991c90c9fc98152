"""
Image codec gateway - identify, resize and convert images.

MagickCodec shells out to ImageMagick and file(1) through sh.
"""

import logging
import os
import re
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple, Union

import sh

from .errors import ImageProcessingError
from .metadata import ImageMetadata
from .thumbnails import ThumbnailSpec

ImageSource = Union[bytes, str]

# MIME type -> format token (also used as the file extension)
MEDIA_TYPES = {
    'image/jpeg': 'jpeg',
    'image/pjpeg': 'jpeg',
    'image/png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
    'image/tiff': 'tiff',
    'image/bmp': 'bmp',
    'image/x-bmp': 'bmp',
    'image/x-ms-bmp': 'bmp',
    'image/avif': 'avif',
    'image/heic': 'heic',
    'image/heif': 'heif',
    'image/jp2': 'jp2',
    'image/svg+xml': 'svg',
    'image/x-icon': 'ico',
    'image/vnd.microsoft.icon': 'ico',
    'image/x-portable-pixmap': 'ppm',
    'image/x-portable-graymap': 'pgm',
    'image/x-portable-bitmap': 'pbm',
    'image/x-tga': 'tga',
    'image/x-xcf': 'xcf',
}

DIMENSIONS_PATTERN = re.compile(r'^(\d+)x(\d+)')


def format_for_media_type(media_type: str) -> str:
    """Format token for a MIME type, or '' if unknown."""
    return MEDIA_TYPES.get(media_type.strip().lower(), '')


def size_of(source: ImageSource) -> int:
    """Byte size of a buffer or file."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return len(source)
    return os.path.getsize(source)


@contextmanager
def temporary_path(suffix: str = '') -> Iterator[str]:
    """
    Yield a temp file path that is deleted on exit, success or failure.
    """
    fd, tmp_path = tempfile.mkstemp(prefix='imgstore_', suffix=suffix)
    os.close(fd)
    try:
        yield tmp_path
    finally:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass


class ImageCodec:
    """
    External image-processing capability.

    Implementations are blocking; the storage engine runs them off the event loop.
    """

    def identify(self, source: ImageSource) -> ImageMetadata:
        """Determine format, media type, byte size and dimensions."""
        raise NotImplementedError

    def resize(self, src_path: str, dest_path: str, spec: ThumbnailSpec) -> None:
        """Write a thumbnail of src_path to dest_path."""
        raise NotImplementedError

    def convert(self, src_path: str, format: str) -> bytes:
        """Render the first frame of src_path in another format."""
        raise NotImplementedError


class MagickCodec(ImageCodec):
    """
    ImageMagick-backed codec.

    The resize pipeline is fixed: triangle filter, light unsharp, posterize,
    tuned JPEG/PNG compression, stripped metadata, sRGB.
    """

    def __init__(
        self,
        convert_bin: str = 'convert',
        identify_bin: str = 'identify',
        file_bin: str = 'file',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the codec.

        Args:
            convert_bin: ImageMagick convert executable
            identify_bin: ImageMagick identify executable
            file_bin: file(1) executable used for MIME detection
            logger: Optional logger instance
        """
        self.convert_bin = convert_bin
        self.identify_bin = identify_bin
        self.file_bin = file_bin
        self.logger = logger or logging.getLogger(__name__)

    def _command(self, name: str, path: Optional[str] = None) -> sh.Command:
        try:
            return sh.Command(name)
        except sh.CommandNotFound as e:
            raise ImageProcessingError(f"Command not found: {name}", path, e) from e

    def _run(self, name: str, *args, path: Optional[str] = None, stdin: Optional[bytes] = None):
        """Run a command and return the finished sh.RunningCommand."""
        command = self._command(name, path)
        kwargs = {'_return_cmd': True}
        if stdin is not None:
            kwargs['_in'] = stdin
        self.logger.debug(f"Running: {name} {' '.join(str(a) for a in args)}")
        try:
            return command(*args, **kwargs)
        except sh.ErrorReturnCode as e:
            stderr = _decode(e.stderr).strip()
            message = f"{name} failed"
            if stderr:
                message = f"{message}: {stderr}"
            raise ImageProcessingError(message, path, e) from e

    def get_dimensions(self, source: ImageSource) -> Tuple[int, int]:
        """Width and height of the first frame."""
        is_buffer = not isinstance(source, str)
        path = None if is_buffer else source
        result = self._run(
            self.identify_bin, '-format', '%wx%h ', '-' if is_buffer else source,
            path=path, stdin=bytes(source) if is_buffer else None
        )
        match = DIMENSIONS_PATTERN.match(_decode(result.stdout))
        if not match:
            stderr = _decode(result.stderr).strip()
            message = "Can't determine image dimensions"
            if stderr:
                message = f"{message}: {stderr}"
            raise ImageProcessingError(message, path)
        return int(match.group(1)), int(match.group(2))

    def get_media_type(self, source: ImageSource) -> str:
        """MIME type as reported by file(1)."""
        is_buffer = not isinstance(source, str)
        result = self._run(
            self.file_bin, '-b', '-k', '-n', '-r', '--mime-type', '-' if is_buffer else source,
            path=None if is_buffer else source,
            stdin=bytes(source) if is_buffer else None
        )
        return _decode(result.stdout).strip().split('\n')[0].strip()

    def identify(self, source: ImageSource) -> ImageMetadata:
        width, height = self.get_dimensions(source)
        media_type = self.get_media_type(source)
        return ImageMetadata(
            format=format_for_media_type(media_type),
            media_type=media_type,
            size=size_of(source),
            width=width,
            height=height,
        )

    def resize(self, src_path: str, dest_path: str, spec: ThumbnailSpec) -> None:
        result = self._run(
            self.convert_bin,
            src_path,
            '-filter', 'Triangle',
            '-define', 'filter:support=2',
            '-resize', f"{spec.size}x{spec.size}",
            '-unsharp', '0.25x0.25+8+0.065',
            '-dither', 'None',
            '-posterize', '136',
            '-quality', '82',
            '-define', 'jpeg:fancy-upsampling=off',
            '-define', 'png:compression-filter=5',
            '-define', 'png:compression-level=9',
            '-define', 'png:compression-strategy=1',
            '-define', 'png:exclude-chunk=all',
            '-interlace', 'Plane' if spec.progressive else 'None',
            '-colorspace', 'sRGB',
            '-strip',
            dest_path,
            path=src_path
        )
        if not os.path.exists(dest_path):
            stderr = _decode(result.stderr).strip()
            raise ImageProcessingError(f"Error during resizing: {stderr}", src_path)

    def convert(self, src_path: str, format: str) -> bytes:
        with temporary_path() as tmp_path:
            self._run(self.convert_bin, f"{src_path}[0]", f"{format}:{tmp_path}", path=src_path)
            with open(tmp_path, 'rb') as f:
                data = f.read()
        if not data:
            raise ImageProcessingError(f"Error during conversion to {format}", src_path)
        return data


def _decode(output) -> str:
    if output is None:
        return ''
    if isinstance(output, bytes):
        return output.decode('utf-8', errors='replace')
    return str(output)
