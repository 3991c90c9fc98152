"""
Sharded image storage with generated thumbnails.

Images are saved under generated ids, spread over two levels of shard
directories, and get a configurable set of thumbnails produced by an
image codec (ImageMagick by default, or Pillow).
"""

__version__ = "1.0.0"

from .errors import ImageStorageError, ImageProcessingError, StorageError, ConfigurationError
from .metadata import ImageMetadata
from .thumbnails import ThumbnailSpec, ThumbnailSource, StaticThumbnails, DynamicThumbnails
from .codec import ImageCodec, MagickCodec
from .pillow_codec import PillowCodec
from .events import ResizeEvent, ResizeAllEvent, ResizeAllProgressEvent
from .progress import ProgressReporter, LoggingProgress
from .config import StorageConfig
from .paths import ORIGINAL
from .storage import ImageStorage, create_storage

__all__ = [
    "ImageStorageError",
    "ImageProcessingError",
    "StorageError",
    "ConfigurationError",
    "ImageMetadata",
    "ThumbnailSpec",
    "ThumbnailSource",
    "StaticThumbnails",
    "DynamicThumbnails",
    "ImageCodec",
    "MagickCodec",
    "PillowCodec",
    "ResizeEvent",
    "ResizeAllEvent",
    "ResizeAllProgressEvent",
    "ProgressReporter",
    "LoggingProgress",
    "StorageConfig",
    "ORIGINAL",
    "ImageStorage",
    "create_storage",
]
