"""
Error types raised by the image storage.
"""

from typing import Optional


class ImageStorageError(Exception):
    """Base class for storage errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ImageProcessingError(ImageStorageError):
    """
    The image codec failed or produced no output.

    Attributes:
        path: Source image path, when known
        cause: Underlying exception, when there is one
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message, cause)
        self.path = path


class StorageError(ImageStorageError):
    """A filesystem operation failed."""


class ConfigurationError(ImageStorageError, ValueError):
    """The storage was configured incorrectly."""
