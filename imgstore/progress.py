"""
Progress reporting for thumbnail generation.
"""

import logging
import time
from typing import Optional

from .events import ResizeAllEvent, ResizeAllProgressEvent, ResizeEvent


class ProgressReporter:
    """
    Observer notified by ImageStorage.

    Every method is a no-op; subclasses override what they need.
    """

    def on_thumbnail_progress(self, event: ResizeEvent) -> None:
        """Called after each thumbnail spec, whether it succeeded or not."""

    def on_thumbnail_error(self, error: BaseException) -> None:
        """Called when a thumbnail fails."""

    def on_image_resized(self, event: ResizeEvent) -> None:
        """Called once all specs for an image were processed."""

    def on_bulk_progress(self, event: ResizeAllProgressEvent) -> None:
        """Called after each image of a bulk resize."""

    def on_bulk_complete(self, event: ResizeAllEvent) -> None:
        """Called when a bulk resize finishes."""


class LoggingProgress(ProgressReporter):
    """
    Logs thumbnail generation progress with optional per-image output.
    """

    def __init__(
        self,
        show_files: bool = False,
        log_interval: int = 100,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_files: If True, print each image as it's resized
            log_interval: Log bulk progress every N images (when not show_files)
            logger: Optional logger instance
        """
        self.show_files = show_files
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0
        self.error_count = 0
        self.start_time: Optional[float] = None  # Set on first bulk progress event

    def on_thumbnail_progress(self, event: ResizeEvent) -> None:
        self.logger.debug(
            f"{event.id}: {len(event.resized)} thumbnails written, {event.errors} errors"
        )

    def on_thumbnail_error(self, error: BaseException) -> None:
        self.error_count += 1
        path = getattr(error, 'path', None)
        if self.show_files:
            print(f"  [ERROR] {path or 'unknown source'} -> {error}")
        else:
            self.logger.warning(f"Thumbnail failed for {path or 'unknown source'}: {error}")

    def on_image_resized(self, event: ResizeEvent) -> None:
        if self.show_files:
            status = 'OK' if event.errors == 0 else 'PARTIAL'
            names = ', '.join(event.resized) or 'none'
            print(f"  [{status}] {event.id} -> {names} ({event.errors} errors)")

    def on_bulk_progress(self, event: ResizeAllProgressEvent) -> None:
        if self.start_time is None:
            self.start_time = time.time()

        if self.show_files or event.resized - self.last_logged < self.log_interval:
            return
        self.last_logged = event.resized

        elapsed = time.time() - self.start_time
        rate = event.resized / elapsed * 60 if elapsed > 0 else 0.0
        self.logger.info(
            f"Progress: {event.resized}/{event.total} images resized "
            f"({rate:.1f}/min, {event.remaining} left)"
        )

    def on_bulk_complete(self, event: ResizeAllEvent) -> None:
        self.logger.info(
            f"Resize complete: {event.resized}/{event.total} images, "
            f"{self.error_count} thumbnail errors"
        )
