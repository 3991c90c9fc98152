"""
Event payloads passed to a ProgressReporter.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ResizeEvent:
    """
    Thumbnail generation state for one image.

    Attributes:
        id: Image id
        resized: Names of thumbnails written so far
        errors: Number of thumbnails that failed so far
    """
    id: str
    resized: List[str] = field(default_factory=list)
    errors: int = 0


@dataclass
class ResizeAllEvent:
    """
    Bulk resize totals.

    Attributes:
        resized: Images whose resize completed without raising
        total: Images discovered by the scan
    """
    resized: int
    total: int

    @property
    def remaining(self) -> int:
        return self.total - self.resized


@dataclass
class ResizeAllProgressEvent(ResizeAllEvent):
    """Bulk resize totals after one image; id is the image just attempted."""
    id: str = ''
