"""
StorageConfig - Configuration for an image storage.
"""

import json
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .paths import validate_thumbnail_name
from .thumbnails import ThumbnailSpec

CODECS = ('magick', 'pillow')


@dataclass
class StorageConfig:
    """
    Image storage configuration.

    Attributes:
        path: Storage root directory
        thumbnails: Thumbnails generated for every image
        codec: Codec backend, 'magick' or 'pillow'
    """
    path: Optional[str] = None
    thumbnails: List[ThumbnailSpec] = field(default_factory=list)
    codec: str = 'magick'

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """
        Load configuration from environment variables.

        IMAGE_STORAGE_THUMBNAILS holds a JSON array, or a path to a JSON file.
        """
        thumbnails_value = os.getenv('IMAGE_STORAGE_THUMBNAILS', '').strip()
        if not thumbnails_value:
            thumbnails = []
        elif thumbnails_value.startswith('['):
            thumbnails = cls.parse_thumbnails(json.loads(thumbnails_value))
        else:
            thumbnails = cls.load_thumbnails(thumbnails_value)

        return cls(
            path=os.getenv('IMAGE_STORAGE_PATH') or None,
            thumbnails=thumbnails,
            codec=os.getenv('IMAGE_STORAGE_CODEC', 'magick'),
        )

    @staticmethod
    def parse_thumbnails(data: list) -> List[ThumbnailSpec]:
        """Build thumbnail specs from a list of dicts."""
        if not isinstance(data, list):
            raise ValueError("Thumbnails must be a JSON array")
        return [ThumbnailSpec.from_dict(item) for item in data]

    @classmethod
    def load_thumbnails(cls, filepath: str) -> List[ThumbnailSpec]:
        """Load thumbnail specs from a JSON file."""
        with open(filepath, 'r', encoding='utf-8') as f:
            return cls.parse_thumbnails(json.load(f))

    def validate(self) -> List[str]:
        """
        Check the configuration.

        Returns:
            List of problems; empty when the configuration is usable
        """
        errors = []
        if not self.path:
            errors.append("Storage path is required (IMAGE_STORAGE_PATH or --path)")
        if self.codec not in CODECS:
            errors.append(f"Unknown codec: {self.codec!r} (expected one of {', '.join(CODECS)})")

        seen = set()
        for spec in self.thumbnails:
            try:
                validate_thumbnail_name(spec.name)
            except ValueError as e:
                errors.append(str(e))
                if not spec.name:
                    continue
            if spec.name in seen:
                errors.append(f"Duplicate thumbnail name: {spec.name!r}")
            seen.add(spec.name)
            if isinstance(spec.size, int) and spec.size <= 0:
                errors.append(f"Thumbnail {spec.name!r} size must be positive")
        return errors
