"""
ImageMetadata - Snapshot of an original image, persisted as its JSON sidecar.
"""

from dataclasses import dataclass


@dataclass
class ImageMetadata:
    """
    Metadata captured when an image is saved.

    Always describes the original image, never a thumbnail.

    Attributes:
        format: Normalized format token used as the file extension (e.g. 'jpeg')
        media_type: MIME type (e.g. 'image/jpeg')
        size: Size in bytes
        width: Width in pixels
        height: Height in pixels
    """
    format: str
    media_type: str
    size: int
    width: int
    height: int

    def to_dict(self) -> dict:
        """Convert to the sidecar JSON shape."""
        return {
            'format': self.format,
            'mediaType': self.media_type,
            'size': self.size,
            'width': self.width,
            'height': self.height,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ImageMetadata':
        """Create from the sidecar JSON shape."""
        return cls(
            format=data['format'],
            media_type=data['mediaType'],
            size=int(data['size']),
            width=int(data['width']),
            height=int(data['height']),
        )
