"""
Thumbnail specs and the sources that produce them.
"""

from dataclasses import dataclass, asdict
from typing import Callable, List, Optional, Sequence, Union

from .metadata import ImageMetadata


@dataclass
class ThumbnailSpec:
    """
    One derived image variant.

    Attributes:
        name: Tag used in the thumbnail's filename, unique per image
        size: Geometry passed to the codec (e.g. 128 or '128x96>')
        progressive: Write an interlaced/progressive image
    """
    name: str
    size: Union[int, str]
    progressive: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'ThumbnailSpec':
        return cls(
            name=data['name'],
            size=data['size'],
            progressive=bool(data.get('progressive', False)),
        )


SpecFunction = Callable[[Optional[ImageMetadata]], Sequence[ThumbnailSpec]]


class ThumbnailSource:
    """
    Where the thumbnail specs for an image come from.

    Resolved once per resize operation.
    """

    def resolve(self, metadata: Optional[ImageMetadata]) -> List[ThumbnailSpec]:
        raise NotImplementedError

    @property
    def needs_metadata(self) -> bool:
        return False

    @staticmethod
    def of(value: Union['ThumbnailSource', SpecFunction, Sequence, None]) -> 'ThumbnailSource':
        """
        Coerce a source, a callable, or a sequence of specs/dicts into a source.
        """
        if isinstance(value, ThumbnailSource):
            return value
        if value is None:
            return StaticThumbnails([])
        if callable(value):
            return DynamicThumbnails(value)
        return StaticThumbnails([
            spec if isinstance(spec, ThumbnailSpec) else ThumbnailSpec.from_dict(spec)
            for spec in value
        ])


class StaticThumbnails(ThumbnailSource):
    """The same ordered specs for every image."""

    def __init__(self, specs: Sequence[ThumbnailSpec]):
        self.specs = list(specs)

    def resolve(self, metadata: Optional[ImageMetadata]) -> List[ThumbnailSpec]:
        return list(self.specs)

    def __repr__(self) -> str:
        return f"StaticThumbnails({self.specs!r})"


class DynamicThumbnails(ThumbnailSource):
    """
    Specs computed from the image's persisted metadata.

    The function receives None when the metadata sidecar is missing.
    """

    def __init__(self, function: SpecFunction):
        self.function = function

    @property
    def needs_metadata(self) -> bool:
        return True

    def resolve(self, metadata: Optional[ImageMetadata]) -> List[ThumbnailSpec]:
        return list(self.function(metadata))

    def __repr__(self) -> str:
        return f"DynamicThumbnails({self.function!r})"
