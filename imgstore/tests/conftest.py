"""
Pytest fixtures for imgstore tests.
"""

import io
import logging

import pytest
from PIL import Image


def make_image_bytes(size=(512, 512), format='JPEG', mode='RGB', color='red'):
    """Encode a solid-color test image."""
    if mode == 'RGBA' and isinstance(color, str):
        color = (255, 0, 0, 128)
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def sample_image_bytes():
    """Fixture providing a 512x512 JPEG."""
    return make_image_bytes()


@pytest.fixture
def sample_png_bytes():
    """Fixture providing a 100x100 PNG with transparency."""
    return make_image_bytes(size=(100, 100), format='PNG', mode='RGBA')


@pytest.fixture
def storage_root(tmp_path):
    """Fixture providing a storage root that does not exist yet."""
    return str(tmp_path / 'images')


@pytest.fixture
def thumbnail_specs():
    """Fixture providing a small set of thumbnail specs."""
    from imgstore.thumbnails import ThumbnailSpec

    return [
        ThumbnailSpec(name='md', size=256),
        ThumbnailSpec(name='sm', size=128),
        ThumbnailSpec(name='smp', size=128, progressive=True),
    ]


@pytest.fixture
def progress():
    """Fixture providing a mocked progress reporter."""
    from unittest.mock import MagicMock
    from imgstore.progress import ProgressReporter

    return MagicMock(spec=ProgressReporter)


@pytest.fixture
def pillow_codec(logger):
    """Fixture providing a Pillow codec."""
    from imgstore.pillow_codec import PillowCodec

    return PillowCodec(logger=logger)


@pytest.fixture
def make_storage(storage_root, pillow_codec, progress, logger):
    """Fixture providing a factory for Pillow-backed storages sharing one root."""
    from imgstore.storage import ImageStorage

    def factory(thumbnails=None, codec=None):
        return ImageStorage(
            storage_root,
            thumbnails=thumbnails,
            codec=codec or pillow_codec,
            progress=progress,
            logger=logger,
        )

    return factory


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def image_factory():
    """Fixture providing make_image_bytes for tests needing other sizes or formats."""
    return make_image_bytes
