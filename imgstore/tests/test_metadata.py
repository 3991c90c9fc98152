"""Tests for ImageMetadata."""

from imgstore.metadata import ImageMetadata


class TestImageMetadata:
    """Tests for ImageMetadata class."""

    def test_to_dict_uses_sidecar_keys(self):
        metadata = ImageMetadata(format='jpeg', media_type='image/jpeg', size=1000, width=512, height=256)

        assert metadata.to_dict() == {
            'format': 'jpeg',
            'mediaType': 'image/jpeg',
            'size': 1000,
            'width': 512,
            'height': 256,
        }

    def test_from_dict(self):
        metadata = ImageMetadata.from_dict({
            'format': 'png',
            'mediaType': 'image/png',
            'size': 42,
            'width': 10,
            'height': 20,
        })

        assert metadata == ImageMetadata('png', 'image/png', 42, 10, 20)
