"""Tests for CLI module."""

import json
import os

import pytest

from imgstore.cli import create_parser, get_config, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's storage settings out of the tests."""
    for name in ('IMAGE_STORAGE_PATH', 'IMAGE_STORAGE_THUMBNAILS', 'IMAGE_STORAGE_CODEC'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def thumbnails_file(tmp_path):
    filepath = tmp_path / 'thumbs.json'
    filepath.write_text(json.dumps([{'name': 'sm', 'size': 64}]))
    return str(filepath)


@pytest.fixture
def image_file(tmp_path, sample_image_bytes):
    filepath = tmp_path / 'photo.jpg'
    filepath.write_bytes(sample_image_bytes)
    return str(filepath)


@pytest.fixture
def storage_args(storage_root, thumbnails_file):
    return ['--path', storage_root, '--codec', 'pillow', '--thumbnails', thumbnails_file]


def save(image_file, storage_args, capsys, *extra):
    assert main(['save', image_file, *extra, *storage_args]) == 0
    return capsys.readouterr().out.strip()


class TestCreateParser:
    """Tests for argument parser creation."""

    def test_save_command(self):
        parser = create_parser()
        args = parser.parse_args(['save', 'a.jpg', 'b.jpg', '--no-resize'])

        assert args.command == 'save'
        assert args.files == ['a.jpg', 'b.jpg']
        assert args.no_resize is True
        assert args.async_resize is False

    def test_save_resize_flags_exclusive(self):
        parser = create_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(['save', 'a.jpg', '--no-resize', '--async-resize'])

    def test_path_command(self):
        parser = create_parser()
        args = parser.parse_args(['path', 'uid.jpeg', '-t', 'md', '--fallback', 'sm', '--original'])

        assert args.thumbnail == 'md'
        assert args.fallback == ['sm']
        assert args.original is True

    def test_resize_all_command(self):
        parser = create_parser()
        args = parser.parse_args(['resize-all', '--clean', '--show-files', '--codec', 'pillow'])

        assert args.command == 'resize-all'
        assert args.clean is True
        assert args.show_files is True
        assert args.codec == 'pillow'

    def test_unknown_codec(self):
        parser = create_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(['metadata', 'uid.jpeg', '--codec', 'gd'])


class TestGetConfig:
    """Tests for environment and option merging."""

    def test_env(self, monkeypatch):
        monkeypatch.setenv('IMAGE_STORAGE_PATH', '/srv/images')
        monkeypatch.setenv('IMAGE_STORAGE_THUMBNAILS', '[{"name": "md", "size": 256}]')
        args = create_parser().parse_args(['metadata', 'uid.jpeg'])

        config = get_config(args)

        assert config.path == '/srv/images'
        assert [spec.name for spec in config.thumbnails] == ['md']
        assert config.codec == 'magick'

    def test_options_override_env(self, monkeypatch, thumbnails_file):
        monkeypatch.setenv('IMAGE_STORAGE_PATH', '/srv/images')
        args = create_parser().parse_args([
            'metadata', 'uid.jpeg', '--path', '/tmp/images',
            '--thumbnails', thumbnails_file, '--codec', 'pillow'
        ])

        config = get_config(args)

        assert config.path == '/tmp/images'
        assert [spec.name for spec in config.thumbnails] == ['sm']
        assert config.codec == 'pillow'


class TestMain:
    """Tests for main entry point."""

    def test_no_command(self):
        assert main([]) == 1

    def test_missing_path(self):
        assert main(['metadata', 'uid.jpeg']) == 1

    def test_bad_thumbnails_file(self, storage_root, tmp_path):
        assert main(['metadata', 'uid.jpeg', '--path', storage_root,
                     '--thumbnails', str(tmp_path / 'missing.json')]) == 1

    def test_save_path_metadata_delete(self, image_file, storage_args, capsys):
        image_id = save(image_file, storage_args, capsys)
        assert image_id.endswith('.jpeg')

        assert main(['path', image_id, '-t', 'sm', *storage_args]) == 0
        thumb_path = capsys.readouterr().out.strip()
        assert thumb_path.endswith('.sm.jpeg')
        assert os.path.isfile(thumb_path)

        assert main(['metadata', image_id, *storage_args]) == 0
        metadata = json.loads(capsys.readouterr().out)
        assert metadata['mediaType'] == 'image/jpeg'
        assert (metadata['width'], metadata['height']) == (512, 512)

        assert main(['delete', image_id, *storage_args]) == 0
        assert main(['path', image_id, *storage_args]) == 1
        assert main(['metadata', image_id, *storage_args]) == 1

    def test_save_no_resize_then_resize(self, image_file, storage_args, capsys):
        image_id = save(image_file, storage_args, capsys, '--no-resize')

        assert main(['path', image_id, '-t', 'sm', *storage_args]) == 1
        assert main(['path', image_id, '-t', 'sm', '--original', *storage_args]) == 0
        assert capsys.readouterr().out.strip().endswith(image_id)

        assert main(['resize', image_id, *storage_args]) == 0
        assert main(['path', image_id, '-t', 'sm', *storage_args]) == 0

    def test_save_async_resize(self, image_file, storage_args, capsys):
        image_id = save(image_file, storage_args, capsys, '--async-resize')

        assert main(['path', image_id, '-t', 'sm', *storage_args]) == 0

    def test_save_uid_with_many_files(self, image_file, storage_args):
        assert main(['save', image_file, image_file, '--uid', 'custom-uid', *storage_args]) == 1

    def test_save_uid_with_dot(self, image_file, storage_args):
        assert main(['save', image_file, '--uid', 'abc.def', *storage_args]) == 1

    def test_save_missing_file(self, tmp_path, storage_args):
        assert main(['save', str(tmp_path / 'missing.jpg'), *storage_args]) == 1

    def test_convert(self, image_file, storage_args, capsys):
        image_id = save(image_file, storage_args, capsys)

        assert main(['convert', image_id, 'png', *storage_args]) == 0
        png_id = capsys.readouterr().out.strip()

        assert png_id.partition('.')[0] == image_id.partition('.')[0]
        assert main(['path', png_id, '-t', 'sm', *storage_args]) == 0

    def test_convert_missing(self, storage_args):
        assert main(['convert', '404.jpeg', 'png', *storage_args]) == 1

    def test_resize_all(self, image_file, storage_args, capsys):
        image_id = save(image_file, storage_args, capsys, '--no-resize')

        assert main(['resize-all', '--clean', *storage_args]) == 0
        assert main(['path', image_id, '-t', 'sm', *storage_args]) == 0

    def test_resize_all_empty(self, storage_args):
        assert main(['resize-all', '-q', *storage_args]) == 0
