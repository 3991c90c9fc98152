"""
Command Line Interface for the image storage.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .config import CODECS, StorageConfig
from .paths import ORIGINAL
from .errors import ImageStorageError
from .progress import LoggingProgress
from .storage import RESIZE_ASYNC, ImageStorage, create_storage


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('sh').setLevel(logging.WARNING)

    return logging.getLogger('imgstore')


def get_config(args: argparse.Namespace) -> StorageConfig:
    """Get storage configuration from environment and CLI overrides."""
    config = StorageConfig.from_env()

    if getattr(args, 'path', None):
        config.path = args.path
    if getattr(args, 'thumbnails', None):
        config.thumbnails = StorageConfig.load_thumbnails(args.thumbnails)
    if getattr(args, 'codec', None):
        config.codec = args.codec

    return config


def get_storage(
    args: argparse.Namespace,
    logger: logging.Logger,
    progress: Optional[LoggingProgress] = None
) -> Optional[ImageStorage]:
    """Build the storage, or log the configuration problems and return None."""
    try:
        config = get_config(args)
    except (OSError, ValueError) as e:
        logger.error(f"Can't load configuration: {e}")
        return None

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return None

    logger.debug(f"Storage: {config.path} ({config.codec}, {len(config.thumbnails)} thumbnails)")
    return create_storage(config, progress=progress, logger=logger)


def add_storage_arguments(parser: argparse.ArgumentParser) -> None:
    """Add storage configuration arguments to a parser."""
    group = parser.add_argument_group('Storage')
    group.add_argument('--path', metavar='DIR', help='Override IMAGE_STORAGE_PATH')
    group.add_argument('--thumbnails', metavar='FILE',
                       help='JSON file with thumbnail specs (overrides IMAGE_STORAGE_THUMBNAILS)')
    group.add_argument('--codec', choices=CODECS, help='Override IMAGE_STORAGE_CODEC')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def _resize_mode(args: argparse.Namespace):
    if args.no_resize:
        return False
    if getattr(args, 'async_resize', False):
        return RESIZE_ASYNC
    return True


def cmd_save(args: argparse.Namespace) -> int:
    """Execute save command."""
    logger = setup_logging(args.verbose)
    storage = get_storage(args, logger)
    if storage is None:
        return 1

    if args.uid and len(args.files) > 1:
        logger.error("--uid can only be used with a single file")
        return 1

    async def run() -> int:
        failed = 0
        for filepath in args.files:
            try:
                with open(filepath, 'rb') as f:
                    data = f.read()
                image_id = await storage.save_image(data, resize=_resize_mode(args), uid=args.uid)
                print(image_id)
            except (OSError, ValueError, ImageStorageError) as e:
                logger.error(f"Failed to save {filepath}: {e}")
                failed += 1
        await storage.join_background()
        return 0 if failed == 0 else 1

    return asyncio.run(run())


def cmd_delete(args: argparse.Namespace) -> int:
    """Execute delete command."""
    logger = setup_logging(args.verbose)
    storage = get_storage(args, logger)
    if storage is None:
        return 1

    async def run() -> None:
        for image_id in args.ids:
            await storage.delete_image(image_id)

    try:
        asyncio.run(run())
    except (ValueError, ImageStorageError) as e:
        logger.error(f"Delete failed: {e}")
        return 1
    return 0


def cmd_path(args: argparse.Namespace) -> int:
    """Execute path command."""
    logger = setup_logging(args.verbose)
    storage = get_storage(args, logger)
    if storage is None:
        return 1

    fallback = args.fallback or []
    if args.original:
        fallback.append(ORIGINAL)

    try:
        file_path = asyncio.run(storage.get_image_path(args.id, args.thumbnail, fallback=fallback))
    except ValueError as e:
        logger.error(str(e))
        return 1

    if file_path is None:
        logger.error(f"Image not found: {args.id}")
        return 1
    print(file_path)
    return 0


def cmd_metadata(args: argparse.Namespace) -> int:
    """Execute metadata command."""
    logger = setup_logging(args.verbose)
    storage = get_storage(args, logger)
    if storage is None:
        return 1

    try:
        metadata = asyncio.run(storage.get_image_metadata(args.id))
    except (ValueError, ImageStorageError) as e:
        logger.error(f"Can't read metadata: {e}")
        return 1

    if metadata is None:
        logger.error(f"Image not found: {args.id}")
        return 1
    print(json.dumps(metadata.to_dict(), indent=2))
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    """Execute convert command."""
    logger = setup_logging(args.verbose)
    storage = get_storage(args, logger)
    if storage is None:
        return 1

    async def run():
        image_id = await storage.convert_image(args.id, args.format, resize=_resize_mode(args))
        await storage.join_background()
        return image_id

    try:
        image_id = asyncio.run(run())
    except (ValueError, ImageStorageError) as e:
        logger.error(f"Conversion failed: {e}")
        return 1

    if image_id is None:
        logger.error(f"Image not found: {args.id}")
        return 1
    print(image_id)
    return 0


def cmd_resize(args: argparse.Namespace) -> int:
    """Execute resize command for a single image."""
    logger = setup_logging(args.verbose)
    progress = LoggingProgress(show_files=True, logger=logger)
    storage = get_storage(args, logger, progress)
    if storage is None:
        return 1

    try:
        asyncio.run(storage.resize_image(args.id, clean=args.clean))
    except (ValueError, ImageStorageError) as e:
        logger.error(f"Resize failed: {e}")
        return 1

    return 0 if progress.error_count == 0 else 1


def cmd_resize_all(args: argparse.Namespace) -> int:
    """Execute resize-all command."""
    logger = setup_logging(args.verbose)
    progress = None
    if not args.quiet:
        progress = LoggingProgress(show_files=args.show_files, logger=logger)
    storage = get_storage(args, logger, progress)
    if storage is None:
        return 1

    try:
        asyncio.run(storage.resize_all_images(clean=args.clean))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Resize failed: {e}")
        return 1

    if progress and progress.error_count:
        return 1
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='imgstore',
        description='Sharded image storage with generated thumbnails',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m imgstore save photo.jpg --path /srv/images --thumbnails thumbs.json
  python -m imgstore path <id> --thumbnail sm --original
  python -m imgstore resize-all --clean

Configuration:
  IMAGE_STORAGE_PATH, IMAGE_STORAGE_THUMBNAILS and IMAGE_STORAGE_CODEC are read
  from the environment; command-line options override them.
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    save_parser = subparsers.add_parser('save', help='Save image file(s) and print their ids')
    save_parser.add_argument('files', nargs='+', metavar='FILE', help='Image file(s)')
    save_parser.add_argument('--uid', help='Use this uid instead of a generated one')
    resize_group = save_parser.add_mutually_exclusive_group()
    resize_group.add_argument('--no-resize', action='store_true', help='Do not generate thumbnails')
    resize_group.add_argument('--async-resize', action='store_true',
                              help='Generate thumbnails in the background')
    add_storage_arguments(save_parser)

    delete_parser = subparsers.add_parser('delete', help='Delete image(s) with thumbnails and metadata')
    delete_parser.add_argument('ids', nargs='+', metavar='ID', help='Image id(s)')
    add_storage_arguments(delete_parser)

    path_parser = subparsers.add_parser('path', help='Print the path of an image or thumbnail')
    path_parser.add_argument('id', help='Image id')
    path_parser.add_argument('-t', '--thumbnail', help='Thumbnail name')
    path_parser.add_argument('--fallback', action='append', metavar='NAME',
                             help='Thumbnail to use if the requested one is missing')
    path_parser.add_argument('--original', action='store_true',
                             help='Fall back to the original image')
    add_storage_arguments(path_parser)

    metadata_parser = subparsers.add_parser('metadata', help='Print image metadata')
    metadata_parser.add_argument('id', help='Image id')
    add_storage_arguments(metadata_parser)

    convert_parser = subparsers.add_parser('convert', help='Convert an image to another format')
    convert_parser.add_argument('id', help='Image id')
    convert_parser.add_argument('format', help='Target format (e.g. png, webp)')
    convert_parser.add_argument('--no-resize', action='store_true', help='Do not generate thumbnails')
    add_storage_arguments(convert_parser)

    resize_parser = subparsers.add_parser('resize', help="Regenerate an image's thumbnails")
    resize_parser.add_argument('id', help='Image id')
    resize_parser.add_argument('--clean', action='store_true', help='Remove existing thumbnails first')
    add_storage_arguments(resize_parser)

    all_parser = subparsers.add_parser('resize-all', help='Regenerate thumbnails for every image')
    all_parser.add_argument('--clean', action='store_true', help='Remove existing thumbnails first')
    all_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')
    all_parser.add_argument('--show-files', action='store_true',
                            help='Print each image as it is resized')
    add_storage_arguments(all_parser)

    return parser


COMMANDS = {
    'save': cmd_save,
    'delete': cmd_delete,
    'path': cmd_path,
    'metadata': cmd_metadata,
    'convert': cmd_convert,
    'resize': cmd_resize,
    'resize-all': cmd_resize_all,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    return COMMANDS[parsed_args.command](parsed_args)


if __name__ == '__main__':
    sys.exit(main())
