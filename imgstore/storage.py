"""
ImageStorage - Stores images under generated ids and maintains their thumbnails.
"""

import asyncio
import json
import logging
import os
from typing import List, Optional, Sequence, Set, Union

import aiofiles
import aiofiles.os

from .codec import ImageCodec, MagickCodec
from .config import StorageConfig
from .errors import ConfigurationError, ImageProcessingError, StorageError
from .events import ResizeAllEvent, ResizeAllProgressEvent, ResizeEvent
from .metadata import ImageMetadata
from .paths import (
    ORIGINAL,
    is_generated_id,
    metadata_path,
    new_uid,
    original_path,
    shard_dir,
    shard_of,
    split_id,
    thumbnail_path,
    validate_thumbnail_name,
    validate_uid,
)
from .pillow_codec import PillowCodec
from .progress import ProgressReporter
from .thumbnails import ThumbnailSource

ResizeMode = Union[bool, str]
Fallback = Union[bool, str, Sequence[Union[bool, str]]]

RESIZE_ASYNC = 'async'


class ImageStorage:
    """
    Filesystem image storage with generated thumbnails.

    Every file of an image lives in one shard directory derived from its uid.
    Operations on different ids are independent; callers must not run
    concurrent operations on the same id.
    """

    def __init__(
        self,
        path: str,
        thumbnails=None,
        codec: Optional[ImageCodec] = None,
        progress: Optional[ProgressReporter] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize storage.

        Args:
            path: Storage root directory
            thumbnails: Thumbnail specs, a function of ImageMetadata returning
                specs, or a ThumbnailSource
            codec: Image codec (default: MagickCodec)
            progress: Optional progress reporter
            logger: Optional logger instance
        """
        if not path:
            raise ConfigurationError("Path is required")

        self.path = path
        self.thumbnails = ThumbnailSource.of(thumbnails)
        self.logger = logger or logging.getLogger(__name__)
        self.codec = codec or MagickCodec(logger=self.logger)
        self.progress = progress or ProgressReporter()
        self._background_tasks: Set[asyncio.Task] = set()

    async def save_image(
        self,
        buffer: bytes,
        resize: ResizeMode = True,
        uid: Optional[str] = None
    ) -> str:
        """
        Save an image and create its thumbnails.

        Args:
            buffer: Image bytes
            resize: True to generate thumbnails before returning, 'async' to
                generate them in the background, False to skip
            uid: Image uid (default: a new uuid4)

        Returns:
            The new image id ('{uid}.{format}')
        """
        uid = validate_uid(uid) if uid is not None else new_uid()
        shard_of(uid)  # uids shorter than three characters cannot be sharded
        data = bytes(buffer)

        metadata = await asyncio.to_thread(self.codec.identify, data)
        if not metadata.format:
            raise ImageProcessingError(f"Unsupported media type: {metadata.media_type or 'unknown'}")

        image_id = f"{uid}.{metadata.format}"
        file_path = original_path(self.path, image_id)
        metadata_file_path = metadata_path(self.path, image_id)

        await self._makedirs(os.path.dirname(file_path))
        try:
            results = await asyncio.gather(
                self._write_file(file_path, data),
                self._write_file(metadata_file_path, json.dumps(metadata.to_dict()).encode('utf-8')),
                return_exceptions=True
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

            self.logger.info(f"Saved image {image_id} ({metadata.size} bytes, {metadata.width}x{metadata.height})")

            if resize == RESIZE_ASYNC:
                self._resize_in_background(image_id)
            elif resize:
                await self.resize_image(image_id)

            return image_id
        except Exception:
            await asyncio.gather(self._discard(file_path), self._discard(metadata_file_path))
            raise

    async def delete_image(self, image_id: str) -> None:
        """
        Delete an image, its thumbnails and its metadata.

        Deleting a missing image does nothing.
        """
        uid, ext = split_id(image_id)
        dir_path = shard_dir(self.path, image_id)
        if not await aiofiles.os.path.isdir(dir_path):
            return

        file_names = [
            name for name in await self._list_dir(dir_path)
            if name.startswith(f"{uid}.")
            and (name.endswith(f".{ext}") or name.endswith(f".{ext}.json"))
        ]
        await self._remove_all(os.path.join(dir_path, name) for name in file_names)
        self.logger.info(f"Deleted image {image_id} ({len(file_names)} files)")

    async def get_image_metadata(self, image_id: str) -> Optional[ImageMetadata]:
        """
        Get an image's metadata.

        Returns:
            The metadata, or None if the image does not exist
        """
        file_path = metadata_path(self.path, image_id)
        try:
            async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
                text = await f.read()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except (OSError, ValueError) as e:
            raise StorageError(f"Can't read {file_path}: {e}", e) from e

        try:
            return ImageMetadata.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Can't read {file_path}: {e}", e) from e

    async def get_image_path(
        self,
        image_id: str,
        thumbnail: Optional[str] = None,
        fallback: Fallback = ()
    ) -> Optional[str]:
        """
        Get the path of an image or one of its thumbnails.

        Args:
            image_id: Image id
            thumbnail: Thumbnail name, or None for the original
            fallback: Alternative thumbnail name(s) tried in order when the
                requested one is missing; ORIGINAL (or True) means the original

        Returns:
            The first existing path, or None
        """
        if fallback is True or isinstance(fallback, str):
            fallback = [fallback]

        candidates: List[Optional[str]] = [thumbnail]
        for name in fallback:
            candidates.append(None if name is True or name == ORIGINAL else name)

        for name in candidates:
            file_path = thumbnail_path(self.path, image_id, name)
            if await aiofiles.os.path.isfile(file_path):
                return file_path
        return None

    async def convert_image(
        self,
        image_id: str,
        format: str,
        resize: ResizeMode = True
    ) -> Optional[str]:
        """
        Convert an image to another format.

        The converted image is saved next to the source under the same uid;
        the source and its thumbnails are kept.

        Returns:
            The new image id, or None if the source does not exist
        """
        src_path = await self.get_image_path(image_id)
        if src_path is None:
            return None

        self.logger.debug(f"Converting {image_id} to {format}")
        data = await asyncio.to_thread(self.codec.convert, src_path, format)
        uid, _ = split_id(image_id)
        return await self.save_image(data, resize=resize, uid=uid)

    async def resize_image(self, image_id: str, clean: bool = False) -> None:
        """
        Regenerate an image's thumbnails.

        A failed thumbnail is counted and reported; the remaining specs are
        still processed. Missing images are ignored.

        Args:
            image_id: Image id
            clean: Remove existing thumbnails first
        """
        src_path = await self.get_image_path(image_id)
        if src_path is None:
            return

        uid, ext = split_id(image_id)
        if clean:
            dir_path = os.path.dirname(src_path)
            own_name = os.path.basename(src_path)
            stale = [
                name for name in await self._list_dir(dir_path)
                if name.startswith(f"{uid}.") and name != own_name and name.endswith(f".{ext}")
            ]
            await self._remove_all(os.path.join(dir_path, name) for name in stale)
            self.logger.debug(f"Removed {len(stale)} thumbnails of {image_id}")

        metadata = await self.get_image_metadata(image_id) if self.thumbnails.needs_metadata else None
        specs = self.thumbnails.resolve(metadata)

        resized: List[str] = []
        errors = 0
        for spec in specs:
            try:
                dest_path = self._thumbnail_dest(image_id, spec.name, src_path)
                await asyncio.to_thread(self.codec.resize, src_path, dest_path, spec)
                resized.append(spec.name)
            except Exception as e:
                errors += 1
                self.logger.warning(f"Thumbnail {spec.name} of {image_id} failed: {e}")
                self.progress.on_thumbnail_error(e)
            self.progress.on_thumbnail_progress(ResizeEvent(image_id, list(resized), errors))

        self.logger.debug(f"Resized {image_id}: {len(resized)} thumbnails, {errors} errors")
        self.progress.on_image_resized(ResizeEvent(image_id, list(resized), errors))

    async def resize_all_images(self, clean: bool = False) -> None:
        """
        Regenerate thumbnails for every image in the storage.

        Scans both shard levels for generated ids. Thumbnail failures are
        counted inside resize_image; any other error stops the run.

        Args:
            clean: Remove existing thumbnails first
        """
        image_ids = await self._scan_ids()
        total = len(image_ids)
        self.logger.info(f"Starting resize: {total} images")

        resized = 0
        for image_id in image_ids:
            try:
                await self.resize_image(image_id, clean=clean)
                resized += 1
            finally:
                self.progress.on_bulk_progress(ResizeAllProgressEvent(resized, total, image_id))

        self.logger.info(f"Resize complete: {resized}/{total} images")
        self.progress.on_bulk_complete(ResizeAllEvent(resized, total))

    async def join_background(self) -> None:
        """Wait for thumbnails being generated in the background."""
        while self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def _resize_in_background(self, image_id: str) -> None:
        task = asyncio.create_task(self.resize_image(image_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(f"Background resize failed: {error}")
            self.progress.on_thumbnail_error(error)

    def _thumbnail_dest(self, image_id: str, name: Optional[str], src_path: str) -> str:
        """Thumbnail path, refusing names that would land on the original or a sibling."""
        try:
            validate_thumbnail_name(name)
        except ValueError as e:
            raise ImageProcessingError(f"Invalid thumbnail spec: {e}", src_path, e) from e
        return thumbnail_path(self.path, image_id, name)

    async def _scan_ids(self) -> List[str]:
        """Ids of all originals stored under generated uids."""
        if not await aiofiles.os.path.isdir(self.path):
            self.logger.info(f"Storage root does not exist yet: {self.path}")
            return []

        image_ids = []
        for shard1 in sorted(await self._list_dir(self.path)):
            shard1_path = os.path.join(self.path, shard1)
            if not await aiofiles.os.path.isdir(shard1_path):
                continue
            for shard2 in sorted(await self._list_dir(shard1_path)):
                shard2_path = os.path.join(shard1_path, shard2)
                if not await aiofiles.os.path.isdir(shard2_path):
                    continue
                image_ids.extend(
                    name for name in sorted(await self._list_dir(shard2_path))
                    if is_generated_id(name)
                )
        return image_ids

    async def _makedirs(self, dir_path: str) -> None:
        try:
            await aiofiles.os.makedirs(dir_path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Can't create {dir_path}: {e}", e) from e

    async def _list_dir(self, dir_path: str) -> List[str]:
        try:
            return await aiofiles.os.listdir(dir_path)
        except OSError as e:
            raise StorageError(f"Can't list {dir_path}: {e}", e) from e

    async def _write_file(self, file_path: str, data: bytes) -> None:
        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(f"Can't write {file_path}: {e}", e) from e

    async def _remove(self, file_path: str) -> None:
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Can't remove {file_path}: {e}", e) from e

    async def _remove_all(self, file_paths) -> None:
        """Remove every file, then raise the first failure if any."""
        results = await asyncio.gather(
            *(self._remove(file_path) for file_path in file_paths),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _discard(self, file_path: str) -> None:
        """Best-effort removal used when rolling back a save."""
        try:
            await self._remove(file_path)
        except StorageError as e:
            self.logger.warning(f"Rollback could not remove {file_path}: {e}")


def create_storage(
    config: StorageConfig,
    progress: Optional[ProgressReporter] = None,
    logger: Optional[logging.Logger] = None
) -> ImageStorage:
    """
    Build an ImageStorage from configuration.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    errors = config.validate()
    if errors:
        raise ConfigurationError('; '.join(errors))

    if config.codec == 'pillow':
        codec = PillowCodec(logger=logger)
    else:
        codec = MagickCodec(logger=logger)

    return ImageStorage(
        config.path,
        thumbnails=config.thumbnails,
        codec=codec,
        progress=progress,
        logger=logger,
    )
