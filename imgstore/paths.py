"""
Path scheme - maps image ids to locations inside the storage root.

Layout:
    {root}/{uid[-3]}/{uid[-2:]}/{uid}.{ext}          original
    {root}/{uid[-3]}/{uid[-2:]}/{uid}.{name}.{ext}   thumbnail
    {root}/{uid[-3]}/{uid[-2:]}/{uid}.{ext}.json     metadata
"""

import os
import re
import uuid
from typing import Optional, Tuple

# Generated ids: uuid4 stem plus extension, e.g. 1b4e28ba-2fa1-11d2-883f-0016d3cca427.jpeg
ID_PATTERN = re.compile(r'^\w{8}-\w{4}-\w{4}-\w{4}-\w{12}\.\w+$')

METADATA_SUFFIX = '.json'

# Fallback entry naming the original; never usable as a thumbnail name
ORIGINAL = 'original'


def new_uid() -> str:
    """Generate a fresh image uid."""
    return str(uuid.uuid4())


def validate_uid(uid: str) -> str:
    """Raise ValueError unless uid can be used as a file stem."""
    if not uid:
        raise ValueError("Image uid must not be empty")
    if os.sep in uid or (os.altsep and os.altsep in uid):
        raise ValueError(f"Image uid must not contain a path separator: {uid!r}")
    if '.' in uid:
        raise ValueError(f"Image uid must not contain '.': {uid!r}")
    return uid


def validate_thumbnail_name(name: Optional[str]) -> str:
    """Raise ValueError unless name yields a path distinct from the original and its siblings."""
    if not name:
        raise ValueError("Thumbnail name must not be empty")
    if name == ORIGINAL:
        raise ValueError(f"Thumbnail name {ORIGINAL!r} is reserved")
    if '.' in name or os.sep in name or (os.altsep and os.altsep in name):
        raise ValueError(f"Thumbnail name must not contain '.' or a path separator: {name!r}")
    return name


def split_id(image_id: str) -> Tuple[str, str]:
    """
    Split an image id into (uid, ext) on the first dot.

    Ids without an extension yield an empty ext.
    """
    uid, _, ext = image_id.partition('.')
    return validate_uid(uid), ext


def shard_of(uid: str) -> Tuple[str, str]:
    """Return the two shard directory names for a uid."""
    if len(uid) < 3:
        raise ValueError(f"Image uid is too short to shard: {uid!r}")
    return uid[-3], uid[-2:]


def shard_dir(root: str, image_id: str) -> str:
    """Directory holding every file of an image."""
    uid, _ = split_id(image_id)
    return os.path.join(root, *shard_of(uid))


def thumbnail_path(root: str, image_id: str, name: Optional[str] = None) -> str:
    """
    Path of a thumbnail; without a name this is the original's path.
    """
    uid, ext = split_id(image_id)
    filename = '.'.join(part for part in (uid, name, ext) if part)
    return os.path.join(root, *shard_of(uid), filename)


def original_path(root: str, image_id: str) -> str:
    """Path of the original image."""
    return thumbnail_path(root, image_id)


def metadata_path(root: str, image_id: str) -> str:
    """Path of the JSON metadata sidecar."""
    uid, ext = split_id(image_id)
    filename = '.'.join(part for part in (uid, ext) if part) + METADATA_SUFFIX
    return os.path.join(root, *shard_of(uid), filename)


def is_generated_id(filename: str) -> bool:
    """True if filename looks like an original written under a generated uid."""
    return bool(ID_PATTERN.match(filename)) and not filename.endswith(METADATA_SUFFIX)
