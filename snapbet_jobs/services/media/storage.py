"""
Media storage access for the orphaned-media sweep.

Buckets are top-level directories under MEDIA_ROOT (``posts/``,
``messages/``, ``avatars/``); database columns store public URLs whose path
contains the bucket name followed by the object path.
"""
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from snapbet_jobs.utils.timezone import UTC

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    name: str  # path relative to the bucket, '/'-separated
    created_at: datetime  # naive UTC


class MediaStorage(ABC):
    """Minimal storage interface the media-cleanup job needs."""

    @abstractmethod
    def list_files(self, bucket: str) -> List[StoredFile]:
        """List every object in a bucket."""

    @abstractmethod
    def remove(self, bucket: str, name: str) -> None:
        """Delete one object; raises OSError on failure."""


class LocalMediaStorage(MediaStorage):
    """Buckets stored as directories on the local filesystem."""

    def __init__(self, root: str):
        self.root = Path(root)

    def _bucket_path(self, bucket: str) -> Path:
        return self.root / bucket

    def list_files(self, bucket: str) -> List[StoredFile]:
        bucket_path = self._bucket_path(bucket)
        if not bucket_path.is_dir():
            logger.debug(f"Bucket directory {bucket_path} does not exist")
            return []

        files = []
        for path in sorted(bucket_path.rglob("*")):
            if not path.is_file():
                continue
            modified = datetime.fromtimestamp(path.stat().st_mtime, UTC).replace(tzinfo=None)
            files.append(StoredFile(name=path.relative_to(bucket_path).as_posix(), created_at=modified))
        return files

    def remove(self, bucket: str, name: str) -> None:
        target = (self._bucket_path(bucket) / name).resolve()
        bucket_root = self._bucket_path(bucket).resolve()
        if bucket_root not in target.parents:
            raise OSError(f"Refusing to delete outside bucket '{bucket}': {name}")
        os.remove(target)


def extract_object_path(url: Optional[str], bucket: str) -> Optional[str]:
    """
    Object path inside ``bucket`` referenced by a stored media URL.

    Examples:
        >>> extract_object_path("https://cdn.example.com/storage/v1/object/public/posts/u1/a.jpg", "posts")
        'u1/a.jpg'
        >>> extract_object_path("avatars/u1.png", "avatars")
        'u1.png'
    """
    if not url:
        return None

    path = urlparse(url).path or url
    parts = [part for part in path.split("/") if part]
    if not parts:
        return None

    if bucket in parts:
        index = parts.index(bucket)
        if index < len(parts) - 1:
            return "/".join(parts[index + 1:])

    return parts[-1]
