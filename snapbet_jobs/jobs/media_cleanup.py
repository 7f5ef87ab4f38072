"""
Orphaned media sweep.

A stored file is an orphan when no post, message or avatar URL references it.
Only orphans older than MEDIA_ORPHAN_MIN_AGE_DAYS are removed so uploads
whose row has not been written yet are left alone.
"""
import asyncio
import logging
from datetime import timedelta
from typing import Dict, Optional, Set

from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult, summarize_errors
from snapbet_jobs.models import Message, Post, User
from snapbet_jobs.services.media.storage import LocalMediaStorage, MediaStorage, extract_object_path
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)

# bucket -> columns holding URLs of objects stored in it
MEDIA_REFERENCES = {
    "posts": (Post.media_url, Post.thumbnail_url),
    "messages": (Message.media_url,),
    "avatars": (User.avatar_url,),
}


class MediaCleanupJob(BaseJob):
    config = JobConfig(
        name="media-cleanup",
        description="Remove orphaned media files from storage",
        schedule="0 4 * * *",
        timeout=900,
    )

    def __init__(self, session_factory, app_settings=None, storage: Optional[MediaStorage] = None):
        super().__init__(session_factory, app_settings)
        self.storage = storage or LocalMediaStorage(self.settings.MEDIA_ROOT)

    def referenced_paths(self, db, bucket: str) -> Set[str]:
        paths = set()
        for column in MEDIA_REFERENCES[bucket]:
            for (url,) in db.query(column).filter(column.isnot(None)).all():
                path = extract_object_path(url, bucket)
                if path:
                    paths.add(path)
        return paths

    async def run(self, db, options: JobOptions) -> JobResult:
        cutoff = utcnow() - timedelta(days=self.settings.MEDIA_ORPHAN_MIN_AGE_DAYS)
        removed: Dict[str, int] = {}
        errors = []
        remaining = options.limit

        for bucket in MEDIA_REFERENCES:
            referenced = self.referenced_paths(db, bucket)
            orphans = [
                stored for stored in self.storage.list_files(bucket)
                if stored.name not in referenced and stored.created_at < cutoff
            ]
            if remaining is not None:
                orphans = orphans[:remaining]

            count = 0
            for stored in orphans:
                if options.verbose:
                    logger.info(f"  🗑️ {bucket}/{stored.name}")
                if options.dry_run:
                    count += 1
                    continue
                try:
                    self.storage.remove(bucket, stored.name)
                except OSError as e:
                    errors.append(f"{bucket}/{stored.name}: {e}")
                    continue
                count += 1
                await asyncio.sleep(0)

            removed[bucket] = count
            if remaining is not None:
                remaining -= len(orphans)
                if remaining <= 0:
                    break

        total = sum(removed.values())
        if options.dry_run:
            message = f"Would clean {total} orphaned media files"
        else:
            message = f"Cleaned {total} orphaned media files"
        if errors:
            message += f" ({len(errors)} errors)"

        return JobResult(
            success=not errors,
            message=message,
            affected=total,
            details={"buckets": removed, "errors": summarize_errors(errors)},
        )
