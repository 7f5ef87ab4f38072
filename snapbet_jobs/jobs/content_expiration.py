"""
Hourly content lifecycle: expire content, archive stale bets and engagement,
clean up rows tied to deleted content, purge old soft-deleted rows.
"""
from snapbet_jobs.jobs.base import BaseJob, JobConfig, JobOptions, JobResult
from snapbet_jobs.services.content.expiration_service import ExpirationService

# Rows removed because their parent went, not because they expired themselves
RELATED_STEPS = ("comments", "pick_actions", "story_views")


class ContentExpirationJob(BaseJob):
    config = JobConfig(
        name="content-expiration",
        description="Expire posts, pick posts, stories and messages; archive old bets; purge old soft-deleted content",
        schedule="0 * * * *",
        timeout=300,
    )

    async def run(self, db, options: JobOptions) -> JobResult:
        service = ExpirationService(
            db,
            content_ttl_hours=self.settings.CONTENT_TTL_HOURS,
            pick_expiry_hours=self.settings.PICK_EXPIRY_HOURS,
            retention_days=self.settings.SOFT_DELETE_RETENTION_DAYS,
            bet_archive_days=self.settings.BET_ARCHIVE_DAYS,
            engagement_archive_days=self.settings.ENGAGEMENT_ARCHIVE_DAYS,
        )

        expired = service.expire_all(limit=options.limit, dry_run=options.dry_run)
        archived = service.archive_stale(limit=options.limit, dry_run=options.dry_run)
        purged = service.purge_soft_deleted(limit=options.limit, dry_run=options.dry_run)

        expired_total = sum(count for step, count in expired.items() if step not in RELATED_STEPS)
        related_total = sum(expired[step] for step in RELATED_STEPS)
        archived_total = sum(archived.values())
        purged_total = sum(purged.values())
        affected = expired_total + related_total + archived_total + purged_total

        if options.dry_run:
            message = (
                f"Would expire {expired_total} items, {expired['comments']} comments; "
                f"would archive {archived_total} records, clean {related_total} related records, "
                f"hard delete {purged_total} old items"
            )
        else:
            message = (
                f"Expired {expired_total} items, {expired['comments']} comments; "
                f"archived {archived_total} records, cleaned {related_total} related records, "
                f"hard deleted {purged_total} old items"
            )

        return JobResult(
            success=True,
            message=message,
            affected=affected,
            details={
                "expired": dict(expired),
                "archived": dict(archived),
                "hard_deleted": dict(purged),
            },
        )
