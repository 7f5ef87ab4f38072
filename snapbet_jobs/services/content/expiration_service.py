"""
Content expiration and retention.

Expiry rules:
- content posts: explicit ``expires_at``, else ``created_at`` + CONTENT_TTL_HOURS
- pick posts: PICK_EXPIRY_HOURS after the linked bet's game started
  (the post's own creation time does not matter)
- stories and messages: explicit ``expires_at``

Expired rows are soft-deleted (``deleted_at`` stamped); comments on deleted
posts follow. Pick actions on deleted pick posts and views of deleted stories
are hard-deleted. Rows soft-deleted longer than SOFT_DELETE_RETENTION_DAYS ago
are hard-deleted.

Archiving only hides rows from feeds (``archived`` set, nothing deleted):
- bets older than BET_ARCHIVE_DAYS
- reactions and pick actions older than ENGAGEMENT_ARCHIVE_DAYS

Every step selects ids first (honoring ``limit``) and then writes by id, so
dry-run counts and real runs agree.
"""
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from snapbet_jobs.models import Bet, Comment, Game, PickAction, Post, Reaction, Story, StoryView
from snapbet_jobs.repositories.content_repository import ArchiveRepository, ContentRepository, DependentRepository
from snapbet_jobs.services.content.tables import EXPIRING_TABLES, HARD_DELETE_ORDER, ContentTable
from snapbet_jobs.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class ExpirationService:
    """Soft-deletes expired content and purges old soft-deleted rows."""

    def __init__(
        self,
        db: Session,
        now: Optional[datetime] = None,
        content_ttl_hours: int = 24,
        pick_expiry_hours: int = 3,
        retention_days: int = 30,
        bet_archive_days: int = 7,
        engagement_archive_days: int = 3,
    ):
        self.db = db
        self.now = now or utcnow()
        self.content_ttl = timedelta(hours=content_ttl_hours)
        self.pick_expiry = timedelta(hours=pick_expiry_hours)
        self.retention = timedelta(days=retention_days)
        self.bet_archive = timedelta(days=bet_archive_days)
        self.engagement_archive = timedelta(days=engagement_archive_days)
        self.repos = {table: ContentRepository(db, table) for table in ContentTable}
        self.pick_actions = DependentRepository(db, PickAction, "post_id")
        self.story_views = DependentRepository(db, StoryView, "story_id")

    # ========================================================================
    # Candidate selection
    # ========================================================================

    def expired_content_post_ids(self, limit: Optional[int] = None) -> List[str]:
        ttl_cutoff = self.now - self.content_ttl
        return self.repos[ContentTable.POSTS].live_ids_where(
            Post.post_type == "content",
            or_(
                Post.expires_at <= self.now,
                and_(Post.expires_at.is_(None), Post.created_at <= ttl_cutoff),
            ),
            limit=limit,
        )

    def expired_pick_post_ids(self, limit: Optional[int] = None) -> List[str]:
        """Pick posts whose game started more than PICK_EXPIRY_HOURS ago."""
        game_cutoff = self.now - self.pick_expiry
        started_bets = self.db.query(Bet.id).join(
            Game, Game.id == Bet.game_id
        ).filter(Game.commence_time <= game_cutoff)

        return self.repos[ContentTable.POSTS].live_ids_where(
            Post.post_type == "pick",
            Post.bet_id.in_(started_bets),
            limit=limit,
        )

    def expired_ids(self, table: ContentTable, limit: Optional[int] = None) -> List[str]:
        """Rows of a table with an explicit expires_at that has passed."""
        if table not in EXPIRING_TABLES:
            raise ValueError(f"{table.value} has no explicit expiry")
        model = table.model
        return self.repos[table].live_ids_where(
            model.expires_at.isnot(None),
            model.expires_at <= self.now,
            limit=limit,
        )

    def orphaned_comment_ids(self, pending_post_ids: Optional[List[str]] = None,
                             limit: Optional[int] = None) -> List[str]:
        """
        Live comments whose post is soft-deleted.

        ``pending_post_ids`` counts posts about to be deleted in this run
        (used by dry runs, where nothing has actually been stamped yet).
        """
        deleted_posts = self.db.query(Post.id).filter(Post.deleted_at.isnot(None))
        criterion = Comment.post_id.in_(deleted_posts)
        if pending_post_ids:
            criterion = or_(criterion, Comment.post_id.in_(pending_post_ids))
        return self.repos[ContentTable.COMMENTS].live_ids_where(criterion, limit=limit)

    def orphaned_pick_action_ids(self, pending_post_ids: Optional[List[str]] = None,
                                 limit: Optional[int] = None) -> List[str]:
        deleted_picks = self.db.query(Post.id).filter(Post.post_type == "pick", Post.deleted_at.isnot(None))
        return self.pick_actions.ids_for_parents(deleted_picks, pending_post_ids, limit=limit)

    def orphaned_story_view_ids(self, pending_story_ids: Optional[List[str]] = None,
                                limit: Optional[int] = None) -> List[str]:
        deleted_stories = self.db.query(Story.id).filter(Story.deleted_at.isnot(None))
        return self.story_views.ids_for_parents(deleted_stories, pending_story_ids, limit=limit)

    # ========================================================================
    # Run
    # ========================================================================

    def _soft_delete(self, table: ContentTable, ids: List[str], dry_run: bool) -> int:
        if dry_run or not ids:
            return len(ids)
        return self.repos[table].soft_delete(ids, self.now)

    @staticmethod
    def _hard_delete(repo, ids: List[str], dry_run: bool) -> int:
        if dry_run or not ids:
            return len(ids)
        return repo.delete_by_ids(ids)

    def expire_all(self, limit: Optional[int] = None, dry_run: bool = False) -> Dict[str, int]:
        """
        Soft-delete everything that has expired.

        Returns:
            Ordered mapping of step name to affected (or would-be) row count
        """
        counts: Dict[str, int] = OrderedDict()

        content_ids = self.expired_content_post_ids(limit)
        counts["posts"] = self._soft_delete(ContentTable.POSTS, content_ids, dry_run)

        already = set(content_ids)
        pick_ids = [i for i in self.expired_pick_post_ids(limit) if i not in already]
        counts["picks"] = self._soft_delete(ContentTable.POSTS, pick_ids, dry_run)

        expired = {}
        for table in EXPIRING_TABLES:
            expired[table] = self.expired_ids(table, limit)
            counts[table.value] = self._soft_delete(table, expired[table], dry_run)

        if not dry_run:
            self.db.flush()
        pending = content_ids + pick_ids if dry_run else None
        counts["comments"] = self._soft_delete(
            ContentTable.COMMENTS, self.orphaned_comment_ids(pending, limit), dry_run
        )

        pending_picks = pick_ids if dry_run else None
        pending_stories = expired[ContentTable.STORIES] if dry_run else None
        counts["pick_actions"] = self._hard_delete(
            self.pick_actions, self.orphaned_pick_action_ids(pending_picks, limit), dry_run
        )
        counts["story_views"] = self._hard_delete(
            self.story_views, self.orphaned_story_view_ids(pending_stories, limit), dry_run
        )

        logger.debug(f"Expiration counts: {dict(counts)}")
        return counts

    def archive_stale(self, limit: Optional[int] = None, dry_run: bool = False) -> Dict[str, int]:
        """
        Flag old bets and engagement rows as archived.

        Returns:
            Ordered mapping of table name to archived (or would-be) row count
        """
        steps = (
            ("bets", Bet, self.now - self.bet_archive),
            ("reactions", Reaction, self.now - self.engagement_archive),
            ("pick_actions", PickAction, self.now - self.engagement_archive),
        )
        counts: Dict[str, int] = OrderedDict()
        for name, model, cutoff in steps:
            repo = ArchiveRepository(self.db, model)
            ids = repo.unarchived_ids_before(cutoff, limit)
            counts[name] = len(ids) if dry_run else repo.archive(ids)
        return counts

    def purge_soft_deleted(self, limit: Optional[int] = None, dry_run: bool = False) -> Dict[str, int]:
        """
        Hard-delete rows soft-deleted more than the retention window ago.

        Returns:
            Mapping of table name to deleted (or would-be) row count
        """
        cutoff = self.now - self.retention
        counts: Dict[str, int] = OrderedDict()

        for table in HARD_DELETE_ORDER:
            repo = self.repos[table]
            ids = repo.ids_deleted_before(cutoff, limit)
            if dry_run:
                counts[table.value] = len(ids)
            else:
                counts[table.value] = repo.delete_by_ids(ids)

        return counts
