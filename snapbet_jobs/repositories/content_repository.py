"""
Content Repository.

One ContentRepository per ContentTable; every content table shares the
``deleted_at`` soft-delete column. Archived rows and rows that depend on a
content row get their own small repositories.
"""
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import or_

from snapbet_jobs.repositories.base import BaseRepository
from snapbet_jobs.services.content.tables import ContentTable


class ContentRepository(BaseRepository):
    """Soft-delete aware access to one content table."""

    def __init__(self, db, table: ContentTable):
        super().__init__(table.model, db)
        self.table = table

    def live_ids_where(self, *criterion, limit: Optional[int] = None) -> List[str]:
        """IDs of rows that are not soft-deleted and match the criterion."""
        return self.ids_where(self.model_type.deleted_at.is_(None), *criterion, limit=limit)

    def soft_delete(self, ids: Sequence[str], when: datetime) -> int:
        return self.update_by_ids(ids, {"deleted_at": when})

    def ids_deleted_before(self, cutoff: datetime, limit: Optional[int] = None) -> List[str]:
        """IDs of rows soft-deleted before ``cutoff``."""
        return self.ids_where(
            self.model_type.deleted_at.isnot(None),
            self.model_type.deleted_at < cutoff,
            limit=limit,
        )


class ArchiveRepository(BaseRepository):
    """
    Rows hidden from feeds by an ``archived`` flag instead of a delete
    (bets, reactions, pick actions).
    """

    def __init__(self, db, model_type):
        super().__init__(model_type, db)

    def unarchived_ids_before(self, cutoff: datetime, limit: Optional[int] = None) -> List[str]:
        return self.ids_where(
            self.model_type.archived.is_(False),
            self.model_type.created_at < cutoff,
            limit=limit,
        )

    def archive(self, ids: Sequence[str]) -> int:
        return self.update_by_ids(ids, {"archived": True})


class DependentRepository(BaseRepository):
    """Rows that belong to a content row and go once it is deleted (pick actions, story views)."""

    def __init__(self, db, model_type, parent_column: str):
        super().__init__(model_type, db)
        self.parent_column = getattr(model_type, parent_column)

    def ids_for_parents(self, *parent_sets, limit: Optional[int] = None) -> List[str]:
        """IDs of rows whose parent is in any of the given id lists or subqueries."""
        parent_sets = [parents for parents in parent_sets if parents is not None]
        if not parent_sets:
            return []
        return self.ids_where(or_(*[self.parent_column.in_(parents) for parents in parent_sets]), limit=limit)
