"""
Shared data access for SnapBet repositories.

Repositories add to the session and flush; they never commit. The job that
owns the session decides between commit and rollback (dry runs roll back).

Bulk writes go by primary key in chunks, so a job that selected ten thousand
expired rows does not build one giant ``IN`` clause.

Example:
    class GameRepository(BaseRepository[Game]):
        def __init__(self, db):
            super().__init__(Game, db)
"""
from abc import ABC
from typing import Any, Dict, Generic, Iterator, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.orm import Query, Session

T = TypeVar("T")

ID_CHUNK_SIZE = 500


def chunked(ids: Sequence[str], size: int = ID_CHUNK_SIZE) -> Iterator[List[str]]:
    """Split a list of ids into IN-clause sized pieces."""
    ids = list(ids)
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class BaseRepository(Generic[T], ABC):
    """
    Attributes:
        model_type: Mapped class, which must have a string ``id`` column
        db: Session owned by the caller
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    def _filtered(self, *criterion) -> Query:
        return self.db.query(self.model_type).filter(*criterion)

    # ========================================================================
    # Reads
    # ========================================================================

    def find_by_id(self, id: str) -> Optional[T]:
        return self.db.get(self.model_type, id)

    def where(self, *criterion) -> List[T]:
        """All rows matching SQLAlchemy expressions."""
        return self._filtered(*criterion).all()

    def ids_where(self, *criterion, limit: Optional[int] = None) -> List[str]:
        """
        Primary keys matching the criterion, in id order.

        Mutating jobs select ids first and then write by id, so ``limit``
        bounds the reported count and the write alike.
        """
        query = self.db.query(self.model_type.id).filter(*criterion).order_by(self.model_type.id)
        if limit is not None:
            query = query.limit(limit)
        return [row_id for (row_id,) in query]

    # ========================================================================
    # Writes
    # ========================================================================

    def create(self, **fields) -> T:
        """Add a new row to the session; the caller commits."""
        instance = self.model_type(**fields)
        self.db.add(instance)
        return instance

    def update_by_ids(self, ids: Sequence[str], values: Dict[str, Any]) -> int:
        """Set ``values`` on each id; returns rows touched."""
        touched = 0
        for chunk in chunked(ids):
            touched += self._filtered(self.model_type.id.in_(chunk)).update(values, synchronize_session=False)
        return touched

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        """Hard-delete each id; returns rows removed."""
        removed = 0
        for chunk in chunked(ids):
            removed += self._filtered(self.model_type.id.in_(chunk)).delete(synchronize_session=False)
        return removed
