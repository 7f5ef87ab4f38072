"""
JobExecution Repository.

The audit trail is append-only: rows are inserted by BaseJob and only ever
removed by the cleanup job's retention sweep.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc

from snapbet_jobs.models import JobExecution
from snapbet_jobs.repositories.base import BaseRepository


class JobExecutionRepository(BaseRepository[JobExecution]):
    """Repository for job execution audit records."""

    def __init__(self, db):
        super().__init__(JobExecution, db)

    def find_recent(self, job_name: Optional[str] = None, limit: int = 50) -> List[JobExecution]:
        """Most recent executions, newest first."""
        query = self.db.query(JobExecution)
        if job_name:
            query = query.filter(JobExecution.job_name == job_name)
        return query.order_by(desc(JobExecution.created_at)).limit(limit).all()

    def ids_older_than(self, cutoff: datetime, limit: Optional[int] = None) -> List[str]:
        return self.ids_where(JobExecution.created_at < cutoff, limit=limit)
