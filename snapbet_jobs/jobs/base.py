"""
Job contract shared by every background job.

A job declares a JobConfig and implements ``run(db, options)``. Callers use
``execute(options)``, which adds:
- its own session from the injected session factory
- timing, correlation ID and ✅/❌ logging
- a timeout (the job is failed and rolled back when it expires)
- commit on success, rollback on failure or dry run
- Prometheus metrics
- a JobExecution audit row for every non-dry-run execution, failures included
- a refusal, before any session is opened, when a destructive job is run
  for real without ``force``

``execute`` never raises; every failure becomes a failed JobResult.

Example:
    class NoopJob(BaseJob):
        config = JobConfig(name="noop", description="Does nothing", schedule="* * * * *")

        async def run(self, db, options):
            return JobResult(success=True, message="Nothing to do")

    result = await NoopJob(SessionLocal).execute(JobOptions(dry_run=True))
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from snapbet_jobs.core import metrics
from snapbet_jobs.core.config import Settings, settings as default_settings
from snapbet_jobs.core.database import SessionFactory
from snapbet_jobs.core.exceptions import DestructiveJobError, JobTimeoutError
from snapbet_jobs.core.logging import job_context
from snapbet_jobs.repositories import JobExecutionRepository

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 5


@dataclass(frozen=True)
class JobConfig:
    """Static job declaration: name, description, cron schedule, optional timeout (seconds)."""
    name: str
    description: str
    schedule: str
    timeout: Optional[float] = None


class JobOptions(BaseModel):
    """Per-invocation options shared by the CLI, scheduler and API."""
    dry_run: bool = False
    verbose: bool = False
    limit: Optional[int] = Field(default=None, ge=1)
    force: bool = False


class JobResult(BaseModel):
    """Outcome of one job execution."""
    success: bool
    message: str
    affected: int = 0
    details: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = 0
    job_name: str = ""
    dry_run: bool = False


class BaseJob(ABC):
    """
    Base class for background jobs.

    Args:
        session_factory: Callable returning a new Session (e.g. SessionLocal)
        app_settings: Settings instance (defaults to the module-level settings)
    """

    config: JobConfig
    destructive = False  # excluded from "run all"; real runs need force

    def __init__(self, session_factory: SessionFactory, app_settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = app_settings or default_settings

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def schedule(self) -> str:
        return self.config.schedule

    @property
    def timeout(self) -> Optional[float]:
        if self.config.timeout is not None:
            return self.config.timeout
        return self.settings.DEFAULT_JOB_TIMEOUT_SECONDS

    @abstractmethod
    async def run(self, db: Session, options: JobOptions) -> JobResult:
        """Do the work. Must issue no writes when ``options.dry_run`` is set."""

    # ========================================================================
    # Execution wrapper
    # ========================================================================

    async def execute(self, options: Optional[JobOptions] = None) -> JobResult:
        """Run the job with timing, logging, transaction handling and auditing."""
        options = options or JobOptions()

        with job_context(self.name):
            if self.destructive and not options.dry_run and not options.force:
                error = DestructiveJobError(self.name)
                logger.warning(f"⚠️ {error}")
                return JobResult(
                    success=False,
                    message=str(error),
                    job_name=self.name,
                    details={"error": str(error), "error_type": "DestructiveJobError"},
                )

            started = time.monotonic()
            mode = " (dry run)" if options.dry_run else ""
            logger.info(f"🚀 Starting {self.name}{mode}")

            result = await self._run_in_session(options)
            duration_ms = int((time.monotonic() - started) * 1000)
            result = result.model_copy(update={
                "duration_ms": duration_ms,
                "job_name": self.name,
                "dry_run": options.dry_run,
            })

            if result.success:
                logger.info(f"✅ {self.name}: {result.message} ({duration_ms}ms)")
            else:
                logger.error(f"❌ {self.name}: {result.message} ({duration_ms}ms)")

            metrics.record_job_run(self.name, result.success, duration_ms, result.affected, options.dry_run)

            if not options.dry_run:
                await self._track_execution(result)

            return result

    async def _run_in_session(self, options: JobOptions) -> JobResult:
        db = self.session_factory()
        try:
            result = await asyncio.wait_for(self.run(db, options), timeout=self.timeout)
            if options.dry_run:
                db.rollback()
            else:
                db.commit()
            return result
        except asyncio.TimeoutError:
            db.rollback()
            error = JobTimeoutError(self.name, self.timeout)
            logger.error(f"❌ {error}")
            return JobResult(
                success=False,
                message=str(error),
                affected=0,
                details={"error": str(error), "error_type": "JobTimeoutError"},
            )
        except Exception as e:
            db.rollback()
            logger.exception(f"❌ {self.name} failed: {e}")
            return JobResult(
                success=False,
                message=f"Job failed: {e}",
                affected=0,
                details={"error": str(e), "error_type": type(e).__name__},
            )
        finally:
            db.close()

    # ========================================================================
    # Audit trail
    # ========================================================================

    async def _track_execution(self, result: JobResult) -> None:
        """Persist the JobExecution row; failures here only warn."""
        try:
            await self._write_execution(result)
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Failed to track execution of {self.name}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(SQLAlchemyError),
        reraise=True
    )
    async def _write_execution(self, result: JobResult) -> None:
        db = self.session_factory()
        try:
            JobExecutionRepository(db).create(
                job_name=self.name,
                success=result.success,
                message=result.message,
                affected_count=result.affected,
                duration_ms=result.duration_ms,
                details=result.details or None,
                executed_by=self.settings.JOB_EXECUTOR,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()


def summarize_errors(errors: list) -> list:
    """Cap the error list attached to a result's details."""
    return list(errors[:MAX_REPORTED_ERRORS])
