"""
Ops endpoints for the job runner.

The JobScheduler and session factory live on ``app.state``; these routes
only read them, so tests can build an app around an in-memory database.
"""
import logging
from typing import Dict, Generator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from snapbet_jobs.core.exceptions import DestructiveJobError, UnknownJobError
from snapbet_jobs.core.scheduler import JobScheduler
from snapbet_jobs.jobs.base import JobOptions
from snapbet_jobs.repositories import JobExecutionRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_scheduler(request: Request) -> JobScheduler:
    """Dependency returning the app's JobScheduler."""
    return request.app.state.job_scheduler


def get_session(request: Request) -> Generator[Session, None, None]:
    """Dependency providing a session from the app's session factory."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@router.get("")
async def list_jobs(scheduler: JobScheduler = Depends(get_job_scheduler)) -> Dict:
    """Registered jobs in declaration order with their schedules."""
    jobs = [
        {
            "name": job.name,
            "description": job.config.description,
            "schedule": job.schedule,
            "timeout": job.timeout,
            "destructive": job.destructive,
        }
        for job in scheduler.jobs
    ]
    return {"jobs": jobs, "total_jobs": len(jobs)}


@router.get("/executions")
async def list_executions(
    job_name: Optional[str] = Query(None, description="Only executions of this job"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_session),
) -> Dict:
    """Most recent JobExecution audit rows, newest first."""
    executions = JobExecutionRepository(db).find_recent(job_name=job_name, limit=limit)
    return {
        "executions": [
            {
                "id": execution.id,
                "job_name": execution.job_name,
                "success": execution.success,
                "message": execution.message,
                "affected_count": execution.affected_count,
                "duration_ms": execution.duration_ms,
                "details": execution.details,
                "executed_by": execution.executed_by,
                "created_at": execution.created_at.isoformat() if execution.created_at else None,
            }
            for execution in executions
        ],
        "count": len(executions),
    }


@router.get("/scheduler/status")
async def get_scheduler_status(scheduler: JobScheduler = Depends(get_job_scheduler)) -> Dict:
    """Running flag, tick times and the last result of every job."""
    return scheduler.status()


@router.post("/{job_name}/run")
async def run_job(
    job_name: str,
    dry_run: bool = Query(False, description="Preview without writing"),
    limit: Optional[int] = Query(None, ge=1, description="Process at most N items"),
    force: bool = Query(False, description="Required to run a destructive job for real"),
    scheduler: JobScheduler = Depends(get_job_scheduler),
) -> Dict:
    """
    Run one job immediately, outside its schedule.

    Returns the JobResult; a failed job still returns 200 with success=false.
    A destructive job is refused with 409 unless ``dry_run`` or ``force`` is set.
    """
    try:
        job = scheduler.get_job(job_name)
    except UnknownJobError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if job.destructive and not dry_run and not force:
        raise HTTPException(status_code=409, detail=str(DestructiveJobError(job.name)))

    logger.info(f"🔄 Manual trigger via API: {job.name} (dry_run={dry_run}, force={force})")
    results = await scheduler.run_once(job.name, JobOptions(dry_run=dry_run, limit=limit, force=force))
    return results[0].model_dump()
