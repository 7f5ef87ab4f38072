"""
Ops API for the SnapBet job runner.

Serves health, Prometheus metrics, the job schedule, the execution audit
trail and manual job triggers. When SCHEDULER_ENABLED is set the minute-tick
scheduler runs inside this process.

Run with:
    uvicorn snapbet_jobs.main:app --port 8002
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from prometheus_fastapi_instrumentator import Instrumentator

from snapbet_jobs.core import metrics
from snapbet_jobs.core.config import Settings, settings as default_settings
from snapbet_jobs.core.database import SessionFactory
from snapbet_jobs.core.logging import configure_logging, get_logger
from snapbet_jobs.core.middleware import CorrelationIdMiddleware
from snapbet_jobs.core.scheduler import JobScheduler
from snapbet_jobs.api.routes import jobs as jobs_routes
from snapbet_jobs.jobs import build_jobs

logger = get_logger(__name__)


def create_app(
    session_factory: Optional[SessionFactory] = None,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the ops app.

    Args:
        session_factory: Session factory for jobs and endpoints (defaults to SessionLocal)
        app_settings: Settings instance (defaults to the module-level settings)
    """
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        # Startup
        logger.info(f"Starting {app_settings.APP_NAME} v{app_settings.APP_VERSION}")

        factory = session_factory
        if factory is None:
            from snapbet_jobs.core.database import SessionLocal
            factory = SessionLocal

        scheduler = JobScheduler(build_jobs(factory, app_settings), timezone=app_settings.SCHEDULER_TIMEZONE)
        app.state.session_factory = factory
        app.state.job_scheduler = scheduler

        if app_settings.SCHEDULER_ENABLED:
            scheduler.start()
            logger.info("Job scheduler started")
        else:
            logger.info("Job scheduler disabled (SCHEDULER_ENABLED=false)")
        metrics.update_scheduler_metrics(scheduler)

        yield

        # Shutdown
        scheduler.stop()
        metrics.update_scheduler_metrics(None)
        logger.info("Shutting down application")

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="SnapBet background jobs: settlement, odds, badges, stats and content lifecycle",
        debug=app_settings.DEBUG,
        lifespan=lifespan
    )

    app.add_middleware(CorrelationIdMiddleware)

    # Initialize Prometheus metrics BEFORE including routes
    instrumentator = Instrumentator()
    instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(jobs_routes.router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "status": "running",
            "endpoints": {
                "jobs": "/api/v1/jobs",
                "executions": "/api/v1/jobs/executions",
                "scheduler": "/api/v1/jobs/scheduler/status",
                "metrics": "/metrics",
                "health": "/health",
            },
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        scheduler = getattr(request.app.state, "job_scheduler", None)
        return {
            "status": "healthy",
            "version": app_settings.APP_VERSION,
            "environment": app_settings.ENVIRONMENT,
            "scheduler": "running" if scheduler is not None and scheduler.running else "stopped",
        }

    return app


configure_logging(
    level=default_settings.LOG_LEVEL,
    json_output=default_settings.LOG_JSON
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
