"""
HTTP endpoint tests for the snapbet-jobs ops API.

These tests verify that the endpoints:
- Return correct HTTP status codes
- Expose the job table and scheduler state
- Run jobs on demand and record them in the audit trail
- Echo the correlation ID header

Uses httpx.AsyncClient over ASGITransport against the in-memory database.
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

class TestRootAndHealthEndpoints:
    """Test root and health check endpoints."""

    @pytest.mark.asyncio
    async def test_root_endpoint(self, async_client: AsyncClient):
        """Test root endpoint returns API information."""
        response = await async_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["endpoints"]["jobs"] == "/api/v1/jobs"

    @pytest.mark.asyncio
    async def test_health_endpoint(self, async_client: AsyncClient):
        """Test health check reports a stopped scheduler in tests."""
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"
        assert data["scheduler"] == "stopped"

    @pytest.mark.asyncio
    async def test_correlation_id_echoed(self, async_client: AsyncClient):
        """Test the X-Correlation-ID header is passed through to the response."""
        response = await async_client.get("/health", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["X-Correlation-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_correlation_id_generated(self, async_client: AsyncClient):
        """Test a correlation ID is generated when the caller sends none."""
        response = await async_client.get("/health")

        assert response.headers["X-Correlation-ID"].startswith("api-")
        assert float(response.headers["X-Response-Time-Ms"]) >= 0

    @pytest.mark.asyncio
    async def test_malformed_correlation_id_replaced(self, async_client: AsyncClient):
        """Test a header with unsafe characters is replaced by a generated ID."""
        response = await async_client.get("/health", headers={"X-Correlation-ID": "bad id with spaces"})

        assert response.headers["X-Correlation-ID"].startswith("api-")


# =============================================================================
# JOB TABLE & SCHEDULER
# =============================================================================

class TestJobEndpoints:
    """Test job listing and scheduler status."""

    @pytest.mark.asyncio
    async def test_list_jobs(self, async_client: AsyncClient):
        """Test every job is listed in declaration order."""
        response = await async_client.get("/api/v1/jobs")

        assert response.status_code == 200
        data = response.json()
        names = [job["name"] for job in data["jobs"]]
        assert data["total_jobs"] == 10
        assert names[0] == "content-expiration"
        assert names[-1] == "media-cleanup"

        reset = next(job for job in data["jobs"] if job["name"] == "bankroll-reset")
        assert reset["schedule"] == "0 0 * * 1"
        assert reset["destructive"] is True

    @pytest.mark.asyncio
    async def test_scheduler_status(self, async_client: AsyncClient):
        """Test scheduler status before the scheduler is started."""
        response = await async_client.get("/api/v1/jobs/scheduler/status")

        assert response.status_code == 200
        data = response.json()
        assert data["running"] is False
        assert len(data["jobs"]) == 10


# =============================================================================
# MANUAL RUNS & AUDIT TRAIL
# =============================================================================

class TestRunEndpoints:
    """Test manual job triggers and the executions listing."""

    @pytest.mark.asyncio
    async def test_run_unknown_job(self, async_client: AsyncClient):
        """Test running an unknown job returns 404."""
        response = await async_client.post("/api/v1/jobs/does-not-exist/run")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_run_job_dry_run(self, async_client: AsyncClient, db_session,
                                   create_user, create_post, now):
        """Test a dry run returns the result and writes nothing."""
        from snapbet_jobs.models import JobExecution, Post

        post = create_post(create_user(), created_at=now - timedelta(hours=30))

        response = await async_client.post("/api/v1/jobs/content-expiration/run", params={"dry_run": True})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["dry_run"] is True
        assert data["job_name"] == "content-expiration"
        assert data["message"].startswith("Would expire 1 items")

        db_session.expire_all()
        assert db_session.get(Post, post.id).deleted_at is None
        assert db_session.query(JobExecution).count() == 0

    @pytest.mark.asyncio
    async def test_run_job_records_execution(self, async_client: AsyncClient):
        """Test a real run shows up in the executions listing."""
        run = await async_client.post("/api/v1/jobs/stats-rollup/run")
        assert run.status_code == 200
        assert run.json()["success"] is True

        response = await async_client.get("/api/v1/jobs/executions", params={"job_name": "stats-rollup"})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["executions"][0]["job_name"] == "stats-rollup"
        assert data["executions"][0]["success"] is True

    @pytest.mark.asyncio
    async def test_destructive_run_needs_force(self, async_client: AsyncClient, db_session, create_user):
        """Test a bare run of bankroll-reset is refused with 409 and writes nothing."""
        from snapbet_jobs.models import Bankroll, JobExecution

        user = create_user(balance=42)

        response = await async_client.post("/api/v1/jobs/bankroll-reset/run")

        assert response.status_code == 409
        assert "destructive" in response.json()["detail"]

        db_session.expire_all()
        assert db_session.query(Bankroll).filter(Bankroll.user_id == user.id).one().balance == 42
        assert db_session.query(JobExecution).count() == 0

    @pytest.mark.asyncio
    async def test_destructive_run_with_force(self, async_client: AsyncClient, db_session, create_user):
        """Test force=true lets bankroll-reset write."""
        from snapbet_jobs.models import Bankroll

        user = create_user(balance=42)

        response = await async_client.post("/api/v1/jobs/bankroll-reset/run", params={"force": True})

        assert response.status_code == 200
        assert response.json()["success"] is True

        db_session.expire_all()
        assert db_session.query(Bankroll).filter(Bankroll.user_id == user.id).one().balance == 100000

    @pytest.mark.asyncio
    async def test_destructive_dry_run_allowed(self, async_client: AsyncClient, create_user):
        """Test a dry run of bankroll-reset needs no force."""
        create_user()

        response = await async_client.post("/api/v1/jobs/bankroll-reset/run", params={"dry_run": True})

        assert response.status_code == 200
        assert response.json()["message"] == "Would reset 1 bankrolls"

    @pytest.mark.asyncio
    async def test_run_job_rejects_bad_limit(self, async_client: AsyncClient):
        """Test a limit below 1 fails validation."""
        response = await async_client.post("/api/v1/jobs/cleanup/run", params={"limit": 0})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_executions_limit_validation(self, async_client: AsyncClient):
        """Test the executions limit is bounded."""
        response = await async_client.get("/api/v1/jobs/executions", params={"limit": 1000})

        assert response.status_code == 422
