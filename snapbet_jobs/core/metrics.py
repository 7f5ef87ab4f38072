"""
Prometheus metrics for the SnapBet job runner.

Metrics exposed:
- Job run counters, durations and affected-row counters
- Settlement outcome counters
- Scheduler status gauges
"""
from prometheus_client import Counter, Gauge, Histogram

# Job Metrics
job_runs_total = Counter(
    "snapbet_job_runs_total",
    "Total job executions",
    ["job", "status"]
)

job_duration_seconds = Histogram(
    "snapbet_job_duration_seconds",
    "Job execution duration in seconds",
    ["job"],
    buckets=(0.05, 0.1, 0.5, 1, 5, 15, 30, 60, 120, 300, 600)
)

job_affected_rows_total = Counter(
    "snapbet_job_affected_rows_total",
    "Total rows affected by job executions",
    ["job"]
)

# Settlement Metrics
bets_settled_total = Counter(
    "snapbet_bets_settled_total",
    "Total bets settled",
    ["status"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "snapbet_scheduler_running",
    "Whether the job scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "snapbet_scheduler_jobs_total",
    "Total number of registered jobs"
)


def record_job_run(job_name: str, success: bool, duration_ms: int, affected: int, dry_run: bool = False):
    """Record the outcome of one job execution."""
    if dry_run:
        status = "dry_run"
    else:
        status = "success" if success else "failure"

    job_runs_total.labels(job=job_name, status=status).inc()
    job_duration_seconds.labels(job=job_name).observe(duration_ms / 1000)

    if success and not dry_run and affected > 0:
        job_affected_rows_total.labels(job=job_name).inc(affected)


def record_bet_settled(status: str):
    """Record a single settled bet by terminal status."""
    bets_settled_total.labels(status=status).inc()


def update_scheduler_metrics(scheduler) -> None:
    """
    Update scheduler metrics from a JobScheduler instance.

    Pass None when no scheduler is attached to the process.
    """
    if scheduler is not None and scheduler.running:
        scheduler_running.set(1)
        scheduler_jobs_total.set(len(scheduler.jobs))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)
