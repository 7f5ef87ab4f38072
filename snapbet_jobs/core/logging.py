"""
Structured logging for the job runner.

Two context variables travel with every log line:
- correlation_id: one per job execution (``<job>-<8 hex>``) or per API request
- job: the name of the job currently executing

``job_context(name)`` sets both for the duration of an execution, so
anything logged from repositories or services inside a job is attributable
to that run without passing the name around.
"""
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
job_name_var: ContextVar[str] = ContextVar("job_name", default="")

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

QUIET_LOGGERS = {
    "apscheduler": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields: timestamp (UTC, ``Z`` suffix), level, logger, message,
    correlation_id, job (inside an execution), location (warnings and up),
    exception, extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        job = job_name_var.get()
        if job:
            payload["job"] = job

        if record.levelno >= logging.WARNING:
            payload["location"] = f"{record.module}:{record.lineno}"

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [job] message`` for terminals running the CLI."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        job = job_name_var.get()
        scope = f" [{job}]" if job else f" {self.DIM}{record.name}{self.RESET}"

        line = f"{self.DIM}{clock}{self.RESET} {color}{record.levelname:<7}{self.RESET}{scope} {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: logging.Handler | None = None,
) -> None:
    """
    Replace the root logger's handlers with one formatted handler.

    Args:
        level: Logging level name
        json_output: JSON lines (servers) instead of colored text (CLI)
        handler: Handler to use; defaults to a stdout StreamHandler
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)

    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root_logger.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ============================================================================
# Context
# ============================================================================

def new_correlation_id(prefix: str) -> str:
    """Short correlation ID such as ``game-settlement-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def set_correlation_id(correlation_id: str) -> Any:
    """Set the correlation ID; returns the token for clear_correlation_id."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def clear_correlation_id(token: Any) -> None:
    correlation_id_var.reset(token)


def get_job_name() -> str:
    return job_name_var.get()


@contextmanager
def job_context(job_name: str) -> Iterator[str]:
    """
    Scope logs to one job execution.

    Yields:
        The execution's correlation ID
    """
    correlation_id = new_correlation_id(job_name)
    correlation_token = correlation_id_var.set(correlation_id)
    job_token = job_name_var.set(job_name)
    try:
        yield correlation_id
    finally:
        job_name_var.reset(job_token)
        correlation_id_var.reset(correlation_token)
