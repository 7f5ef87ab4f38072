"""
Request correlation for the ops API.

Every request gets a correlation ID: the caller's ``X-Correlation-ID`` when
it is a sane token, otherwise a fresh ``api-<8 hex>``. The ID is put in the
logging context while the request runs and echoed back along with the
handling time. Jobs triggered through the API open their own job context on
top of it.
"""
import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from snapbet_jobs.core.logging import clear_correlation_id, get_logger, new_correlation_id, set_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
DURATION_HEADER = "X-Response-Time-Ms"

_VALID_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_correlation_id(header_value: str | None) -> str:
    """Caller-supplied ID when well-formed, else a generated one."""
    if header_value and _VALID_ID.match(header_value):
        return header_value
    return new_correlation_id("api")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Usage:
        app.add_middleware(CorrelationIdMiddleware)

    The ID is available to handlers as ``request.state.correlation_id``.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id

        token = set_correlation_id(correlation_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000

            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers[DURATION_HEADER] = f"{elapsed_ms:.1f}"

            log = logger.warning if response.status_code >= 500 else logger.debug
            log(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)",
                extra={"method": request.method, "path": request.url.path, "status": response.status_code},
            )
            return response
        finally:
            clear_correlation_id(token)
