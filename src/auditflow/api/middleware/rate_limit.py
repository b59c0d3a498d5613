"""Per-client request rate limiting using slowapi."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from auditflow.config import settings
from auditflow.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render a limiter rejection as the standard error envelope.

    Must stay synchronous: SlowAPIMiddleware calls it without awaiting.
    """
    trace_id = getattr(request.state, "trace_id", "unknown")
    logger.info(
        "rate_limit_exceeded",
        extra={"path": request.url.path, "client": get_remote_address(request), "trace_id": trace_id},
    )
    error_response = ErrorResponse(
        error=ErrorDetail(
            code="RATE_LIMIT_EXCEEDED",
            message="Too many requests from this client, please try again later",
            details={"limit": str(exc.detail)},
            trace_id=trace_id,
            timestamp=datetime.now(timezone.utc),
        ),
    )
    response = JSONResponse(
        status_code=429,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )
    return request.app.state.limiter._inject_headers(response, getattr(request.state, "view_rate_limit", None))


def setup_rate_limiter(app: FastAPI) -> None:
    """Attach a slowapi limiter shared by every route, keyed on client address."""
    if not settings.rate_limit_enabled:
        return

    limit = f"{settings.rate_limit_max_requests}/{settings.rate_limit_window_seconds} seconds"
    limiter = Limiter(
        key_func=get_remote_address,
        application_limits=[limit],
        headers_enabled=True,
        storage_uri=settings.rate_limit_storage_uri,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    logger.info("Rate limiter configured (%s per client)", limit)
