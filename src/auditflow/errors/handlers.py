"""FastAPI exception handlers producing the standard ErrorResponse."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from auditflow.errors.exceptions import AdmissionError, AuditFlowError
from auditflow.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(AuditFlowError)
    async def auditflow_error_handler(request: Request, exc: AuditFlowError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if isinstance(exc, AdmissionError):
            logger.info(
                "audit_admission_rejected",
                extra={
                    "path": request.url.path,
                    "trace_id": trace_id,
                    "limit": exc.limit,
                    "used": exc.used,
                },
            )
        elif exc.status_code >= 500:
            logger.error("Request failed (%s): %s", exc.code, exc.message)

        error_response = ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
                trace_id=trace_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json", exclude_none=True),
        )
