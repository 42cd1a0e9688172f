"""Translate AgencyFlowError into the JSON error envelope."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agencyflow.errors.exceptions import AgencyFlowError, ConflictError, ForbiddenError, NotFoundError
from agencyflow.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def error_body(exc: AgencyFlowError, trace_id: str) -> dict:
    envelope = ErrorResponse(
        error=ErrorDetail(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            trace_id=trace_id,
            timestamp=datetime.now(timezone.utc),
        )
    )
    return envelope.model_dump(mode="json", exclude_none=True)


def _log_rejection(request: Request, exc: AgencyFlowError, trace_id: str) -> None:
    caller = getattr(request.state, "user", None) or {}
    if isinstance(exc, ForbiddenError):
        logger.warning(
            "forbidden %s %s actor=%s role=%s trace=%s: %s",
            request.method,
            request.url.path,
            caller.get("sub", "anonymous"),
            caller.get("role"),
            trace_id,
            exc.message,
        )
    elif isinstance(exc, (ConflictError, NotFoundError)):
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    elif exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AgencyFlowError)
    async def handle_agencyflow_error(request: Request, exc: AgencyFlowError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        _log_rejection(request, exc, trace_id)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, trace_id))
