"""FastAPI exception handlers producing ErrorResponse bodies."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rubberband.errors.exceptions import (
    AuthorizationError,
    DataCleanupFailed,
    IdentityDeletionFailed,
    RubberbandError,
    ServiceMisconfigured,
    WorkflowError,
)
from rubberband.models.common import AccountDeletionErrorResponse, ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(RubberbandError)
    async def rubberband_error_handler(request: Request, exc: RubberbandError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if isinstance(exc, AuthorizationError):
            user = getattr(request.state, "user", {}) or {}
            logger.warning(
                "access_denied",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "trace_id": trace_id,
                    "user_sub": user.get("sub", "anonymous"),
                    "reason": str(exc),
                },
            )
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

    async def account_deletion_error_handler(request: Request, exc: WorkflowError):
        body = AccountDeletionErrorResponse(
            message=exc.message,
            error=str(exc.cause) if exc.cause is not None else exc.message,
            errorType=exc.error_type,
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

    for exc_class in (ServiceMisconfigured, DataCleanupFailed, IdentityDeletionFailed):
        app.add_exception_handler(exc_class, account_deletion_error_handler)
