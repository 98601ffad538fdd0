import logging

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from focusgo.database import is_permission_denied

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_error_handlers(app: FastAPI):
    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        sentry_sdk.capture_exception(exc)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            type=type(exc).__name__,
        )

    @app.exception_handler(ValueError)
    async def invalid_input(request: Request, exc: ValueError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(PermissionError)
    async def permission_denied(request: Request, exc: PermissionError):
        return _error(status.HTTP_403_FORBIDDEN, str(exc) or "Permission denied")

    @app.exception_handler(SQLAlchemyError)
    async def storage_error(request: Request, exc: SQLAlchemyError):
        # Storage that is not provisioned for this user yet is not a server fault
        if is_permission_denied(exc):
            logger.warning("Storage permissions not configured for %s", request.url.path)
            return _error(status.HTTP_403_FORBIDDEN, "Storage permissions not configured")
        logger.exception("Storage error on %s %s", request.method, request.url.path)
        sentry_sdk.capture_exception(exc)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Storage temporarily unavailable")
