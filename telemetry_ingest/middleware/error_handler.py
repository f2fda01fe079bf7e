"""Structured error responses for unhandled exceptions."""
from fastapi import Request
from fastapi.responses import JSONResponse
import structlog
from .correlation import get_correlation_id
from ..errors import StoreUnavailableError

log = structlog.get_logger()


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """The batch could not be looked up or written; nothing is retried."""
    correlation_id = get_correlation_id()
    log.error(
        "store.unavailable",
        operation=exc.operation,
        error=exc.message,
        path=request.url.path,
        correlation_id=correlation_id,
    )
    return JSONResponse(
        status_code=503,
        content={
            "error": "StoreUnavailable",
            "message": f"Event store {exc.operation} could not be completed",
            "correlation_id": correlation_id,
            "path": str(request.url.path)
        }
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = get_correlation_id()
    log.error(
        "unhandled.exception",
        error=str(exc),
        error_type=exc.__class__.__name__,
        path=request.url.path,
        correlation_id=correlation_id,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "correlation_id": correlation_id,
            "path": str(request.url.path)
        }
    )


def register_error_handlers(app):
    """Install the structured handlers on ``app``."""
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
