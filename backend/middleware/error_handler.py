"""
Global Error Handlers for HoopSense
Every error response has the same shape: {"error", "detail", "path", ...}.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from exceptions import HoopSenseException
from config.settings import get_settings

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, code: str, detail, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "detail": detail, "path": str(request.url.path), **extra}
    )


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers on the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    settings = get_settings()

    @app.exception_handler(HoopSenseException)
    async def hoopsense_exception_handler(request: Request, exc: HoopSenseException) -> JSONResponse:
        """Domain errors raised by the pipeline and endpoints"""
        # 4xx at WARNING, 5xx at ERROR
        log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            f"{exc.code}: {exc.message}",
            extra={
                "code": exc.code,
                "status_code": exc.status_code,
                "path": str(request.url.path),
                "method": request.method,
                "details": exc.details
            }
        )
        extra = {"details": exc.details} if exc.details else {}
        return _error_response(request, exc.status_code, exc.code, exc.message, **extra)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Routing and framework-level HTTP errors"""
        logger.warning(
            f"HTTP error: {exc.status_code} - {exc.detail}",
            extra={"status_code": exc.status_code, "path": str(request.url.path), "method": request.method}
        )
        return _error_response(request, exc.status_code, "HTTP_ERROR", exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed form fields or query parameters"""
        formatted_errors = [
            {
                "field": ".".join(str(loc) for loc in error.get("loc", [])),
                "message": error.get("msg", "Validation error"),
                "type": error.get("type", "unknown")
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Validation error on {request.url.path}",
            extra={"path": str(request.url.path), "method": request.method, "errors": formatted_errors}
        )
        return _error_response(
            request, 422, "VALIDATION_ERROR", "Request validation failed",
            validation_errors=formatted_errors
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything else is a bug: log the traceback, hide it outside debug"""
        logger.error(
            f"Unhandled exception: {type(exc).__name__} - {exc}",
            exc_info=True,
            extra={"path": str(request.url.path), "method": request.method}
        )
        if settings.DEBUG:
            return _error_response(
                request, 500, "INTERNAL_SERVER_ERROR", str(exc),
                traceback=traceback.format_exc()
            )
        return _error_response(request, 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")
