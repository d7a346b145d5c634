"""
cush/core/errors.py

Purpose: Translate exceptions into the {error, code, details} envelope

- CushError subclasses carry their own status and code
- Framework HTTP errors get a code derived from the status
- Anything else is logged with a traceback and answered with 500
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cush.core.config import settings
from cush.core.exceptions import CushError
from cush.core.logging import get_logger
from cush.schemas.response import ErrorResponse

logger = get_logger(__name__)

HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_FAILED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
}


def error_response(status_code: int, error: str, code: str, details: Optional[Any] = None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, details=details).model_dump()
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _request_fields(request: Request) -> dict:
    return {"method": request.method, "path": request.url.path}


def add_exception_handlers(app: FastAPI):
    @app.exception_handler(CushError)
    async def cush_error_handler(request: Request, exc: CushError):
        if exc.status_code >= 500:
            logger.error(f"❌ {exc.code}: {exc.message}", extra=_request_fields(request))
        else:
            logger.debug(f"{exc.code}: {exc.message}", extra=_request_fields(request))
        return error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        return error_response(exc.status_code, str(exc.detail), code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Field-level problems go back in ``details``."""
        return error_response(422, "Input validation failed", "VALIDATION_ERROR", exc.errors())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        client = request.client.host if request.client else "unknown"
        logger.error(
            f"💥 Unhandled {type(exc).__name__}: {exc}",
            extra={**_request_fields(request), "client": client},
            exc_info=True,
        )
        message = "An internal error occurred. Please try again later." if settings.is_production else str(exc)
        return error_response(500, message, "INTERNAL_ERROR")
