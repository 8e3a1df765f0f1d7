"""
Error taxonomy for the blog API.

Every error leaves the API as ``{"message": ...}``. Handlers raise one of
the ``HTTPException`` subclasses below; storage and unexpected exceptions that escape a
handler are converted by the handlers registered in ``register_error_handlers``.
"""
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            status_code=status_code or self.status_code,
            detail=message or self.message,
        )


class ValidationError(ApiError):
    status_code = 400
    message = "All fields are required"


class NotFoundError(ApiError):
    status_code = 404
    message = "Not found"


class ConflictError(ApiError):
    status_code = 400
    message = "Already exists"


class UnauthorizedError(ApiError):
    status_code = 400
    message = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    message = "Forbidden"


class InternalError(ApiError):
    status_code = 500
    message = "Internal server error"


class RequestTimeout(ApiError):
    status_code = 504
    message = "Request timed out"


def storage_error(exc: PyMongoError, error: ApiError) -> ApiError:
    """Map a pymongo failure to ``error``, unless it was a timeout."""
    if getattr(exc, "timeout", False):
        return RequestTimeout()
    logger.error("storage failure: %s", exc)
    return error


def _message(exc: RequestValidationError) -> str:
    for err in exc.errors():
        if err.get("type") in ("missing", "string_too_short", "string_type"):
            return ValidationError.message
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"{field}: {first.get('msg', 'invalid input')}" if field else "Invalid input"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and not isinstance(exc, ApiError):
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": _message(exc)})

    @app.exception_handler(PyMongoError)
    async def storage_failure(request: Request, exc: PyMongoError):
        error = storage_error(exc, InternalError())
        return JSONResponse(status_code=error.status_code, content={"message": error.detail})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": InternalError.message})
