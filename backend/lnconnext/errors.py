"""Application error types and their HTTP mapping.

Services and validators raise `AppError` subclasses; the handlers
registered by `register_error_handlers` turn them into the JSON error
envelope `{"success": false, "error": "<message>"}` with the error's
status code. Anything else becomes a logged 500.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("lnconnext.errors")


class AppError(Exception):
    """Base error carrying an HTTP status code."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(AppError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409


class RateLimitError(AppError):
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(f"rate limit exceeded; retry after {retry_after}s")
        self.retry_after = retry_after


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def _app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("api_error %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("api_error %s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message), headers=headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
        message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content=error_body(message))


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=error_body("Internal Server Error"))


def register_error_handlers(app: FastAPI) -> None:
    """Install the error envelope handlers on `app`."""
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
