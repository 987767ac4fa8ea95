"""Response envelope and exception handlers.

Every response, success or error, has the shape
``{success, message, data?, code?}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.config import settings
from marketplace.errors import MarketplaceError

logger = structlog.get_logger(__name__)

_HTTP_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def envelope(success: bool, message: str, data=None, code: str | None = None) -> dict:
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if code is not None:
        body["code"] = code
    return body


def _error(status_code: int, message: str, code: str, data=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(False, message, data=data, code=code))


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error(request: Request, exc: MarketplaceError):
        logger.warning(
            "Request rejected",
            path=request.url.path,
            method=request.method,
            code=exc.code,
            error=exc.message,
        )
        return _error(exc.status_code, exc.message, exc.code, data=exc.details or None)

    @app.exception_handler(ValidationError)
    async def domain_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation failed", path=request.url.path, errors=exc.messages)
        return _error(400, "Validation failed", "VALIDATION_ERROR", data={"errors": exc.messages})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"] if part != "body")
            errors.setdefault(field or "body", []).append(error["msg"])
        return _error(400, "Validation failed", "VALIDATION_ERROR", data={"errors": errors})

    # Unknown routes, wrong methods and HTTPExceptions raised by dependencies
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(False, message, code=code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_error(request: Request, exc: ObjectNotFoundError):
        return _error(404, "Resource not found", "NOT_FOUND")

    @app.exception_handler(InvalidOperationError)
    async def invalid_operation_error(request: Request, exc: InvalidOperationError):
        return _error(409, str(exc), "CONFLICT")

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        data = None if settings.is_production else {"trace": f"{type(exc).__name__}: {exc}"}
        return _error(500, "An unexpected error occurred", "SERVER_ERROR", data=data)
