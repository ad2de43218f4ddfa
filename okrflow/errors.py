"""
API error type and the JSON envelope returned for failures.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "VALIDATION_ERROR": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "RATE_LIMIT_EXCEEDED": 429,
    "INTERNAL_ERROR": 500,
}


class APIError(Exception):
    """Error carrying a machine-readable code and its HTTP status."""

    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status_code = STATUS_BY_CODE[code]


class errors:
    """Factories for the common API errors."""

    @staticmethod
    def unauthorized(message: str = "Unauthorized") -> APIError:
        return APIError("UNAUTHORIZED", message)

    @staticmethod
    def forbidden(message: str = "Forbidden") -> APIError:
        return APIError("FORBIDDEN", message)

    @staticmethod
    def not_found(resource: str = "Resource", message: Optional[str] = None) -> APIError:
        return APIError("NOT_FOUND", message or f"{resource} not found")

    @staticmethod
    def validation(message: str = "Validation failed", details: Any = None) -> APIError:
        return APIError("VALIDATION_ERROR", message, details)

    @staticmethod
    def rate_limit(message: str = "Too many requests") -> APIError:
        return APIError("RATE_LIMIT_EXCEEDED", message)

    @staticmethod
    def internal(message: str = "Internal server error", details: Any = None) -> APIError:
        return APIError("INTERNAL_ERROR", message, details)


def success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"ok": True, "data": data}),
    )


def _error_response(error: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(
            {
                "ok": False,
                "error": {
                    "code": error.code,
                    "msg": error.message,
                    "details": error.details,
                },
            }
        ),
    )


async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning(
        "API error %s on %s %s: %s",
        exc.code,
        request.method,
        request.url.path,
        exc.message,
    )
    return _error_response(exc)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {key: value for key, value in item.items() if key != "ctx"}
        for item in exc.errors()
    ]
    return _error_response(errors.validation("Validation failed", details))


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(errors.internal())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
