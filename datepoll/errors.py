"""API error types rendered as ``ErrorResponse`` JSON by one registered handler."""

import logging
import math
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    status_code: int = 500
    error: str = "internal_error"
    detail: str = "An unexpected error occurred"

    def __init__(self, detail: str | None = None, **context: Any) -> None:
        self.detail = detail or self.__class__.detail
        self.context = context if context else None
        self.headers: dict[str, str] | None = None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.error,
            detail=self.detail,
            context=self.context,
        )


class NotFoundError(APIError):
    status_code = 404
    error = "not_found"
    detail = "Event not found"


class BadRequestError(APIError):
    status_code = 400
    error = "bad_request"
    detail = "Invalid request"


class UnauthorizedError(APIError):
    status_code = 401
    error = "unauthorized"
    detail = "Invalid admin code"


class RateLimitedError(APIError):
    """Retryable once the window resets; the wait is also sent as ``Retry-After``."""

    status_code = 429
    error = "rate_limited"
    detail = "Too many requests. Please try again later."

    def __init__(self, detail: str | None = None, reset_in_ms: int = 0, **context: Any) -> None:
        super().__init__(detail, reset_in_ms=reset_in_ms, **context)
        self.reset_in_ms = reset_in_ms
        self.headers = {"Retry-After": str(max(1, math.ceil(reset_in_ms / 1000)))}


class ServiceUnavailableError(APIError):
    status_code = 503
    error = "service_unavailable"
    detail = "Service temporarily unavailable"


class DatabaseError(APIError):
    status_code = 500
    error = "database_error"
    detail = "Database operation failed"


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.error, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
        headers=exc.headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
