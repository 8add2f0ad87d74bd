"""
Application error taxonomy and the JSON envelope they render to.

Services raise these instead of HTTPException so they can be used outside a
request. The handlers registered by install_error_handlers() turn every
failure into {"error": <code>, "message": <text>, ...extra}.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from motomarket.core.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "InternalServerError"

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.extra = extra or {}
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message, **self.extra}


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "ValidationError"


class AuthenticationFailed(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"

    def __init__(self, message: str, error: Optional[str] = None, extra=None):
        super().__init__(message, error, extra, headers={"WWW-Authenticate": "Bearer"})


class PermissionDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NotFound"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "RateLimited"

    def __init__(self, retry_after: int):
        super().__init__(
            "Too many requests. Try again later.",
            extra={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


def _json_error(status_code: int, payload: Dict[str, Any], headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.error)
    return _json_error(exc.status_code, exc.to_dict(), exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = {}
    for err in exc.errors():
        # loc is ("body", "price") / ("query", "page"); keep the field part
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "request"] = err.get("msg", "Invalid value")
    return _json_error(
        status.HTTP_400_BAD_REQUEST,
        {"error": "ValidationError", "message": "Request validation failed", "fields": fields},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        payload = {
            "error": "RouteNotFound",
            "message": f"The route {request.url.path} does not exist on this API",
            "available_endpoints": ["/health", "/api"],
        }
    else:
        payload = {"error": "HTTPError", "message": str(exc.detail)}
    return _json_error(exc.status_code, payload, getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = {"error": "InternalServerError", "message": "Internal server error"}
    if not settings.is_production:
        payload["detail"] = f"{type(exc).__name__}: {exc}"
        payload["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _json_error(status.HTTP_500_INTERNAL_SERVER_ERROR, payload)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
