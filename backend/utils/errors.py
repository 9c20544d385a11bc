# backend/utils/errors.py
import logging
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base for errors rendered as the uniform failure envelope."""
    status_code = 500
    kind = "unexpected_error"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(AppError):
    status_code = 400
    kind = "validation_error"


class AuthError(AppError):
    status_code = 401
    kind = "auth_error"


class AuthorizationError(AppError):
    status_code = 403
    kind = "authorization_error"


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class UnexpectedError(AppError):
    status_code = 500
    kind = "unexpected_error"


_KIND_BY_STATUS = {
    400: ValidationError.kind,
    401: AuthError.kind,
    403: AuthorizationError.kind,
    404: NotFoundError.kind,
}


def error_body(kind: str, message: str, errors: Optional[List[str]] = None) -> dict:
    body = {"success": False, "error": kind, "message": message}
    if errors:
        body["errors"] = errors
    return body


def duplicate_field(exc: IntegrityError) -> Optional[str]:
    """Best effort name of the unique column behind an IntegrityError."""
    text = str(getattr(exc, "orig", exc)).lower()
    for field in ("code", "barcode", "username", "email"):
        if f".{field}" in text or f"({field})" in text or f"_{field}_key" in text:
            return field
    return None


def _field_path(loc) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts in front of the field name
    parts = [str(p) for p in loc]
    if parts and parts[0] in {"body", "query", "path", "header"}:
        parts = parts[1:]
    return ".".join(parts) or "request"


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.message, exc.errors))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        errors = [f"{_field_path(e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=error_body(ValidationError.kind, "Request validation failed", errors),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        kind = _KIND_BY_STATUS.get(exc.status_code, "http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(kind, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(IntegrityError)
    async def _integrity(request: Request, exc: IntegrityError):
        field = duplicate_field(exc)
        message = f"{field} is already in use" if field else "Data integrity constraint violated"
        return JSONResponse(status_code=400, content=error_body(ValidationError.kind, message))

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_body(UnexpectedError.kind, "An unexpected error occurred"),
        )
