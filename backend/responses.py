import logging
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException that also carries a list of detail messages for the error envelope."""

    def __init__(self, status_code: int, detail: str, errors: Optional[List[Any]] = None, headers=None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.errors = errors or []


def api_response(status_code: int, data: Any = None, message: str = "success") -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": status_code < 400,
            "statusCode": status_code,
            "data": jsonable_encoder(data),
            "message": message,
        },
    )


def error_response(status_code: int, message: str, errors: Optional[List[Any]] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "statusCode": status_code,
            "message": message,
            "errors": jsonable_encoder(errors or []),
        },
        headers=headers,
    )


def _validation_messages(errors) -> List[str]:
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(
        exc.status_code,
        detail,
        getattr(exc, "errors", None),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        _validation_messages(exc.errors()),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(status.HTTP_409_CONFLICT, "Duplicate value violates a unique constraint")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
