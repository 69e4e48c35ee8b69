"""
Custom exception handlers for FastAPI.
Renders domain errors with a stable ``kind``/``code`` and keeps internal
details out of 5xx responses.
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from dirigia.core.errors import DirigiaError
from dirigia.core.observability import capture_exception
from dirigia.models.enums import ErrorKind

logger = logging.getLogger(__name__)


def dirigia_exception_handler(request: Request, exc: DirigiaError):
    if exc.status_code >= 500:
        capture_exception(exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


_HTTP_STATUS_KINDS = {
    401: (ErrorKind.AUTH, "unauthorized"),
    403: (ErrorKind.AUTH, "forbidden"),
    404: (ErrorKind.NOT_FOUND, "not_found"),
}


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors (unknown route, wrong method) get the same body shape."""
    if exc.status_code in _HTTP_STATUS_KINDS:
        kind, code = _HTTP_STATUS_KINDS[exc.status_code]
    elif exc.status_code >= 500:
        kind, code = ErrorKind.PERSISTENCE, "internal_error"
    else:
        kind, code = ErrorKind.VALIDATION, "invalid_request"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "kind": kind.value, "code": code},
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "kind": ErrorKind.VALIDATION.value,
            "code": "invalid_request",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    capture_exception(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "kind": ErrorKind.PERSISTENCE.value,
            "code": "internal_error",
        },
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(DirigiaError, dirigia_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
