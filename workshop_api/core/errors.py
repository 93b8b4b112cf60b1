"""Error taxonomy and the JSON error envelope shared by every endpoint."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for errors that map onto an HTTP response."""

    kind = "InternalError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredential(ServiceError):
    kind = "InvalidCredential"
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailure(ServiceError):
    kind = "ValidationFailure"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class CalendarNotConnected(ServiceError):
    kind = "CalendarNotConnected"
    status_code = status.HTTP_409_CONFLICT


class UpstreamFailure(ServiceError):
    kind = "UpstreamFailure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StoreUnavailable(ServiceError):
    kind = "StoreUnavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


_HTTP_STATUS_KINDS = {
    status.HTTP_400_BAD_REQUEST: InvalidCredential.kind,
    status.HTTP_401_UNAUTHORIZED: Unauthenticated.kind,
    status.HTTP_403_FORBIDDEN: Forbidden.kind,
    status.HTTP_404_NOT_FOUND: NotFound.kind,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ValidationFailure.kind,
}


def error_body(kind: str, message: str, details: dict | None = None) -> dict:
    error = {"kind": kind, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def error_response(exc: ServiceError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message, exc.details),
        headers=headers,
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed with %s: %s", request.method, request.url.path, exc.kind, exc.message)
    else:
        logger.info("%s %s rejected with %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return error_response(exc)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    kind = _HTTP_STATUS_KINDS.get(exc.status_code, "InternalError" if exc.status_code >= 500 else "HTTPError")
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, message),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=ValidationFailure.status_code,
        content=error_body(ValidationFailure.kind, "Request validation failed.", {"errors": errors}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("InternalError", "Internal server error."),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
