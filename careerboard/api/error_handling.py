"""Exception handlers that render every failure as the ``Envelope`` error shape."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from careerboard.api.schemas import Envelope, ErrorBody
from careerboard.logging import get_correlation_id, get_logger
from careerboard.service.errors import ServiceError
from careerboard.storage.errors import ConstraintViolation

logger = get_logger(__name__)

_CODES_BY_STATUS = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
}


def _code_for(status_code: int) -> str:
    if status_code >= 500:
        return "server_error"
    return _CODES_BY_STATUS.get(status_code, "validation_error")


def _error_response(
    status_code: int,
    message: str,
    details: dict | list | None = None,
    code: str | None = None,
) -> JSONResponse:
    envelope = Envelope(
        status="error",
        error=ErrorBody(code=code or _code_for(status_code), message=message, details=details),
    )
    # correlate the body with the X-Request-ID header when the middleware ran
    request_id = get_correlation_id()
    if request_id:
        envelope.request_id = request_id
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


def _log_failure(request: Request, event: str, status_code: int, **fields: Any) -> None:
    emit = logger.error if status_code >= 500 else logger.warning
    emit(event, path=request.url.path, method=request.method, status_code=status_code, **fields)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConstraintViolation)
    async def on_constraint_violation(request: Request, exc: ConstraintViolation):
        _log_failure(request, "constraint_violation", 409, field=exc.field, message=exc.message)
        return _error_response(409, exc.message, exc.detail, code="conflict")

    @app.exception_handler(ServiceError)
    async def on_service_error(request: Request, exc: ServiceError):
        _log_failure(
            request,
            "service_error",
            exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        return _error_response(
            exc.status_code, exc.message, exc.detail or None, code=exc.error_code
        )

    @app.exception_handler(RequestValidationError)
    async def on_request_validation(request: Request, exc: RequestValidationError):
        problems = [
            {"loc": list(item.get("loc", ())), "msg": item.get("msg"), "type": item.get("type")}
            for item in exc.errors()
        ]
        logger.info(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            error_count=len(problems),
        )
        return _error_response(
            422, "request validation failed", jsonable_encoder(problems), code="validation_error"
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_exception(request: Request, exc: StarletteHTTPException):
        # routing misses (404/405) arrive here with a plain string detail
        if isinstance(exc.detail, str):
            message, details = exc.detail, None
        else:
            message, details = "http error", exc.detail
        if exc.status_code >= 500:
            _log_failure(request, "http_error", exc.status_code, message=message)
        return _error_response(exc.status_code, message, details)

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return _error_response(500, "internal server error", code="server_error")
