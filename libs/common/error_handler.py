"""Global exception handlers for consistent JSON error responses.

Every error body carries a human-readable ``error`` string and a
machine-readable ``code`` the client can branch on.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from libs.common.errors import MESSAGES, ErrorCode, ServiceError
from libs.common.logging import get_logger

logger = get_logger(__name__)

_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.INVALID_INPUT,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
}


def error_body(code: ErrorCode, message: str, **details) -> dict:
    body = {"success": False, "error": message, "code": code.value}
    body.update(details)
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Service error %s on %s", exc.code.value, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, **exc.details),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed payloads are a caller error like any other invalid input.
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = MESSAGES[ErrorCode.INVALID_INPUT]
    if field:
        message = f"{message}: {field} - {first.get('msg', 'invalid value')}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(ErrorCode.INVALID_INPUT, message),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            ErrorCode.INTERNAL_ERROR, MESSAGES[ErrorCode.INTERNAL_ERROR]
        ),
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the shared exception handlers on an app."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
