import logging
from enum import Enum

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

logger = logging.getLogger("app.errors")


class FailureReason(str, Enum):
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    ALREADY_VERIFIED = "already_verified"
    NO_CHALLENGE = "no_challenge"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    INVALID_TOKEN = "invalid_token"
    TOKEN_REVOKED = "token_revoked"
    MISSING_TOKEN = "missing_token"
    VALIDATION = "validation"


class AuthServiceError(Exception):
    def __init__(self, reason: FailureReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


# reason -> (status, error label)
_REASON_STATUS: dict[FailureReason, tuple[int, str]] = {
    FailureReason.ALREADY_EXISTS: (409, "Conflict"),
    FailureReason.NOT_FOUND: (404, "Not Found"),
    FailureReason.ALREADY_VERIFIED: (400, "Authentication Error"),
    FailureReason.NO_CHALLENGE: (400, "Authentication Error"),
    FailureReason.EXPIRED: (400, "Authentication Error"),
    FailureReason.INVALID_CODE: (400, "Authentication Error"),
    FailureReason.INVALID_TOKEN: (401, "Authentication Error"),
    FailureReason.TOKEN_REVOKED: (401, "Authentication Error"),
    FailureReason.MISSING_TOKEN: (400, "Authentication Error"),
    FailureReason.VALIDATION: (400, "Validation Error"),
}

_STATUS_LABEL = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    503: "Service Unavailable",
}


def status_for(reason: FailureReason) -> tuple[int, str]:
    return _REASON_STATUS.get(reason, (500, "Internal Server Error"))


def _body(error: str, detail) -> dict:
    return {"error": error, "detail": detail}


def auth_service_exception_handler(request: Request, exc: AuthServiceError):
    status_code, label = status_for(exc.reason)
    logger.info(
        "AuthServiceError %s reason=%s path=%s",
        status_code,
        exc.reason.value,
        request.url.path,
    )
    return JSONResponse(status_code=status_code, content=_body(label, exc.message))


def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Safe to return exc.detail (it’s intended for clients), but don’t log secrets.
    logger.info("HTTPException %s path=%s", exc.status_code, request.url.path)
    label = _STATUS_LABEL.get(exc.status_code, "Error")
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(label, exc.detail),
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        message = str(first.get("msg") or message)
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")
    logger.info("ValidationError path=%s", request.url.path)
    return JSONResponse(status_code=400, content=_body("Validation Error", message))


def unhandled_exception_handler(request: Request, exc: Exception):
    # Log stack trace server-side, but return generic message client-side.
    logger.exception("UnhandledException path=%s", request.url.path)
    detail = "Internal Server Error" if settings.is_prod else str(exc)
    return JSONResponse(
        status_code=500, content=_body("Internal Server Error", detail)
    )
