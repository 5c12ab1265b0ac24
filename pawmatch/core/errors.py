"""Error normalization and handlers."""

import logging
import builtins
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from pawmatch.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.details = details or {}


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class AuthenticationError(AppError):
    code = "not_authenticated"
    status_code = 401


class InsufficientBalanceError(AppError):
    code = "insufficient_balance"
    status_code = 402


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class GoneError(AppError):
    code = "gone"
    status_code = 410


class QuotaExceededError(AppError):
    code = "quota_exceeded"
    status_code = 429


class ServiceUnavailableError(AppError):
    code = "service_unavailable"
    status_code = 503


# Result error codes returned by services, mapped onto HTTP semantics
RESULT_ERROR_CLASSES = {
    "not_authenticated": AuthenticationError,
    "invalid_candidate": ValidationError,
    "invalid_target": ValidationError,
    "invalid_lane": ValidationError,
    "invalid_action": ValidationError,
    "invalid_type": ValidationError,
    "invalid_quantity": ValidationError,
    "invalid_months": ValidationError,
    "invalid_cursor": ValidationError,
    "empty_message": ValidationError,
    "missing_client_message_id": ValidationError,
    "daily_limit_reached": QuotaExceededError,
    "insufficient_balance": InsufficientBalanceError,
    "insufficient_boosts": InsufficientBalanceError,
    "insufficient_compliments": InsufficientBalanceError,
    "not_authorized": PermissionError,
    "not_found": NotFoundError,
    "nothing_to_undo": NotFoundError,
    "already_resolved": ConflictError,
    "already_active": ConflictError,
    "not_pending": ConflictError,
    "expired": GoneError,
}


def error_from_result(code: str, details: Optional[Dict[str, Any]] = None) -> AppError:
    """Build the AppError matching a failed service result."""
    cls = RESULT_ERROR_CLASSES.get(code, AppError)
    return cls(code.replace("_", " "), code=code, details=details)


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str, details: Optional[Dict[str, Any]] = None) -> dict:
    error = {"code": code, "message": message, "request_id": request_id}
    if details:
        error.update(details)
    return {
        "error": error,
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid, exc.details)
    logger = logging.getLogger("pawmatch")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=jsonable_encoder(payload))
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    if isinstance(message, dict):
        code = message.get("error", code)
        message = message.get("message", code)
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("pawmatch")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def database_unavailable_handler(request: Request, exc: OperationalError):
    rid = _extract_request_id(request)
    logger = logging.getLogger("pawmatch")
    logger.error("database.unavailable", exc_info=True, extra={"request_id": rid, "error_code": ServiceUnavailableError.code})
    payload = _error_payload(ServiceUnavailableError.code, "Data store unavailable", rid)
    response = JSONResponse(status_code=ServiceUnavailableError.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("pawmatch")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
