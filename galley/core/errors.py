"""Error normalization and handlers.

Every failure leaves the service as
{"success": false, "error": {"code", "message", "request_id"}, "detail": message}.
"""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from galley.core.config import settings
from galley.core.logging import get_request_id
from galley.core.middleware.cors import cors_headers


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


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class QuotaExceededError(AppError):
    """Raised when the usage gate blocks a metered action."""
    code = "quota_exceeded"
    status_code = 403


class MissingConfigurationError(AppError):
    """A required API key or secret is absent. Raised before any upstream work."""
    code = "missing_configuration"
    status_code = 500


class UpstreamModelError(AppError):
    """The model API failed: transport error, non-2xx, or no candidate text."""
    code = "upstream_error"
    status_code = 502


class ModelOutputError(AppError):
    """The model answered but its text is not the JSON shape we asked for."""
    code = "model_output_error"
    status_code = 502


class IntegrationError(AppError):
    """A third-party business system (the POS) refused or failed a call."""
    code = "integration_error"
    status_code = 502


_HTTP_CODES = {401: "unauthorized", 403: "forbidden", 404: "not_found", 405: "method_not_allowed"}

logger = logging.getLogger("galley")


def _request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or uuid4().hex


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Log the failure and return the envelope.

    The request id is echoed in a header, and the edge CORS headers are set
    here too so browsers can read a 500.
    """
    rid = request_id or _request_id_for(request)
    body = {"code": code, "message": message, "request_id": rid, **(details or {})}
    logger.log(
        logging.ERROR if status_code >= 500 else logging.WARNING,
        f"{code}: {message}",
        extra={"request_id": rid, "error_code": code, "status": status_code, "event_type": "request.error"},
    )
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": body, "detail": message},
        headers={"x-request-id": rid, **cors_headers(settings.CORS_ALLOW_ORIGIN)},
    )


async def app_error_handler(request: Request, exc: AppError):
    return error_response(
        request, exc.status_code, exc.code, exc.message, request_id=exc.request_id, details=exc.details
    )


async def http_error_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "HTTP error"
    return error_response(request, exc.status_code, _HTTP_CODES.get(exc.status_code, "http_error"), message)


def _first_problem(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    text = first.get("msg", "invalid value")
    return f"{field}: {text}" if field else text


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Body and query validation failures use the 400 contract, not FastAPI's 422."""
    return error_response(request, 400, "validation_error", _first_problem(exc))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled exception", exc_info=exc, extra={"error_code": "internal_error"})
    return error_response(request, 500, "internal_error", "Unexpected error")
