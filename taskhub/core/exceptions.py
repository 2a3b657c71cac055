"""Error taxonomy and the DRF exception handler that renders it.

Every error leaving the HTTP API is shaped as::

    {"success": false, "error": "<code>", "message": "<text>", "details": {...}}

Guard failures always carry the generic ``Access denied`` message so clients
cannot tell which rule rejected them.
"""

from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler
from rest_framework.views import set_rollback
from rest_framework_simplejwt.exceptions import InvalidToken

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied"


class AppError(drf_exceptions.APIException):
    """Base class for errors raised by taskhub services."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "error"
    default_detail = "Request failed"

    def __init__(self, message: str | None = None, *, details: Any = None):
        super().__init__(detail=message or self.default_detail)
        self.message = str(self.detail)
        self.details = details


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "validation_error"
    default_detail = "Invalid input"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "authentication_error"
    default_detail = "Authentication required"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "authorization_error"
    default_detail = ACCESS_DENIED

    def __init__(self, message: str | None = None, *, details: Any = None):
        # The reason is only ever logged, never sent to the client.
        super().__init__(ACCESS_DENIED)
        self.reason = message


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_detail = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_detail = "Resource conflict"


class UpstreamError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "upstream_error"
    default_detail = "A dependent service is unavailable"


def _envelope(
    code: str,
    message: str,
    http_status: int,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> Response:
    body: dict[str, Any] = {"success": False, "error": code, "message": message}
    if details:
        body["details"] = details
    response = Response(body, status=http_status)
    for key, value in (headers or {}).items():
        response[key] = value
    return response


def _classify(exc: Exception) -> tuple[str, str, Any]:  # noqa: PLR0911
    if isinstance(exc, AppError):
        return exc.error_code, exc.message, exc.details
    if isinstance(exc, drf_exceptions.ValidationError):
        return "validation_error", "Invalid input", exc.detail
    if isinstance(exc, InvalidToken):
        return "authentication_error", "Invalid or expired token", None
    if isinstance(
        exc,
        drf_exceptions.NotAuthenticated | drf_exceptions.AuthenticationFailed,
    ):
        return "authentication_error", str(exc.detail), None
    if isinstance(exc, drf_exceptions.PermissionDenied | DjangoPermissionDenied):
        return "authorization_error", ACCESS_DENIED, None
    if isinstance(exc, drf_exceptions.NotFound | Http404):
        return "not_found", "Resource not found", None
    if isinstance(exc, drf_exceptions.Throttled):
        return "rate_limited", str(exc.detail), None
    if isinstance(exc, drf_exceptions.MethodNotAllowed):
        return "method_not_allowed", str(exc.detail), None
    if isinstance(exc, drf_exceptions.APIException):
        return "error", str(exc.detail), None
    return "server_error", "Internal server error", None


def envelope_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    """DRF ``EXCEPTION_HANDLER`` producing the structured error envelope."""

    request = context.get("request")
    response = exception_handler(exc, context)

    if response is None:
        logger.exception(
            "Unhandled error in %s %s",
            getattr(request, "method", "-"),
            getattr(request, "path", "-"),
        )
        set_rollback()
        return _envelope(
            "server_error",
            "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    code, message, details = _classify(exc)
    if isinstance(exc, UpstreamError):
        logger.error("Upstream failure: %s details=%s", message, details)

    headers = {
        key: value
        for key, value in response.items()
        if key in {"WWW-Authenticate", "Retry-After", "Allow"}
    }
    return _envelope(code, message, response.status_code, details, headers)


def error_response(exc: AppError) -> Response:
    """Render ``exc`` without raising, so the surrounding transaction commits."""

    return _envelope(exc.error_code, exc.message, exc.status_code, exc.details)
