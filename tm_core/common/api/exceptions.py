# tm_core/common/api/exceptions.py
from __future__ import annotations

import logging
import uuid
from typing import Any

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Request failed."


class ConflictError(APIException):
    """The case/appointment status does not allow the requested action."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Action not allowed in the current status."
    default_code = "conflict"


class ExternalServiceUnavailable(APIException):
    """The case or appointment service failed or could not be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Upstream service unavailable."
    default_code = "external_service_error"


def ensure_request_id(request) -> str:
    """Reuse X-Request-Id from the portal gateway, else mint one; cached on the request."""
    if request is None:
        return uuid.uuid4().hex

    rid = getattr(request, "request_id", None) or request.META.get("HTTP_X_REQUEST_ID") or uuid.uuid4().hex
    request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


def _error_code(exc: Exception, http_status: int) -> str:
    if isinstance(exc, ValidationError):
        return "validation_error"
    if isinstance(exc, NotAuthenticated):
        return "not_authenticated"
    if isinstance(exc, PermissionDenied):
        return "permission_denied"
    if isinstance(exc, Http404):
        return "not_found"
    if isinstance(exc, APIException):
        return exc.default_code or "api_error"
    return "server_error" if http_status >= 500 else "error"


def _split_detail(data) -> tuple[str, Any]:
    """
    Lifecycle errors arrive as {"detail": <reason>, "kind": <error kind>}:
    the reason becomes the message, the remaining keys the details.
    Field errors from serializers have no "detail" and are passed through whole.
    """
    if not isinstance(data, dict) or "detail" not in data:
        return GENERIC_MESSAGE, data
    rest = {k: v for k, v in data.items() if k != "detail"}
    return str(data["detail"]), rest or None


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.exception("Unhandled API error", exc_info=exc)
        body = build_error_envelope(request=request, code="server_error", message="Unexpected server error.")
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    code = _error_code(exc, response.status_code)
    message, details = _split_detail(response.data)
    if response.status_code >= 500:
        logger.error("API error %s (%s): %s", response.status_code, code, message)

    return Response(
        build_error_envelope(request=request, code=code, message=message, details=details),
        status=response.status_code,
        headers=response.headers,
    )
