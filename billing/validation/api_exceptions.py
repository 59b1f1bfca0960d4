"""
Django REST Framework Exception Handler

Provides consistent error format for all API endpoints.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    MethodNotAllowed,
    NotAuthenticated,
    PermissionDenied,
    NotFound,
    ValidationError as DRFValidationError,
    Throttled,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import (
    APIError,
    ErrorCode,
    ErrorResponse,
    format_validation_errors,
)

logger = logging.getLogger(__name__)


def custom_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    request = context.get("request")
    request_id = getattr(request, "request_id", None) if request else None
    if not request_id:
        request_id = str(uuid.uuid4())

    if isinstance(exc, APIError):
        if exc.status >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        else:
            logger.info(f"Request rejected with {exc.code}: {exc.message}")
        return Response(exc.to_response(request_id).to_dict(), status=exc.status)

    if isinstance(exc, ProtectedError):
        error = ErrorResponse(
            code=ErrorCode.RESOURCE_IN_USE.value,
            message="This record is referenced by other records and cannot be deleted.",
            request_id=request_id,
        )
        return Response(error.to_dict(), status=409)

    if isinstance(exc, Http404):
        exc = NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = PermissionDenied()

    response = exception_handler(exc, context)

    if response is not None:
        error_response = _convert_to_standard_format(exc, request_id)
        return Response(error_response.to_dict(), status=response.status_code, headers=_auth_headers(response))

    return response


def _auth_headers(response: Response) -> Dict[str, str]:
    headers = {}
    for name in ("WWW-Authenticate", "Retry-After", "Allow"):
        if name in response:
            headers[name] = response[name]
    return headers


def _convert_to_standard_format(exc: Exception, request_id: str) -> ErrorResponse:
    if isinstance(exc, NotAuthenticated):
        return ErrorResponse(
            code=ErrorCode.AUTHENTICATION_REQUIRED.value,
            message="Authentication required. Provide a bearer token.",
            request_id=request_id,
        )

    if isinstance(exc, AuthenticationFailed):
        code = exc.get_codes()
        if code != ErrorCode.TOKEN_EXPIRED.value:
            code = ErrorCode.TOKEN_INVALID.value
        return ErrorResponse(
            code=code,
            message=str(exc.detail) if exc.detail else "Authentication failed.",
            request_id=request_id,
        )

    if isinstance(exc, PermissionDenied):
        return ErrorResponse(
            code=ErrorCode.PERMISSION_DENIED.value,
            message=str(exc.detail) if exc.detail else "You do not have permission to perform this action.",
            request_id=request_id,
        )

    if isinstance(exc, NotFound):
        return ErrorResponse(
            code=ErrorCode.RESOURCE_NOT_FOUND.value,
            message=str(exc.detail) if exc.detail else "Resource not found.",
            request_id=request_id,
        )

    if isinstance(exc, MethodNotAllowed):
        return ErrorResponse(
            code=ErrorCode.METHOD_NOT_ALLOWED.value,
            message=str(exc.detail),
            request_id=request_id,
        )

    if isinstance(exc, Throttled):
        wait = exc.wait
        message = f"Too many requests. Please try again in {int(wait)} seconds." if wait else "Too many requests. Please try again later."
        return ErrorResponse(
            code=ErrorCode.RATE_LIMITED.value,
            message=message,
            request_id=request_id,
        )

    if isinstance(exc, DRFValidationError):
        detail = exc.detail if isinstance(exc.detail, dict) else {"non_field_errors": exc.detail}
        return ErrorResponse(
            code=ErrorCode.VALIDATION_ERROR.value,
            message="Validation failed. Please check your input.",
            details=format_validation_errors(detail),
            request_id=request_id,
        )

    if isinstance(exc, APIException):
        # ParseError, UnsupportedMediaType and friends are client errors
        client_error = exc.status_code < 500
        return ErrorResponse(
            code=ErrorCode.VALIDATION_ERROR.value if client_error else ErrorCode.INTERNAL_ERROR.value,
            message=str(exc.detail) if exc.detail else "An error occurred.",
            request_id=request_id,
        )

    return ErrorResponse(
        code=ErrorCode.INTERNAL_ERROR.value,
        message="An unexpected error occurred.",
        request_id=request_id,
    )
