"""
Standardized Error Handling

Every API failure uses one envelope:
{ success: false, message, error: CODE, details?, request_id }

HTTP Status Code Standards:
- 400: Bad Request (validation errors, malformed input)
- 401: Unauthorized (missing, invalid or expired token)
- 403: Forbidden (not permitted)
- 404: Not Found
- 409: Conflict (duplicate, state conflict, overpayment)
- 429: Too Many Requests
- 500: Internal Server Error (store, PDF or email failure)
- 503: Service Unavailable (PDF renderer saturated)
"""

from __future__ import annotations

import uuid
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from django.http import JsonResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FIELD_REQUIRED = "FIELD_REQUIRED"
    FIELD_INVALID = "FIELD_INVALID"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"
    FIELD_TOO_SHORT = "FIELD_TOO_SHORT"
    FIELD_OUT_OF_RANGE = "FIELD_OUT_OF_RANGE"

    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    USER_EXISTS = "USER_EXISTS"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    RESOURCE_IN_USE = "RESOURCE_IN_USE"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    CLIENT_EXISTS = "CLIENT_EXISTS"
    NO_ACTIVE_COMPANY = "NO_ACTIVE_COMPANY"

    DUPLICATE_INVOICE_NUMBER = "DUPLICATE_INVOICE_NUMBER"
    INVOICE_NOT_EDITABLE = "INVOICE_NOT_EDITABLE"
    INVOICE_HAS_PAYMENTS = "INVOICE_HAS_PAYMENTS"
    INVOICE_CANCELLED = "INVOICE_CANCELLED"
    INVOICE_ALREADY_PAID = "INVOICE_ALREADY_PAID"
    OVERPAYMENT = "OVERPAYMENT"

    ORDER_NOT_ACTIVE = "ORDER_NOT_ACTIVE"
    ORDER_NOT_DUE = "ORDER_NOT_DUE"

    PDF_GENERATION_FAILED = "PDF_GENERATION_FAILED"
    EMAIL_DELIVERY_FAILED = "EMAIL_DELIVERY_FAILED"

    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class FieldError:
    field: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "field": self.field,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class ErrorResponse:
    code: str
    message: str
    details: Any = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": False,
            "message": self.message,
            "error": self.code,
            "request_id": self.request_id,
        }
        if self.details is not None:
            if isinstance(self.details, list) and self.details and isinstance(self.details[0], FieldError):
                result["details"] = [f.to_dict() for f in self.details]
            else:
                result["details"] = self.details
        return result

    def to_json_response(self, status: int = 400) -> JsonResponse:
        return JsonResponse(self.to_dict(), status=status)


class APIError(Exception):
    status = 400
    default_code: Union[ErrorCode, str] = ErrorCode.VALIDATION_ERROR
    default_message = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Union[ErrorCode, str, None] = None,
        details: Any = None,
        status: Optional[int] = None,
    ):
        code = code or self.default_code
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message or self.default_message
        self.details = details
        if status is not None:
            self.status = status
        super().__init__(self.message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details,
            request_id=request_id or str(uuid.uuid4()),
        )

    def to_json_response(self, request_id: Optional[str] = None) -> JsonResponse:
        return self.to_response(request_id).to_json_response(self.status)


class ValidationError(APIError):
    status = 400
    default_code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation failed"


class AuthenticationError(APIError):
    status = 401
    default_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required"


class NotFoundError(APIError):
    status = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(APIError):
    status = 409
    default_code = ErrorCode.RESOURCE_CONFLICT
    default_message = "Resource conflict"


class ServiceUnavailableError(APIError):
    status = 503
    default_code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable. Please try again later."


class PDFGenerationError(APIError):
    status = 500
    default_code = ErrorCode.PDF_GENERATION_FAILED
    default_message = "PDF generation failed"


class EmailDeliveryError(APIError):
    status = 500
    default_code = ErrorCode.EMAIL_DELIVERY_FAILED
    default_message = "Email delivery failed"


def format_validation_errors(
    errors: Dict[str, Any],
    prefix: str = "",
) -> List[FieldError]:
    """Flatten a nested ``{field: [messages]}`` mapping into field errors."""
    field_errors = []

    for field_name, error_list in errors.items():
        full_field = f"{prefix}{field_name}" if prefix else field_name

        if isinstance(error_list, dict):
            field_errors.extend(format_validation_errors(error_list, f"{full_field}."))
        elif isinstance(error_list, list):
            for index, error in enumerate(error_list):
                if isinstance(error, dict):
                    field_errors.extend(format_validation_errors(error, f"{full_field}.{index}."))
                else:
                    field_errors.append(FieldError(
                        field=full_field,
                        code=_map_error_code(getattr(error, "code", None)),
                        message=str(error),
                    ))
        else:
            field_errors.append(FieldError(
                field=full_field,
                code=_map_error_code(getattr(error_list, "code", None)),
                message=str(error_list),
            ))

    return field_errors


def _map_error_code(code: Optional[str]) -> str:
    code_mapping = {
        "required": ErrorCode.FIELD_REQUIRED.value,
        "blank": ErrorCode.FIELD_REQUIRED.value,
        "null": ErrorCode.FIELD_REQUIRED.value,
        "max_length": ErrorCode.FIELD_TOO_LONG.value,
        "min_length": ErrorCode.FIELD_TOO_SHORT.value,
        "max_value": ErrorCode.FIELD_OUT_OF_RANGE.value,
        "min_value": ErrorCode.FIELD_OUT_OF_RANGE.value,
    }
    return code_mapping.get(code, ErrorCode.FIELD_INVALID.value)
