"""
Error taxonomy and request-boundary error handling.

Services raise ``APIError`` subclasses; the DRF exception handler and the
error middleware turn them into the JSON error envelope.
"""

from .errors import (
    APIError,
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    ErrorCode,
    ErrorResponse,
    FieldError,
    NotFoundError,
    PDFGenerationError,
    ServiceUnavailableError,
    ValidationError,
    format_validation_errors,
)

__all__ = [
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "EmailDeliveryError",
    "ErrorCode",
    "ErrorResponse",
    "FieldError",
    "NotFoundError",
    "PDFGenerationError",
    "ServiceUnavailableError",
    "ValidationError",
    "format_validation_errors",
]
