"""
Structured error handling for the Debt Negotiation Engine.

Provides custom exceptions and standardized error response models
for consistent API error responses.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    UNFILLED_VARIABLES = "UNFILLED_VARIABLES"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    DUPLICATE_RECORD = "DUPLICATE_RECORD"

    # LLM errors (5xx)
    LLM_PROVIDER_ERROR = "LLM_PROVIDER_ERROR"
    LLM_RESPONSE_INVALID = "LLM_RESPONSE_INVALID"
    LLM_TIMEOUT = "LLM_TIMEOUT"

    # Delivery errors (5xx)
    MAIL_DELIVERY_ERROR = "MAIL_DELIVERY_ERROR"

    # Server errors (5xx)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    All API errors return this structure for consistent client handling.
    """

    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error details (field errors, etc.)",
    )
    request_id: Optional[str] = Field(
        None,
        description="Request ID for tracing",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the error occurred",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "Cannot move debt from 'settled' to 'negotiating'",
                "error_code": "INVALID_TRANSITION",
                "details": {
                    "from_status": "settled",
                    "to_status": "negotiating",
                },
                "request_id": "550e8400-e29b-41d4-a716-446655440000",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
    }


# Custom Exceptions


class NegotiationEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(NegotiationEngineError):
    """Raised when request validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details,
            status_code=400,
        )


class UnfilledVariablesError(NegotiationEngineError):
    """Raised when a letter would go out with empty template variables."""

    def __init__(self, debt_id: str, unfilled: List[str]):
        super().__init__(
            message=f"Letter for debt {debt_id} has unfilled variables: {', '.join(unfilled)}",
            error_code=ErrorCode.UNFILLED_VARIABLES,
            details={"debt_id": debt_id, "unfilled_variables": unfilled},
            status_code=422,
        )
        self.unfilled = unfilled


class RecordNotFoundError(NegotiationEngineError):
    """Raised when a stored record does not exist."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(
            message=f"No {collection} record with id '{record_id}'",
            error_code=ErrorCode.NOT_FOUND,
            details={"collection": collection, "record_id": record_id},
            status_code=404,
        )


class InvalidTransitionError(NegotiationEngineError):
    """Raised when a debt status change is not allowed."""

    def __init__(self, from_status: str, to_status: str, reason: str):
        super().__init__(
            message=f"Cannot move debt from '{from_status}' to '{to_status}': {reason}",
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"from_status": from_status, "to_status": to_status},
            status_code=409,
        )


class ConcurrencyConflictError(NegotiationEngineError):
    """Raised when a conditional update loses against a concurrent writer."""

    def __init__(self, record_id: str, expected_version: int, actual_version: int):
        super().__init__(
            message=f"Record {record_id} was modified concurrently",
            error_code=ErrorCode.CONCURRENCY_CONFLICT,
            details={
                "record_id": record_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            status_code=409,
        )


class DuplicateRecordError(NegotiationEngineError):
    """Raised when a record violates a uniqueness constraint."""

    def __init__(self, collection: str, key: str, value: str):
        super().__init__(
            message=f"{collection} record with {key}='{value}' already exists",
            error_code=ErrorCode.DUPLICATE_RECORD,
            details={"collection": collection, key: value},
            status_code=409,
        )


class ConfigurationError(NegotiationEngineError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details={"setting": setting} if setting else None,
            status_code=500,
        )


class LLMProviderError(NegotiationEngineError):
    """Raised when LLM provider fails."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.LLM_PROVIDER_ERROR,
            details={"provider": provider} if provider else None,
            status_code=503,
        )


class LLMResponseInvalidError(NegotiationEngineError):
    """Raised when LLM response cannot be parsed or validated."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.LLM_RESPONSE_INVALID,
            details=details,
            status_code=500,
        )


class LLMTimeoutError(NegotiationEngineError):
    """Raised when LLM request times out."""

    def __init__(self, timeout_seconds: int):
        super().__init__(
            message=f"LLM request timed out after {timeout_seconds} seconds",
            error_code=ErrorCode.LLM_TIMEOUT,
            details={"timeout_seconds": timeout_seconds},
            status_code=504,
        )


class MailDeliveryError(NegotiationEngineError):
    """Raised when the mail provider refuses or cannot accept a message."""

    def __init__(self, message: str, provider: str, status: Optional[int] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.MAIL_DELIVERY_ERROR,
            details={"provider": provider, "status": status},
            status_code=502,
        )
