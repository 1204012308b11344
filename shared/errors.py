"""
Shared error handling for 254Carbon Access Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import pass_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    pass_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for Access Layer services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            pass_id=pass_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ReconciliationError(AccessLayerException):
    """Base class for errors that terminate a reconciliation pass."""


class ValidationError(ReconciliationError):
    """Malformed or incomplete privilege declaration."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConflictError(ReconciliationError):
    """Existence policy violated: item must be new but already exists."""

    status_code = 409

    def __init__(self, message: str = "Item already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFLICT_ERROR", message, details)


class NotFoundError(ReconciliationError):
    """Existence policy violated: item must exist but was not found."""

    status_code = 404

    def __init__(self, message: str = "Item not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND_ERROR", message, details)


class OperationError(ReconciliationError):
    """A store mutation was rejected."""

    status_code = 500

    def __init__(self, message: str = "Store operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("OPERATION_ERROR", message, details)
