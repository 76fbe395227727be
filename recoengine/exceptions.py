"""Custom exceptions for the recommendation engine.

Defines specific exception types for better error handling and reporting.
"""

from typing import Any, Dict, Optional


class RecoEngineError(Exception):
    """Base exception for recommendation engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class InvalidBehaviorError(RecoEngineError):
    """Raised when a tracked behavior event fails validation."""

    def __init__(self, user_id: str, error: Exception):
        message = f"Invalid behavior event for user {user_id}: {str(error)}"
        super().__init__(
            message=message,
            status_code=422,
            details={
                "user_id": user_id,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class UnknownContentTypeError(RecoEngineError):
    """Raised when personalized content is requested for an unknown type."""

    def __init__(self, content_type: str, details: Optional[Dict[str, Any]] = None):
        message = f"Unknown content type: {content_type}"
        super().__init__(
            message=message,
            status_code=400,
            details=details or {"content_type": content_type},
        )


class ProfileUpdateError(RecoEngineError):
    """Raised when a behavior event cannot be folded into the profile."""

    def __init__(self, user_id: str, error: Exception):
        message = f"Failed to update profile for user {user_id}: {str(error)}"
        super().__init__(
            message=message,
            status_code=500,
            details={
                "user_id": user_id,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )


class ProductNotFoundError(RecoEngineError):
    """Raised when a product id is not in the catalog."""

    def __init__(self, product_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"Product {product_id} not found in catalog."
        super().__init__(
            message=message,
            status_code=404,
            details=details or {"product_id": product_id},
        )
