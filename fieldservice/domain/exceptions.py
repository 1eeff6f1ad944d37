"""Domain exceptions for the field-service permission core.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers.
"""

from typing import Any


class FieldServiceException(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, action).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the HTTP exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(FieldServiceException):
    """Raised when input validation fails (e.g. empty identifier)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(FieldServiceException):
    """Raised when the caller's identity cannot be established (bad or missing token)."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(FieldServiceException):
    """Raised when the caller lacks the action required for an operation."""

    def __init__(
        self,
        action: str | None = None,
        message: str = "Permission denied",
    ) -> None:
        """Initialize with the action that was required.

        Args:
            action: Action identifier the caller lacked (e.g. system_settings_manage_features).
            message: Human-readable message.
        """
        details: dict[str, Any] = {}
        if action:
            details["action"] = action
        super().__init__(message, "PERMISSION_DENIED", details)


class NoActiveSessionException(FieldServiceException):
    """Raised when a mutating operation runs without a live user/tenant session."""

    def __init__(self, message: str = "No authenticated user or tenant") -> None:
        super().__init__(message, "NO_ACTIVE_SESSION")


class ResourceNotFoundException(FieldServiceException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
