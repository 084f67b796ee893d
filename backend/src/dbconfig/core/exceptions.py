"""Custom exceptions for the dbconfig settings service.

This module defines all custom exceptions used throughout the application.
"""

from typing import Any


class DbConfigException(Exception):
    """Base exception class for the settings service."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Settings Exceptions
class SettingSaveError(DbConfigException):
    """Raised when the persistence layer refuses to store a setting.

    Distinct from ValidationError: this is the persistence boundary saying no,
    for example for a blocked key that slipped past request validation.
    """

    def __init__(self, config_key: str, details: dict[str, Any] | None = None):
        super().__init__(
            message="The app setting could not be saved. Please, try again.",
            error_code="SETTING_SAVE_FAILED",
            status_code=422,
            details=details or {"config_key": config_key},
        )


class EncryptionKeyError(DbConfigException):
    """Raised when the settings encryption key is missing or unusable."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Settings encryption key error: {reason}",
            error_code="ENCRYPTION_KEY_ERROR",
            status_code=500,
            details=details,
        )


class ValueDecodeError(DbConfigException):
    """Raised when a stored value cannot be cast to its declared type."""

    def __init__(self, value_type: str, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Cannot decode value as '{value_type}': {reason}",
            error_code="VALUE_DECODE_ERROR",
            status_code=400,
            details=details or {"type": value_type, "reason": reason},
        )


# Database Exceptions
class DatabaseConnectionError(DbConfigException):
    """Raised when there's a database connection error (network, auth, etc.)."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Database connection error: {reason}",
            error_code="DATABASE_CONNECTION_ERROR",
            status_code=503,  # Service Unavailable
            details=details or {"reason": reason},
        )


class DatabaseSessionError(DbConfigException):
    """Raised when there's an error with database session management."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Database session error: {reason}",
            error_code="DATABASE_SESSION_ERROR",
            status_code=500,
            details=details or {"reason": reason},
        )


# Generic Exceptions
class NotFoundError(DbConfigException):
    """Generic exception for when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details,
        )


class ConflictError(DbConfigException):
    """Generic exception for when a resource conflict occurs."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details,
        )


# Validation and Authentication Exceptions
class ValidationError(DbConfigException):
    """Raised when input validation fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Validation error: {message}",
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details,
        )


class AuthenticationError(DbConfigException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required.", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="AUTHENTICATION_ERROR",
            status_code=401,
            details=details,
        )


class AuthorizationError(DbConfigException):
    """Raised when authorization fails."""

    def __init__(self, message: str = "Authorization failed", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="AUTHORIZATION_ERROR",
            status_code=403,
            details=details,
        )


class LoginRedirect(DbConfigException):
    """Raised to send an unauthenticated visitor to the login page."""

    def __init__(self, location: str, notice: str = "Please log in to access this page."):
        super().__init__(
            message=notice,
            error_code="LOGIN_REQUIRED",
            status_code=303,
            details={"location": location},
        )
        self.location = location
