from fastapi import status
from sqlalchemy.exc import IntegrityError
from typing import Optional, Dict, Any

from auth_service.utils.logger import get_logger

logger = get_logger("exceptions")


class BaseCustomException(Exception):
    """Base custom exception class"""
    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(BaseCustomException):
    """Raised when authentication fails"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class AuthorizationError(BaseCustomException):
    """Raised when user is not authorized to perform an action"""
    def __init__(self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


class ValidationError(BaseCustomException):
    """Raised when data validation fails"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class NotFoundError(BaseCustomException):
    """Raised when a resource is not found"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class ConflictError(BaseCustomException):
    """Raised when there's a conflict (e.g., duplicate resource)"""
    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class DatabaseError(BaseCustomException):
    """Raised when database operations fail"""
    def __init__(self, message: str = "Database error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class EmailError(BaseCustomException):
    """Raised when email operations fail"""
    def __init__(self, message: str = "Email error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, details)


class OAuthError(BaseCustomException):
    """Raised when OAuth operations fail"""
    def __init__(self, message: str = "OAuth error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class TokenError(BaseCustomException):
    """Raised when a bearer token is missing or malformed"""
    def __init__(self, message: str = "Token error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, details)


class RateLimitError(BaseCustomException):
    """Raised when rate limit is exceeded"""
    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_429_TOO_MANY_REQUESTS, details)


UNIQUE_FIELD_MESSAGES = {
    "username": "Username already exists",
    "email": "Email already exists",
    "google_id": "Google account already linked",
    "token": "Token already exists",
}


def unique_constraint_message(error: IntegrityError) -> str:
    """Best-effort message naming the column behind a unique violation"""
    text = str(getattr(error, "orig", error)).lower()
    for field, message in UNIQUE_FIELD_MESSAGES.items():
        if f".{field}" in text or f"({field})" in text or f"_{field}_key" in text:
            return message
    return "Duplicate value not allowed"


def handle_database_error(error: Exception, operation: str = "database operation") -> BaseCustomException:
    """Handle database errors and return appropriate custom exception"""
    if isinstance(error, IntegrityError):
        message = unique_constraint_message(error)
        logger.warning(f"Integrity error during {operation}: {message}")
        return ConflictError(message, details={"operation": operation})

    logger.error(f"Database error during {operation}: {str(error)}", exc_info=True)
    return DatabaseError(
        message=f"Database error during {operation}",
        details={"operation": operation, "original_error": str(error)}
    )


def handle_email_error(error: Exception, operation: str = "email operation") -> EmailError:
    """Handle email errors and return appropriate custom exception"""
    if isinstance(error, EmailError):
        return error

    logger.error(f"Email error during {operation}: {str(error)}", exc_info=True)
    return EmailError(
        message=f"Email error during {operation}",
        details={"operation": operation, "original_error": str(error)}
    )
