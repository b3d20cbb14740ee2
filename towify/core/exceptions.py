"""Custom exception hierarchy."""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when the table API rejects an operation."""

    def __init__(self, message: str, status_code: Optional[int] = None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class CredentialError(AppError):
    """Raised when the auth service rejects a credential.

    Covers bad passwords, unknown emails and expired or malformed tokens.
    Never retried automatically.
    """
    pass


class RoleLookupError(AppError):
    """Raised when the profile role query fails for a reason other than a missing row."""

    def __init__(self, message: str, user_id: Optional[str] = None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.user_id = user_id


class ScopeViolation(AppError):
    """Raised when an operation would reach rows outside the caller's scope."""
    pass


class NotFoundError(AppError):
    """Raised when a row addressed by id is not visible in the caller's scope."""
    pass


class InvalidTransitionError(AppError):
    """Raised when a status change is not allowed."""
    pass


class FineAlreadyPaidError(InvalidTransitionError):
    """Raised when payment is requested for a fine that is already paid."""
    pass


class PartialWriteFailure(AppError):
    """A later step of a multi-step write failed after earlier steps committed.

    Earlier writes are not rolled back. ``step`` names the step that failed and
    ``completed`` holds the results of the steps that did commit, so the caller
    can retry only the failed step.
    """

    def __init__(
        self,
        message: str,
        step: str,
        completed: Optional[Dict[str, Any]] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.step = step
        self.completed = completed or {}
