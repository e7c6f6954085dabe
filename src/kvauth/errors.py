from abc import ABC
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kvauth.core.modules.email_validation.models import ReasonCode


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Page not found") -> None:
        super().__init__(message)


class AuthenticationError(UserError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AccessDeniedError(UserError):
    """Raised when a user tries to access a resource they do not have permission for."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class EmailRejectedError(ValidationError):
    """Raised when an email address fails the legitimacy checks."""

    def __init__(self, reason: "ReasonCode", message: str) -> None:
        super().__init__(message)
        self.reason = reason


class AccountExistsError(ValidationError):
    """Raised when signing up with an address that already has an account."""

    def __init__(self, message: str = "An account with this email already exists.") -> None:
        super().__init__(message)


class CaptchaFailedError(AccessDeniedError):
    """Raised when CAPTCHA verification does not succeed."""

    def __init__(self, message: str = "CAPTCHA verification failed") -> None:
        super().__init__(message)
