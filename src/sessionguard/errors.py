from abc import ABC
from enum import StrEnum


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the user. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class AuthFailure(StrEnum):
    """Reasons a request is refused by the session authenticator."""

    NO_CREDENTIAL = "no_credential"
    BAD_CREDENTIAL = "bad_credential"
    CREDENTIAL_EXPIRED = "credential_expired"
    SESSION_REVOKED_OR_UNKNOWN = "session_revoked_or_unknown"

    @property
    def message(self) -> str:
        return _AUTH_FAILURE_MESSAGES[self]


_AUTH_FAILURE_MESSAGES = {
    AuthFailure.NO_CREDENTIAL: "Access denied. No token provided.",
    AuthFailure.BAD_CREDENTIAL: "Invalid token",
    AuthFailure.CREDENTIAL_EXPIRED: "Token expired",
    AuthFailure.SESSION_REVOKED_OR_UNKNOWN: "Invalid or expired session.",
}


class AuthenticationError(UserError):
    """Raised when authentication fails.

    ``failure`` is set when the session authenticator refused the request,
    and is None for credential checks such as login.
    """

    def __init__(self, message: str = "Authentication failed", failure: AuthFailure | None = None) -> None:
        super().__init__(message)
        self.failure = failure

    @classmethod
    def from_failure(cls, failure: AuthFailure) -> "AuthenticationError":
        return cls(failure.message, failure)


class ConflictError(UserError):
    """Raised when a resource with the same identity already exists."""


class ValidationError(UserError):
    """Raised when user input fails validation."""


class DuplicateTokenError(Exception):
    """Raised when a session is created for a token that is already stored."""


class DatabaseUnavailableError(Exception):
    """Raised when the database cannot be reached during startup."""
