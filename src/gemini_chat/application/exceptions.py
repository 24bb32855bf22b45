"""Application-level exceptions.

These are business-logic errors, not HTTP errors.  Adapters translate the
errors of the libraries they wrap into these types; the presentation layer
translates them into HTTP responses.  ``str(exc)`` is always the bare detail
so controllers can embed it into user-facing messages.
"""

from enum import Enum


class ChatAppError(Exception):
    """Base class for every failure the controllers know how to report."""


class AuthFailureKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    UNKNOWN_USER = "unknown_user"
    COLLISION = "collision"
    NETWORK = "network"
    GENERIC = "generic"


class AuthFailure(ChatAppError):
    """Raised by the identity provider or federated sign-in client."""

    def __init__(self, message: str, kind: AuthFailureKind = AuthFailureKind.GENERIC) -> None:
        super().__init__(message)
        self.kind = kind


class NotAuthenticatedError(ChatAppError):
    """Raised when an operation needs a current identity and there is none."""

    def __init__(self, message: str = "User not logged in") -> None:
        super().__init__(message)


class PersistenceError(ChatAppError):
    """Raised when a document store read, write or delete fails."""


class GenerationError(ChatAppError):
    """Raised when the language model call fails."""


class NotInitializedError(ChatAppError):
    """Raised when federated sign-in is used before it was configured."""

    def __init__(self, message: str = "Federated sign-in is not initialized") -> None:
        super().__init__(message)
