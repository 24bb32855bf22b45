"""Translation of application exceptions into HTTP errors."""

from fastapi import HTTPException

from gemini_chat.application.exceptions import (
    ChatAppError,
    NotAuthenticatedError,
    NotInitializedError,
)


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, NotAuthenticatedError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, NotInitializedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ChatAppError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")


class CallbackOutcome:
    """Collects the single outcome of a callback-style controller command."""

    def __init__(self) -> None:
        self.called = False
        self.error: Exception | None = None

    def on_success(self) -> None:
        self.called = True

    def on_error(self, exc: Exception) -> None:
        self.called = True
        self.error = exc
