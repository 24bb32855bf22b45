"""HTTP request/response schemas (Pydantic models) and state rendering."""

from __future__ import annotations

from typing import Literal, assert_never

from pydantic import BaseModel, Field

from gemini_chat.domain.models import (
    Authenticated,
    AuthError,
    AuthLoading,
    AuthState,
    ChatError,
    ChatLoading,
    ChatMessage,
    ChatSuccess,
    ChatUiState,
    Idle,
    Identity,
    Unauthenticated,
)

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /auth/sign-in and POST /auth/sign-up."""

    email: str = Field(description="Account email")
    password: str = Field(description="Account password")


class PasswordResetRequest(BaseModel):
    email: str


class DisplayNameRequest(BaseModel):
    name: str = Field(min_length=1, description="New display name")


class UserResponse(BaseModel):
    uid: str
    email: str | None
    display_name: str | None


class AuthStateResponse(BaseModel):
    """Snapshot of the session state."""

    state: Literal["unauthenticated", "loading", "authenticated", "error"]
    message: str | None = None
    user: UserResponse | None = None


def render_auth_state(state: AuthState, identity: Identity | None) -> AuthStateResponse:
    user = (
        UserResponse(uid=identity.uid, email=identity.email, display_name=identity.display_name)
        if identity
        else None
    )
    match state:
        case Unauthenticated():
            return AuthStateResponse(state="unauthenticated")
        case AuthLoading():
            return AuthStateResponse(state="loading", user=user)
        case Authenticated():
            return AuthStateResponse(state="authenticated", user=user)
        case AuthError(message=message):
            return AuthStateResponse(state="error", message=message, user=user)
        case _:
            assert_never(state)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class SendMessageRequest(BaseModel):
    text: str = Field(description="The new user message")


class MessageResponse(BaseModel):
    """A single transcript entry."""

    id: str
    text: str
    is_user: bool
    timestamp: int
    status: Literal["sending", "sent", "error"]

    @classmethod
    def from_message(cls, message: ChatMessage) -> MessageResponse:
        return cls(
            id=message.id,
            text=message.text,
            is_user=message.is_user,
            timestamp=message.timestamp,
            status=message.status.value,
        )


class RequestStateResponse(BaseModel):
    state: Literal["idle", "loading", "success", "error"]
    response: str | None = None
    message: str | None = None


class ChatStateResponse(BaseModel):
    """Full conversation snapshot: transcript, request state and busy flag."""

    chat_id: str | None = None
    messages: list[MessageResponse] = Field(default_factory=list)
    request: RequestStateResponse
    is_loading: bool


def render_request_state(state: ChatUiState) -> RequestStateResponse:
    match state:
        case Idle():
            return RequestStateResponse(state="idle")
        case ChatLoading():
            return RequestStateResponse(state="loading")
        case ChatSuccess(response=response):
            return RequestStateResponse(state="success", response=response)
        case ChatError(message=message):
            return RequestStateResponse(state="error", message=message)
        case _:
            assert_never(state)
