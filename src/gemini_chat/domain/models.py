"""Domain entities, value objects and UI states.

These are the core data structures of the chat domain, independent of
Firebase, Gemini or any HTTP framework.  States are closed unions of frozen
dataclasses; consumers are expected to ``match`` them exhaustively.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias


def now_millis() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """The identity provider's notion of the current user."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    id_token: str | None = field(default=None, repr=False)
    refresh_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class FederatedSignInRequest:
    """Opaque request handed to the host so it can start the federated flow."""

    url: str
    state: str
    nonce: str


@dataclass(frozen=True)
class FederatedToken:
    id_token: str
    access_token: str | None = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# Chat messages
# ---------------------------------------------------------------------------


class MessageStatus(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    ERROR = "error"


@dataclass(frozen=True)
class ChatMessage:
    """A single turn in the transcript."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    text: str = ""
    is_user: bool = False
    timestamp: int = field(default_factory=now_millis)
    status: MessageStatus = MessageStatus.SENT

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "isUser": self.is_user,
            "timestamp": self.timestamp,
            "status": self.status.value,
        }

    @classmethod
    def from_document(cls, doc_id: str, fields: dict[str, Any]) -> ChatMessage:
        """Build a message from stored fields, tolerating missing or stale values."""
        try:
            status = MessageStatus(str(fields.get("status", "sent")).lower())
        except ValueError:
            status = MessageStatus.SENT
        return cls(
            id=str(fields.get("id") or doc_id),
            text=str(fields.get("text", "")),
            is_user=bool(fields.get("isUser", False)),
            timestamp=int(fields.get("timestamp", 0)),
            status=status,
        )


# ---------------------------------------------------------------------------
# Document store values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentSnapshot:
    """A stored document: its full slash-separated path and its fields."""

    path: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Query:
    """Descriptor for a collection read or live query."""

    collection: str
    order_by: str | None = None
    limit: int | None = None


# ---------------------------------------------------------------------------
# Session (authentication) state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unauthenticated:
    pass


@dataclass(frozen=True)
class AuthLoading:
    pass


@dataclass(frozen=True)
class Authenticated:
    pass


@dataclass(frozen=True)
class AuthError:
    message: str


AuthState: TypeAlias = Unauthenticated | AuthLoading | Authenticated | AuthError


# ---------------------------------------------------------------------------
# Conversation request state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class ChatLoading:
    pass


@dataclass(frozen=True)
class ChatSuccess:
    response: str


@dataclass(frozen=True)
class ChatError:
    message: str


ChatUiState: TypeAlias = Idle | ChatLoading | ChatSuccess | ChatError
