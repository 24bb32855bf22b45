"""Domain service interfaces (ports).

These protocols define the contracts that infrastructure implementations
must satisfy.  The controllers depend on these abstractions, not on the
Firebase, Firestore, Gemini or Google OAuth adapters.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from gemini_chat.domain.models import (
    DocumentSnapshot,
    FederatedSignInRequest,
    FederatedToken,
    Identity,
    Query,
)
from gemini_chat.domain.observable import Subscription

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@runtime_checkable
class IIdentityProvider(Protocol):
    """Interface for credential verification and account management.

    Implementations: FirebaseIdentityProvider (Identity Toolkit REST API).
    Fallible operations raise ``AuthFailure``.
    """

    async def verify_password(self, email: str, password: str) -> Identity: ...

    async def create_account(self, email: str, password: str) -> Identity: ...

    async def send_password_reset(self, email: str) -> None: ...

    async def sign_out(self) -> None: ...

    def current_identity(self) -> Identity | None: ...

    def subscribe_identity_changes(
        self, callback: Callable[[Identity | None], None]
    ) -> Subscription: ...

    async def exchange_federated_token(self, token: FederatedToken) -> Identity: ...

    async def update_profile_name(self, identity: Identity, name: str) -> None: ...

    async def delete_identity(self, identity: Identity) -> None: ...


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------


@runtime_checkable
class IDocumentStore(Protocol):
    """Interface for the hierarchical, schemaless, subscribable store.

    Implementations: FirestoreDocumentStore, InMemoryDocumentStore.
    Failures raise ``PersistenceError``.
    """

    async def upsert(self, path: str, fields: Mapping[str, Any], merge: bool = False) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def get(self, path: str) -> DocumentSnapshot | None: ...

    async def list(self, query: Query) -> list[DocumentSnapshot]: ...

    def subscribe(
        self, query: Query, callback: Callable[[list[DocumentSnapshot]], None]
    ) -> Subscription: ...


# ---------------------------------------------------------------------------
# Language model
# ---------------------------------------------------------------------------


@runtime_checkable
class ILanguageModel(Protocol):
    """Interface for single-shot text generation.

    Implementations: GeminiLanguageModel (pydantic-ai Agent on Gemini).
    Failures raise ``GenerationError``; ``None`` means the model returned no text.
    """

    async def generate(self, prompt: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Federated sign-in
# ---------------------------------------------------------------------------


@runtime_checkable
class IFederatedSignIn(Protocol):
    """Interface for the third-party sign-in handoff.

    Implementations: GoogleSignIn (OpenID Connect, form-post response mode).
    """

    def configure(self, client_id: str) -> None: ...

    def build_sign_in_request(self) -> FederatedSignInRequest: ...

    def parse_result(self, raw: str | Mapping[str, str]) -> FederatedToken: ...

    async def sign_out(self) -> None: ...


@runtime_checkable
class IIdentitySource(Protocol):
    """Anything that can tell who the current user is (the session controller)."""

    @property
    def current_identity(self) -> Identity | None: ...
