"""Shared fixtures: in-process fakes for the identity provider and federated sign-in."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from unittest.mock import AsyncMock

import pytest

from gemini_chat.application.conversation import ConversationController
from gemini_chat.application.exceptions import AuthFailure, AuthFailureKind, NotInitializedError
from gemini_chat.application.session import SessionController
from gemini_chat.domain.models import FederatedSignInRequest, FederatedToken, Identity
from gemini_chat.domain.observable import Observable, Subscription
from gemini_chat.services.memory_store import InMemoryDocumentStore


def pytest_configure(config):
    """Set pytest-asyncio mode to auto so async test functions work without markers."""
    config.option.asyncio_mode = "auto"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeIdentityProvider:
    """Accounts kept in a dict; set ``fail_next`` to make the next call raise."""

    def __init__(self) -> None:
        self.accounts: dict[str, tuple[str, Identity]] = {}
        self.deleted: list[str] = []
        self.fail_next: AuthFailure | None = None
        self.reset_emails: list[str] = []
        self._current: Observable[Identity | None] = Observable(None)

    def add_account(self, email: str, password: str, uid: str | None = None) -> Identity:
        identity = Identity(uid=uid or f"uid-{email}", email=email, id_token=f"tok-{email}")
        self.accounts[email] = (password, identity)
        return identity

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            failure, self.fail_next = self.fail_next, None
            raise failure

    def current_identity(self) -> Identity | None:
        return self._current.value

    def subscribe_identity_changes(
        self, callback: Callable[[Identity | None], None]
    ) -> Subscription:
        return self._current.subscribe(callback)

    async def verify_password(self, email: str, password: str) -> Identity:
        self._maybe_fail()
        stored = self.accounts.get(email)
        if stored is None:
            raise AuthFailure("email-not-found", AuthFailureKind.UNKNOWN_USER)
        if stored[0] != password:
            raise AuthFailure("invalid-password", AuthFailureKind.INVALID_CREDENTIALS)
        self._current.value = stored[1]
        return stored[1]

    async def create_account(self, email: str, password: str) -> Identity:
        self._maybe_fail()
        if email in self.accounts:
            raise AuthFailure("email-exists", AuthFailureKind.COLLISION)
        identity = self.add_account(email, password)
        self._current.value = identity
        return identity

    async def send_password_reset(self, email: str) -> None:
        self._maybe_fail()
        self.reset_emails.append(email)

    async def sign_out(self) -> None:
        self._maybe_fail()
        self._current.value = None

    async def exchange_federated_token(self, token: FederatedToken) -> Identity:
        self._maybe_fail()
        identity = Identity(
            uid=f"google-{token.id_token}",
            email="g@example.com",
            display_name="Gee User",
            id_token=token.id_token,
        )
        self._current.value = identity
        return identity

    async def update_profile_name(self, identity: Identity, name: str) -> None:
        self._maybe_fail()
        self._current.value = dataclasses.replace(identity, display_name=name)

    async def delete_identity(self, identity: Identity) -> None:
        self._maybe_fail()
        self.deleted.append(identity.uid)
        self._current.value = None


class FakeFederatedSignIn:
    def __init__(self) -> None:
        self.client_id: str | None = None
        self.signed_out = 0
        self.sign_out_error: Exception | None = None

    def configure(self, client_id: str) -> None:
        self.client_id = client_id

    def build_sign_in_request(self) -> FederatedSignInRequest:
        if not self.client_id:
            raise NotInitializedError()
        return FederatedSignInRequest(
            url=f"https://accounts.example/auth?client_id={self.client_id}", state="s", nonce="n"
        )

    def parse_result(self, raw: str | Mapping[str, str]) -> FederatedToken:
        fields = dict(raw) if not isinstance(raw, str) else dict(
            pair.split("=", 1) for pair in raw.split("&") if "=" in pair
        )
        if "error" in fields:
            raise AuthFailure(fields["error"])
        return FederatedToken(id_token=fields["id_token"])

    async def sign_out(self) -> None:
        self.signed_out += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
def federated() -> FakeFederatedSignIn:
    return FakeFederatedSignIn()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def session(identity_provider, store, federated) -> SessionController:
    controller = SessionController(identity_provider, store, federated)
    yield controller
    controller.close()


@pytest.fixture()
def mock_model() -> AsyncMock:
    """A language model whose ``generate`` returns a canned reply."""
    model = AsyncMock()
    model.generate.return_value = "  Hi there!  "
    return model


@pytest.fixture()
def conversation(mock_model: AsyncMock) -> ConversationController:
    """In-memory conversation (no persistence)."""
    return ConversationController(mock_model)


@pytest.fixture()
def persisted_conversation(mock_model, store, session) -> ConversationController:
    controller = ConversationController(mock_model, store=store, identity_source=session)
    yield controller
    controller.close()
