"""Session controller: authentication state and account commands.

The controller owns a single observable ``AuthState``.  Every command sets the
state it reaches; failures of the primary call become ``AuthError`` while
failures of secondary profile writes are only logged.  Overlapping commands
are not serialised: whichever finishes last decides the state.

The controller has **no dependency on FastAPI**; hosts schedule the command
coroutines and observe ``state``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger

from gemini_chat.application.exceptions import (
    ChatAppError,
    NotAuthenticatedError,
    NotInitializedError,
)
from gemini_chat.domain import paths
from gemini_chat.domain.models import (
    Authenticated,
    AuthError,
    AuthLoading,
    AuthState,
    FederatedSignInRequest,
    Identity,
    Query,
    Unauthenticated,
    now_millis,
)
from gemini_chat.domain.observable import Observable
from gemini_chat.domain.protocols import IDocumentStore, IFederatedSignIn, IIdentityProvider


def display_name_from_email(email: str) -> str:
    """Local part of the address, used as the initial display name."""
    return email.split("@", 1)[0]


class SessionController:
    """Sequences identity-provider calls and reflects their outcome as ``AuthState``.

    Parameters
    ----------
    identity_provider:
        Verifies credentials and owns the notion of "current user".
    store:
        Document store holding the ``users/{uid}`` profile records.
    federated:
        Federated sign-in client (Google).
    """

    def __init__(
        self,
        identity_provider: IIdentityProvider,
        store: IDocumentStore,
        federated: IFederatedSignIn,
    ) -> None:
        self.identity_provider = identity_provider
        self.store = store
        self.federated = federated
        self.state: Observable[AuthState] = Observable(Unauthenticated())
        self._federated_configured = False
        self._identity_subscription = identity_provider.subscribe_identity_changes(
            self._on_identity_changed
        )

    @property
    def current_identity(self) -> Identity | None:
        return self.identity_provider.current_identity()

    def close(self) -> None:
        """Stop listening to identity changes."""
        self._identity_subscription.cancel()

    def _on_identity_changed(self, identity: Identity | None) -> None:
        self.state.value = Authenticated() if identity is not None else Unauthenticated()

    # ------------------------------------------------------------------
    # Email / password
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> None:
        self.state.value = AuthLoading()
        try:
            identity = await self.identity_provider.verify_password(email, password)
        except ChatAppError as exc:
            logger.warning("Sign in failed | email={} error={}", email, exc)
            self.state.value = AuthError(f"Sign in failed: {exc}")
            return
        logger.info("Signed in | uid={}", identity.uid)
        self.state.value = Authenticated()

    async def sign_up(self, email: str, password: str) -> None:
        self.state.value = AuthLoading()
        try:
            identity = await self.identity_provider.create_account(email, password)
        except ChatAppError as exc:
            logger.warning("Sign up failed | email={} error={}", email, exc)
            self.state.value = AuthError(f"Sign up failed: {exc}")
            return
        logger.info("Account created | uid={}", identity.uid)
        self.state.value = Authenticated()
        await self._write_profile(
            identity.uid,
            {
                "email": email,
                "displayName": display_name_from_email(email),
                "createdAt": now_millis(),
            },
        )

    async def reset_password(self, email: str) -> None:
        self.state.value = AuthLoading()
        try:
            await self.identity_provider.send_password_reset(email)
        except ChatAppError as exc:
            logger.warning("Password reset failed | email={} error={}", email, exc)
            self.state.value = AuthError(f"Password reset failed: {exc}")
            return
        logger.info("Password reset email sent | email={}", email)
        self.state.value = Unauthenticated()

    async def sign_out(self) -> None:
        try:
            await self.identity_provider.sign_out()
        except ChatAppError as exc:
            logger.warning("Identity provider sign out failed: {}", exc)
        try:
            await self.federated.sign_out()
        except ChatAppError as exc:
            logger.warning("Federated sign out failed: {}", exc)
        self.state.value = Unauthenticated()
        logger.info("Signed out")

    # ------------------------------------------------------------------
    # Federated (Google) sign-in
    # ------------------------------------------------------------------

    def initialize_federated_sign_in(self, client_id: str) -> None:
        self.federated.configure(client_id)
        self._federated_configured = True

    def get_federated_sign_in_request(self) -> FederatedSignInRequest:
        if not self._federated_configured:
            raise NotInitializedError()
        return self.federated.build_sign_in_request()

    async def handle_federated_sign_in_result(self, raw: str | Mapping[str, str]) -> None:
        self.state.value = AuthLoading()
        try:
            token = self.federated.parse_result(raw)
            identity = await self.identity_provider.exchange_federated_token(token)
        except ChatAppError as exc:
            logger.warning("Google sign in failed: {}", exc)
            self.state.value = AuthError(f"Google sign in failed: {exc}")
            return

        logger.info("Signed in with Google | uid={}", identity.uid)
        self.state.value = Authenticated()
        await self._upsert_federated_profile(identity)

    async def _upsert_federated_profile(self, identity: Identity) -> None:
        now = now_millis()
        fields: dict[str, Any] = {
            "email": identity.email,
            "displayName": identity.display_name
            or display_name_from_email(identity.email or ""),
            "lastLogin": now,
        }
        try:
            existing = await self.store.get(paths.user_doc(identity.uid))
        except ChatAppError as exc:
            logger.error("Could not read profile for {}: {}", identity.uid, exc)
            return
        if existing is None:
            fields["createdAt"] = now
        await self._write_profile(identity.uid, fields, merge=True)

    async def _write_profile(self, uid: str, fields: dict[str, Any], merge: bool = False) -> None:
        """Best-effort profile write; a failure never changes the auth state."""
        try:
            await self.store.upsert(paths.user_doc(uid), fields, merge=merge)
        except ChatAppError as exc:
            logger.error("Error updating user profile for {}: {}", uid, exc)

    # ------------------------------------------------------------------
    # Account management (callback style)
    # ------------------------------------------------------------------

    async def update_display_name(
        self,
        name: str,
        on_success: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        identity = self.current_identity
        if identity is None:
            on_error(NotAuthenticatedError())
            return

        try:
            await self.identity_provider.update_profile_name(identity, name)
            await self.store.upsert(paths.user_doc(identity.uid), {"displayName": name}, merge=True)
        except ChatAppError as exc:
            logger.error("Error updating display name for {}: {}", identity.uid, exc)
            on_error(exc)
            return
        on_success()

    async def delete_account(
        self,
        on_success: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """Delete profile, chats and finally the identity itself.

        Not transactional: an interruption can leave chat documents behind.
        Failures after the precondition check are reported through ``state``.
        """
        identity = self.current_identity
        if identity is None:
            on_error(NotAuthenticatedError())
            return

        uid = identity.uid
        try:
            await self.store.delete(paths.user_doc(uid))

            chats = await self.store.list(Query(paths.chats_collection(uid)))
            for chat in chats:
                messages = await self.store.list(Query(paths.messages_collection(uid, chat.id)))
                for message in messages:
                    await self.store.delete(message.path)
                await self.store.delete(chat.path)

            await self.identity_provider.delete_identity(identity)
        except ChatAppError as exc:
            logger.error("Error deleting account {}: {}", uid, exc)
            self.state.value = AuthError(f"Error deleting account: {exc}")
            return

        logger.info("Account deleted | uid={} chats={}", uid, len(chats))
        on_success()
