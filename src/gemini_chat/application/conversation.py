"""Conversation controller: the chat transcript and its request lifecycle.

Each ``send_message`` appends exactly two messages: the user turn and either
the model reply or a synthesized error reply.  The model is prompted with the
raw user text only; earlier turns are never resent.

In the persisted variant (constructed with a store and an identity source)
messages are mirrored to ``users/{uid}/chats/{chatId}/messages`` and a live
query republishes the stored transcript wholesale on every snapshot.
"""

from __future__ import annotations

import asyncio
import uuid

from loguru import logger

from gemini_chat.application.exceptions import ChatAppError, NotAuthenticatedError
from gemini_chat.domain import paths
from gemini_chat.domain.models import (
    ChatError,
    ChatLoading,
    ChatMessage,
    ChatSuccess,
    ChatUiState,
    DocumentSnapshot,
    Idle,
    MessageStatus,
    Query,
    now_millis,
)
from gemini_chat.domain.observable import Observable, Subscription
from gemini_chat.domain.protocols import IDocumentStore, IIdentitySource, ILanguageModel

EMPTY_RESPONSE_FALLBACK = "Sorry, I couldn't generate a response."
ERROR_REPLY_TEMPLATE = "Sorry, I encountered an error: {detail}"
DEFAULT_CHAT_TITLE = "New Chat"


class ConversationController:
    """Owns the transcript, the request state and the busy flag.

    Parameters
    ----------
    model:
        Single-shot text generator.
    store:
        Optional document store; enables the persisted variant.
    identity_source:
        Required with *store*; namespaces persisted data by user id.
    """

    def __init__(
        self,
        model: ILanguageModel,
        store: IDocumentStore | None = None,
        identity_source: IIdentitySource | None = None,
    ) -> None:
        if (store is None) != (identity_source is None):
            raise ValueError("store and identity_source must be given together")
        self.model = model
        self.store = store
        self.identity_source = identity_source

        self.messages: Observable[list[ChatMessage]] = Observable([])
        self.is_loading: Observable[bool] = Observable(False)
        self.ui_state: Observable[ChatUiState] = Observable(Idle())

        self._chat_id: str | None = None
        self._chat_owner: str | None = None
        self._live_query: Subscription | None = None
        self._generation = 0
        # uid -> in-flight chat resolution shared by every concurrent caller
        self._resolving: dict[str, asyncio.Task[str]] = {}

    @property
    def persisted(self) -> bool:
        return self.store is not None

    @property
    def chat_id(self) -> str | None:
        return self._chat_id

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> None:
        uid: str | None = None
        if self.persisted:
            uid = self._current_uid()
            if uid is None:
                logger.warning("send_message ignored: no signed-in user")
                return

        self.is_loading.value = True
        self.ui_state.value = ChatLoading()
        try:
            user_message = ChatMessage(text=text, is_user=True, status=MessageStatus.SENDING)
            self._append(user_message)
            if uid is not None:
                await self._persist(uid, user_message)

            logger.debug("Sending message to model: {}...", text[:50])
            try:
                response = await self.model.generate(text)
            except ChatAppError as exc:
                logger.error("Error getting model response: {}", exc)
                self.ui_state.value = ChatError(f"Error: {exc}")
                reply = ChatMessage(
                    text=ERROR_REPLY_TEMPLATE.format(detail=exc),
                    is_user=False,
                    status=MessageStatus.ERROR,
                )
            else:
                reply_text = response.strip() if response else ""
                reply_text = reply_text or EMPTY_RESPONSE_FALLBACK
                logger.debug("Model response: {}...", reply_text[:50])
                reply = ChatMessage(text=reply_text, is_user=False)
                self.ui_state.value = ChatSuccess(reply_text)

            self._append(reply)
            if uid is not None:
                await self._persist(uid, reply)
        finally:
            self.is_loading.value = False

    async def retry_last_user_message(self) -> None:
        last_user = next((m for m in reversed(self.messages.value) if m.is_user), None)
        if last_user is None:
            return
        await self.send_message(last_user.text)

    async def clear_chat(self) -> None:
        self.messages.value = []
        self.ui_state.value = Idle()

        if not self.persisted:
            return
        uid = self._current_uid()
        if uid is None:
            return

        assert self.store
        chat_id: str | None = None
        try:
            if self._chat_id is not None and self._chat_owner == uid:
                chat_id = self._chat_id
            else:
                chat_id = await self._find_chat(uid)
            if chat_id is None:
                return
            stored = await self.store.list(Query(paths.messages_collection(uid, chat_id)))
            for doc in stored:
                await self.store.delete(doc.path)
        except ChatAppError as exc:
            logger.error("Clearing chat {} stopped early: {}", chat_id, exc)
            return
        logger.info("Cleared chat {} ({} messages)", chat_id, len(stored))

    async def load_messages(self) -> None:
        """Resolve the user's chat and start mirroring its messages.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
            PersistenceError: If the chat record cannot be resolved.
        """
        if not self.persisted:
            return
        uid = self._current_uid()
        if uid is None:
            raise NotAuthenticatedError()

        chat_id = await self._ensure_chat(uid)

        assert self.store
        self.close()
        generation = self._generation

        def _deliver(docs: list[DocumentSnapshot]) -> None:
            # Drop snapshots from a query that was replaced or closed.
            if generation == self._generation:
                self._on_snapshot(docs)

        self._live_query = self.store.subscribe(
            Query(paths.messages_collection(uid, chat_id), order_by="timestamp"), _deliver
        )
        logger.info("Listening to chat {} for {}", chat_id, uid)

    def close(self) -> None:
        """Cancel the live query; snapshots delivered afterwards are dropped."""
        self._generation += 1
        if self._live_query is not None:
            self._live_query.cancel()
            self._live_query = None

    def reset(self) -> None:
        """Stop mirroring and forget the in-memory transcript; the store is untouched."""
        self.close()
        self._chat_id = None
        self._chat_owner = None
        self.messages.value = []
        self.ui_state.value = Idle()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append(self, message: ChatMessage) -> None:
        self.messages.value = [*self.messages.value, message]

    def _current_uid(self) -> str | None:
        assert self.identity_source
        identity = self.identity_source.current_identity
        return identity.uid if identity else None

    def _on_snapshot(self, docs: list[DocumentSnapshot]) -> None:
        self.messages.value = [ChatMessage.from_document(d.id, d.data) for d in docs]

    async def _ensure_chat(self, uid: str) -> str:
        """Return the user's single chat id, creating the record when missing.

        Overlapping callers (the initial ``load_messages`` and an early
        ``send_message``) await the same resolution so only one chat is created.
        """
        if self._chat_id is not None and self._chat_owner == uid:
            return self._chat_id

        task = self._resolving.get(uid)
        if task is None:
            task = asyncio.ensure_future(self._resolve_chat(uid))
            self._resolving[uid] = task
            task.add_done_callback(lambda done: self._forget_resolution(uid, done))
        # Shielded so one cancelled caller does not cancel the others.
        return await asyncio.shield(task)

    def _forget_resolution(self, uid: str, task: asyncio.Task[str]) -> None:
        if self._resolving.get(uid) is task:
            del self._resolving[uid]

    async def _find_chat(self, uid: str) -> str | None:
        assert self.store
        existing = await self.store.list(Query(paths.chats_collection(uid), limit=1))
        return existing[0].id if existing else None

    async def _resolve_chat(self, uid: str) -> str:
        assert self.store
        chat_id = await self._find_chat(uid)
        if chat_id is None:
            chat_id = str(uuid.uuid4())
            now = now_millis()
            await self.store.upsert(
                paths.chat_doc(uid, chat_id),
                {
                    "title": DEFAULT_CHAT_TITLE,
                    "lastMessage": "",
                    "createdAt": now,
                    "updatedAt": now,
                },
            )
            logger.info("Created new chat {} for {}", chat_id, uid)

        self._chat_id = chat_id
        self._chat_owner = uid
        return chat_id

    async def _persist(self, uid: str, message: ChatMessage) -> None:
        """Best-effort mirror of one message plus the chat's last-message marker."""
        assert self.store
        try:
            chat_id = await self._ensure_chat(uid)
            await self.store.upsert(
                paths.message_doc(uid, chat_id, message.id), message.to_document()
            )
            await self.store.upsert(
                paths.chat_doc(uid, chat_id),
                {"lastMessage": message.text, "updatedAt": message.timestamp},
                merge=True,
            )
        except ChatAppError as exc:
            logger.error("Could not persist message {}: {}", message.id, exc)
