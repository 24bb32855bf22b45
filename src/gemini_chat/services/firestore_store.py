"""Cloud Firestore document store.

The Firestore client is synchronous, so every call runs in a worker thread
via ``asyncio.to_thread``.  Live queries use ``on_snapshot`` watches whose
callbacks fire on a background thread; they are handed back to the event
loop with ``call_soon_threadsafe`` so controllers only ever mutate state on
the loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from loguru import logger

from gemini_chat.application.exceptions import PersistenceError
from gemini_chat.config import Settings
from gemini_chat.domain.models import DocumentSnapshot, Query
from gemini_chat.domain.observable import Subscription

T = TypeVar("T")


def create_firestore_client(settings: Settings) -> firestore.Client:
    """Build a Firestore client from explicit service-account credentials or ADC."""
    credentials = None
    if settings.google_application_credentials:
        from google.oauth2 import service_account

        credentials = service_account.Credentials.from_service_account_file(
            str(settings.google_application_credentials)
        )
    return firestore.Client(
        project=settings.firebase_project_id or None,
        credentials=credentials,
        database=settings.firestore_database,
    )


def _to_snapshot(doc: Any) -> DocumentSnapshot:
    return DocumentSnapshot(path=doc.reference.path, data=doc.to_dict() or {})


class FirestoreDocumentStore:
    """``IDocumentStore`` backed by ``google.cloud.firestore.Client``."""

    def __init__(self, client: firestore.Client) -> None:
        self.client = client

    async def upsert(self, path: str, fields: Mapping[str, Any], merge: bool = False) -> None:
        await self._run(path, lambda: self.client.document(path).set(dict(fields), merge=merge))

    async def delete(self, path: str) -> None:
        await self._run(path, lambda: self.client.document(path).delete())

    async def get(self, path: str) -> DocumentSnapshot | None:
        snap = await self._run(path, lambda: self.client.document(path).get())
        if not snap.exists:
            return None
        return DocumentSnapshot(path=path, data=snap.to_dict() or {})

    async def list(self, query: Query) -> list[DocumentSnapshot]:
        docs = await self._run(query.collection, lambda: list(self._build(query).stream()))
        return [_to_snapshot(doc) for doc in docs]

    def subscribe(
        self, query: Query, callback: Callable[[list[DocumentSnapshot]], None]
    ) -> Subscription:
        """Start a watch; must be called from within the event loop."""
        loop = asyncio.get_running_loop()

        def _on_snapshot(docs: list[Any], _changes: Any, _read_time: Any) -> None:
            snapshots = [_to_snapshot(doc) for doc in docs]
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(callback, snapshots)

        try:
            watch = self._build(query).on_snapshot(_on_snapshot)
        except google_exceptions.GoogleAPIError as exc:
            raise PersistenceError(f"{query.collection}: {exc}") from exc
        logger.debug("Watching {}", query.collection)
        return Subscription(watch.unsubscribe)

    def _build(self, query: Query) -> Any:
        ref: Any = self.client.collection(query.collection)
        if query.order_by:
            ref = ref.order_by(query.order_by)
        if query.limit is not None:
            ref = ref.limit(query.limit)
        return ref

    @staticmethod
    async def _run(path: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except google_exceptions.GoogleAPIError as exc:
            logger.warning("Firestore call failed | path={} error={}", path, exc)
            raise PersistenceError(f"{path}: {exc}") from exc
