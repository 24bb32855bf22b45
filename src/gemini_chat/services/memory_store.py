"""In-process document store for development and tests.

Mirrors the Firestore semantics the controllers rely on: documents live under
slash-separated paths, collection reads keep insertion order unless an
``order_by`` field is given (stable sort), and live queries receive the full
result set after every write to their collection.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from typing import Any

from gemini_chat.domain.models import DocumentSnapshot, Query
from gemini_chat.domain.observable import Subscription


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


class InMemoryDocumentStore:
    """``IDocumentStore`` backed by a dict."""

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._listeners: dict[int, tuple[Query, Callable[[list[DocumentSnapshot]], None]]] = {}
        self._next_key = 0

    async def upsert(self, path: str, fields: Mapping[str, Any], merge: bool = False) -> None:
        if merge and path in self._docs:
            self._docs[path].update(copy.deepcopy(dict(fields)))
        else:
            self._docs[path] = copy.deepcopy(dict(fields))
        self._notify(_parent(path))

    async def delete(self, path: str) -> None:
        if self._docs.pop(path, None) is not None:
            self._notify(_parent(path))

    async def get(self, path: str) -> DocumentSnapshot | None:
        data = self._docs.get(path)
        if data is None:
            return None
        return DocumentSnapshot(path=path, data=copy.deepcopy(data))

    async def list(self, query: Query) -> list[DocumentSnapshot]:
        return self._run(query)

    def subscribe(
        self, query: Query, callback: Callable[[list[DocumentSnapshot]], None]
    ) -> Subscription:
        key = self._next_key
        self._next_key += 1
        self._listeners[key] = (query, callback)
        callback(self._run(query))
        return Subscription(lambda: self._listeners.pop(key, None))

    def paths(self) -> list[str]:
        """Every stored document path, in insertion order."""
        return list(self._docs)

    def _run(self, query: Query) -> list[DocumentSnapshot]:
        docs = [
            DocumentSnapshot(path=path, data=copy.deepcopy(data))
            for path, data in self._docs.items()
            if _parent(path) == query.collection
        ]
        if query.order_by:
            field = query.order_by
            docs.sort(key=lambda d: (field in d.data, d.data.get(field, 0)))
        if query.limit is not None:
            docs = docs[: query.limit]
        return docs

    def _notify(self, collection: str) -> None:
        for query, callback in list(self._listeners.values()):
            if query.collection == collection:
                callback(self._run(query))
