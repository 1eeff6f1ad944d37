"""In-memory document store with live subscriptions (implements IDocumentStore).

Same contract as FirestoreDocumentStore. Writes notify subscribers before
returning, so callers observe listener effects deterministically. Data is
deep-copied in and out; callers never share state with the store.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Mapping
from typing import Any

from fieldservice.application.interfaces.services import (
    SnapshotErrorHandler,
    SnapshotHandler,
)
from fieldservice.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def deep_merge(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Merge updates into target in place; nested mappings merge, other values replace."""
    for key, value in updates.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            deep_merge(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class _Watcher:
    def __init__(self, on_snapshot: SnapshotHandler, on_error: SnapshotErrorHandler) -> None:
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        self.initial: asyncio.Task[None] | None = None


class _MemorySubscription:
    """Subscription handle; unsubscribe() is idempotent."""

    def __init__(self, store: InMemoryDocumentStore, path: str, watcher: _Watcher) -> None:
        self._store = store
        self._path = path
        self._watcher = watcher

    def unsubscribe(self) -> None:
        self._store._remove_watcher(self._path, self._watcher)


class InMemoryDocumentStore:
    """Dict-backed document store keyed by slash-separated document path."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._documents: dict[str, dict[str, Any]] = {
            path: copy.deepcopy(dict(data)) for path, data in (documents or {}).items()
        }
        self._watchers: dict[str, list[_Watcher]] = {}

    async def get(self, path: str) -> dict[str, Any] | None:
        return self._snapshot(path)

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotHandler,
        on_error: SnapshotErrorHandler,
    ) -> _MemorySubscription:
        """Register a watcher; the current document is delivered on the next loop turn."""
        watcher = _Watcher(on_snapshot, on_error)
        self._watchers.setdefault(path, []).append(watcher)
        watcher.initial = asyncio.get_running_loop().create_task(
            self._deliver(watcher, path)
        )
        return _MemorySubscription(self, path, watcher)

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        """Create or overwrite the document."""
        self._documents[path] = copy.deepcopy(dict(data))
        await self._notify(path)

    async def set_merge(self, path: str, data: Mapping[str, Any]) -> None:
        deep_merge(self._documents.setdefault(path, {}), data)
        await self._notify(path)

    async def delete(self, path: str) -> None:
        """Remove the document; watchers receive None."""
        self._documents.pop(path, None)
        await self._notify(path)

    async def add(self, collection_path: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._documents[f"{collection_path}/{doc_id}"] = copy.deepcopy(dict(data))
        return doc_id

    def collection(self, collection_path: str) -> list[dict[str, Any]]:
        """Documents directly under collection_path, in insertion order."""
        prefix = collection_path.rstrip("/") + "/"
        return [
            copy.deepcopy(data)
            for path, data in self._documents.items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    async def fail(self, path: str, exc: Exception) -> None:
        """Simulate a listener failure: every watcher on path gets on_error once and dies."""
        watchers = self._watchers.pop(path, [])
        for watcher in watchers:
            self._deactivate(watcher)
            await watcher.on_error(exc)

    def watcher_count(self, path: str) -> int:
        return len(self._watchers.get(path, []))

    def _snapshot(self, path: str) -> dict[str, Any] | None:
        data = self._documents.get(path)
        return copy.deepcopy(data) if data is not None else None

    async def _deliver(self, watcher: _Watcher, path: str) -> None:
        if watcher.active:
            await watcher.on_snapshot(self._snapshot(path))

    async def _notify(self, path: str) -> None:
        for watcher in list(self._watchers.get(path, [])):
            if watcher.active:
                await watcher.on_snapshot(self._snapshot(path))

    def _remove_watcher(self, path: str, watcher: _Watcher) -> None:
        self._deactivate(watcher)
        watchers = self._watchers.get(path)
        if watchers and watcher in watchers:
            watchers.remove(watcher)
            if not watchers:
                del self._watchers[path]

    @staticmethod
    def _deactivate(watcher: _Watcher) -> None:
        watcher.active = False
        initial = watcher.initial
        # A callback may unsubscribe from inside its own delivery task.
        if initial is not None and not initial.done() and initial is not _current_task():
            initial.cancel()
