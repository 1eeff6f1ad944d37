"""Firestore-backed document store (implements IDocumentStore).

The REST API has no push listener, so subscribe() polls the document and
delivers a snapshot whenever its updateTime (or existence) changes.
Transient outages (DocumentStoreUnavailableError) are retried with
exponential backoff; only other errors end the watch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from fieldservice.application.interfaces.services import (
    SnapshotErrorHandler,
    SnapshotHandler,
)
from fieldservice.infrastructure.exceptions import DocumentStoreUnavailableError
from fieldservice.infrastructure.firebase._rest_client import FirestoreRESTClient
from fieldservice.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


class _PollingWatch:
    """One polling listener; dies after a permanent error or on unsubscribe()."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        path: str,
        on_snapshot: SnapshotHandler,
        on_error: SnapshotErrorHandler,
        interval: float,
        max_backoff: float,
    ) -> None:
        self._client = client
        self._path = path
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._interval = interval
        self._max_backoff = max(max_backoff, interval)
        self._active = True
        self._last_seen: datetime | None | object = _MISSING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def unsubscribe(self) -> None:
        self._active = False
        if not self._task.done():
            self._task.cancel()

    def _backoff(self, failures: int) -> float:
        return min(self._interval * 2**failures, self._max_backoff)

    async def _run(self) -> None:
        failures = 0
        while self._active:
            try:
                snapshot = await self._client.document(self._path).get()
            except asyncio.CancelledError:
                raise
            except DocumentStoreUnavailableError as exc:
                failures += 1
                delay = self._backoff(failures)
                logger.warning(
                    "Listener on %s unavailable (attempt %d), retrying in %.1fs: %s",
                    self._path,
                    failures,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                continue
            except Exception as exc:
                logger.warning("Listener on %s failed: %s", self._path, exc)
                self._active = False
                await self._on_error(exc)
                return
            if failures:
                logger.info("Listener on %s recovered after %d failed polls", self._path, failures)
                failures = 0
            version = snapshot.update_time if snapshot is not None else None
            if self._active and version != self._last_seen:
                self._last_seen = version
                await self._on_snapshot(snapshot.to_dict() if snapshot is not None else None)
            await asyncio.sleep(self._interval)


class FirestoreDocumentStore:
    """IDocumentStore over the Firestore REST client."""

    def __init__(
        self,
        client: FirestoreRESTClient,
        *,
        poll_interval: float = 5.0,
        max_backoff: float = 60.0,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._max_backoff = max_backoff

    async def get(self, path: str) -> dict[str, Any] | None:
        snapshot = await self._client.document(path).get()
        return snapshot.to_dict() if snapshot is not None else None

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotHandler,
        on_error: SnapshotErrorHandler,
    ) -> _PollingWatch:
        return _PollingWatch(
            self._client, path, on_snapshot, on_error, self._poll_interval, self._max_backoff
        )

    async def set_merge(self, path: str, data: Mapping[str, Any]) -> None:
        await self._client.document(path).set(data, merge=True)

    async def add(self, collection_path: str, data: Mapping[str, Any]) -> str:
        return await self._client.collection(collection_path).add(data)
