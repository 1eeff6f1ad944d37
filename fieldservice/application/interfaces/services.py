"""Service interfaces (ports) for the application layer.

Protocols define contracts for the document store, offline snapshot
storage and audit writer so the flag store never imports a backend.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from fieldservice.application.dtos.feature_flag import FeatureFlagAuditLog
from fieldservice.domain.entities.session import SessionIdentity

# Receives the document data, or None when the document does not exist.
SnapshotHandler = Callable[[dict[str, Any] | None], Awaitable[None]]
SnapshotErrorHandler = Callable[[Exception], Awaitable[None]]


class Subscription(Protocol):
    """Handle for one live document listener."""

    def unsubscribe(self) -> None:
        """Stop the listener; no callbacks after this returns. Idempotent."""


class IDocumentStore(Protocol):
    """Document-style storage with live subscriptions."""

    async def get(self, path: str) -> dict[str, Any] | None:
        """Return document data or None if it does not exist."""

    def subscribe(
        self,
        path: str,
        on_snapshot: SnapshotHandler,
        on_error: SnapshotErrorHandler,
    ) -> Subscription:
        """Deliver the current document, then every change, until unsubscribed.

        Transient outages are retried by the implementation. on_error is
        called at most once, for a permanent failure; the listener is dead
        afterwards.
        """

    async def set_merge(self, path: str, data: Mapping[str, Any]) -> None:
        """Deep-merge data into the document (creating it). May raise on authorization failure."""

    async def add(self, collection_path: str, data: Mapping[str, Any]) -> str:
        """Append a document with a generated id; return the id."""


@dataclass(frozen=True)
class OfflineSnapshot:
    """Last resolved flat permission map and when it was saved."""

    permissions: dict[str, bool]
    saved_at: datetime


class IOfflineSnapshotStore(Protocol):
    """Durable local storage for the last resolved permission map."""

    async def load(self, identity: SessionIdentity, now: datetime) -> OfflineSnapshot | None:
        """Return a fresh snapshot for identity, or None (missing, stale, corrupt, foreign)."""

    async def save(
        self,
        identity: SessionIdentity,
        permissions: Mapping[str, bool],
        saved_at: datetime,
    ) -> None:
        """Persist the permission map for identity."""


class IAuditLogWriter(Protocol):
    """Best-effort writer for flag mutation records."""

    async def record(self, tenant_id: str, entry: FeatureFlagAuditLog) -> bool:
        """Append entry; return False (never raise) when the write fails."""
