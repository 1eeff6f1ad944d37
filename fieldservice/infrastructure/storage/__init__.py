"""Local durable storage for offline permission snapshots."""

from fieldservice.infrastructure.storage.offline_snapshot import LocalSnapshotStore

__all__ = ["LocalSnapshotStore"]
