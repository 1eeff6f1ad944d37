"""Application ports (protocols) implemented by infrastructure."""

from fieldservice.application.interfaces.services import (
    IAuditLogWriter,
    IDocumentStore,
    IOfflineSnapshotStore,
    OfflineSnapshot,
    SnapshotErrorHandler,
    SnapshotHandler,
    Subscription,
)

__all__ = [
    "IAuditLogWriter",
    "IDocumentStore",
    "IOfflineSnapshotStore",
    "OfflineSnapshot",
    "SnapshotErrorHandler",
    "SnapshotHandler",
    "Subscription",
]
