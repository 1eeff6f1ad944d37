"""Application lifespan: startup and shutdown.

Single place for all startup/shutdown logic. Used by main.py; no business
logic here, only wiring of infrastructure (document store, offline snapshot
storage, audit writer, session registry).
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from fieldservice.application.interfaces.services import IDocumentStore
from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.application.services.session_registry import SessionRegistry
from fieldservice.core.config import Settings, get_settings
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.infrastructure.services.feature_flag_audit_writer import (
    FeatureFlagAuditWriter,
)
from fieldservice.infrastructure.storage.offline_snapshot import LocalSnapshotStore
from fieldservice.shared.telemetry.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _create_document_store(settings: Settings) -> IDocumentStore:
    """Document store for the configured backend."""
    if settings.document_backend == "memory":
        from fieldservice.infrastructure.memory.document_store import InMemoryDocumentStore

        logger.warning("Using in-memory document store; flags are lost on restart")
        return InMemoryDocumentStore()

    from fieldservice.infrastructure.firebase.client import (
        get_firestore_client,
        init_firebase,
    )
    from fieldservice.infrastructure.firebase.document_store import FirestoreDocumentStore

    if not init_firebase():
        raise RuntimeError("Firestore backend configured but client could not be initialized")
    client = get_firestore_client()
    assert client is not None
    return FirestoreDocumentStore(
        client,
        poll_interval=settings.firestore_poll_interval_seconds,
        max_backoff=settings.firestore_max_backoff_seconds,
    )


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: logging, document store, snapshot store, audit writer and the
    session registry on app.state. Shutdown: destroy every session, then
    close the Firestore HTTP client if one was opened.
    """
    settings = get_settings()
    setup_logging()

    # ---- Startup ----
    document_store = _create_document_store(settings)
    snapshot_store = LocalSnapshotStore(
        settings.offline_snapshot_path,
        max_age=timedelta(hours=settings.offline_snapshot_max_age_hours),
    )
    audit_writer = FeatureFlagAuditWriter(document_store)

    def store_factory(identity: SessionIdentity) -> FeatureFlagStore:
        return FeatureFlagStore(
            identity,
            document_store,
            snapshot_store=snapshot_store,
            audit_writer=audit_writer,
            cache_ttl=settings.cache_ttl_permissions,
            offline_max_age=snapshot_store.max_age,
            user_agent=f"{settings.app_name}/{settings.app_version}",
        )

    app.state.document_store = document_store
    app.state.snapshot_store = snapshot_store
    app.state.sessions = SessionRegistry(store_factory)
    logger.info(
        "Started %s %s (document backend: %s)",
        settings.app_name,
        settings.app_version,
        settings.document_backend,
    )

    yield

    # ---- Shutdown ----
    await app.state.sessions.close_all()
    logger.info("Permission sessions closed")

    if settings.document_backend == "firestore":
        from fieldservice.infrastructure.firebase.client import close_firebase

        await close_firebase()
