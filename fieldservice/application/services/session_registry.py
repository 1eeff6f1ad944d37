"""Registry of live flag stores, one per authenticated (user, tenant) session.

Replaces a process-wide store singleton: the composition root owns one
registry (e.g. on app.state) and passes stores down explicitly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

StoreFactory = Callable[[SessionIdentity], FeatureFlagStore]


class SessionRegistry:
    """Opens, reuses and closes FeatureFlagStore sessions.

    - open() on a new tenant for a user closes that user's other tenants (tenant switch).
    - open() with a changed role replaces the session's store.
    - open() on a session whose listeners failed replaces it, so the new
      store resubscribes.
    - close() is sign-out; close_all() is shutdown.
    """

    def __init__(self, store_factory: StoreFactory) -> None:
        self._factory = store_factory
        self._stores: dict[tuple[str, str], FeatureFlagStore] = {}
        self._lock = asyncio.Lock()

    async def open(self, identity: SessionIdentity) -> FeatureFlagStore:
        """Return the started store for identity, creating it if needed."""
        async with self._lock:
            existing = self._stores.get(identity.session_key)
            if existing is not None and not existing.is_destroyed:
                if existing.degraded and existing.error is not None:
                    logger.info(
                        "Session for user %s in tenant %s lost its listeners; reopening",
                        identity.user_id,
                        identity.tenant_id,
                    )
                elif existing.identity.role == identity.role:
                    return existing
                else:
                    logger.info(
                        "Role changed for user %s in tenant %s; reopening session",
                        identity.user_id,
                        identity.tenant_id,
                    )
            self._close_locked(identity.session_key)
            for key in [
                k for k in self._stores
                if k[0] == identity.user_id and k[1] != identity.tenant_id
            ]:
                logger.info("Tenant switch for user %s; closing %s", identity.user_id, key[1])
                self._close_locked(key)

            store = self._factory(identity)
            self._stores[identity.session_key] = store
        await store.start()
        return store

    def get(self, user_id: str, tenant_id: str) -> FeatureFlagStore | None:
        """Return the live store for the session, if any."""
        return self._stores.get((user_id, tenant_id))

    async def close(self, user_id: str, tenant_id: str) -> bool:
        """Destroy the session's store; return False if there was none."""
        async with self._lock:
            return self._close_locked((user_id, tenant_id))

    async def close_all(self) -> None:
        async with self._lock:
            for key in list(self._stores):
                self._close_locked(key)

    def __len__(self) -> int:
        return len(self._stores)

    def _close_locked(self, key: tuple[str, str]) -> bool:
        store = self._stores.pop(key, None)
        if store is None:
            return False
        store.destroy()
        return True
