"""Read-only permission facade handed to view code."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from fieldservice.application.services.feature_flag_store import (
    FeatureFlagStore,
    PermissionsListener,
)


class PermissionContext:
    """What views may do with permissions: check, look up and observe.

    Wraps a session's FeatureFlagStore without exposing mutations or
    lifecycle control.
    """

    def __init__(self, store: FeatureFlagStore) -> None:
        self._store = store

    def can(self, action: str, context: Any = None) -> bool:
        return self._store.can(action, context)

    def is_enabled(self, flag_key: str) -> bool:
        return self._store.is_enabled(flag_key)

    @property
    def flags(self) -> Mapping[str, bool]:
        return self._store.flags

    @property
    def degraded(self) -> bool:
        return self._store.degraded

    def on_change(self, listener: PermissionsListener) -> Callable[[], None]:
        """Register listener for permission map changes; returns the unsubscribe function."""
        return self._store.subscribe(listener)

    @property
    def last_sync(self) -> datetime | None:
        return self._store.last_sync
