"""In-process TTL cache for permission decisions.

One instance per evaluator (per user+tenant session); never shared. Entries
expire by wall clock and are dropped on read once expired.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from fieldservice.core.constants import DEFAULT_PERMISSION_CACHE_TTL
from fieldservice.shared.telemetry.logging import get_logger
from fieldservice.shared.utils.datetime import Clock, utc_now

logger = get_logger(__name__)

V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    expires_at: datetime


class PermissionCache(Generic[V]):
    """Dict-backed TTL cache.

    Never serves an entry at or past its expiry instant.
    """

    def __init__(
        self,
        ttl: int = DEFAULT_PERMISSION_CACHE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize cache.

        Args:
            ttl: Time-to-live in seconds; 0 disables caching.
            clock: Returns current UTC time (injectable for tests).
        """
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._entries: dict[str, _Entry[V]] = {}

    def get(self, key: str) -> V | None:
        """Return cached value or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug("Cache EXPIRED: %s", key)
            return None
        logger.debug("Cache HIT: %s", key)
        return entry.value

    def set(self, key: str, value: V) -> None:
        """Store value until now + ttl."""
        if not self._ttl:
            return
        self._entries[key] = _Entry(value, self._clock() + self._ttl)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
