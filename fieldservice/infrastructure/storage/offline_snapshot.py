"""Local file storage for the last resolved permission map (implements IOfflineSnapshotStore).

One JSON file holds two fixed keys: the snapshot (owner identity plus the
flat action -> bool map) and the save time in epoch milliseconds. Writes use
temp file + rename so a crash never leaves a half-written snapshot.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from fieldservice.application.interfaces.services import OfflineSnapshot
from fieldservice.core.constants import (
    OFFLINE_FLAGS_KEY,
    OFFLINE_FLAGS_TIMESTAMP_KEY,
    OFFLINE_SNAPSHOT_MAX_AGE,
)
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.infrastructure.exceptions import SnapshotWriteError
from fieldservice.shared.telemetry.logging import get_logger
from fieldservice.shared.utils.datetime import ensure_utc, from_timestamp_ms_utc

logger = get_logger(__name__)


class LocalSnapshotStore:
    """Single-file offline snapshot store.

    A snapshot is returned only to the identity that saved it and only while
    it is younger than max_age. Missing, corrupt, foreign or stale files all
    read as None.
    """

    def __init__(
        self,
        file_path: str | Path,
        max_age: timedelta = OFFLINE_SNAPSHOT_MAX_AGE,
    ) -> None:
        self.file_path = Path(file_path).expanduser().resolve()
        self.max_age = max_age

    async def load(self, identity: SessionIdentity, now: datetime) -> OfflineSnapshot | None:
        raw = await self._read()
        if raw is None:
            return None
        snapshot = self._parse(raw)
        if snapshot is None:
            logger.warning("Ignoring malformed offline snapshot at %s", self.file_path)
            return None
        owner, offline = snapshot
        if owner != (identity.user_id, identity.tenant_id):
            logger.info("Offline snapshot belongs to another session; ignoring")
            return None
        if ensure_utc(now) - offline.saved_at > self.max_age:  # type: ignore[operator]
            logger.info(
                "Offline snapshot is stale (saved %s); ignoring",
                offline.saved_at.isoformat(),
            )
            return None
        return offline

    async def save(
        self,
        identity: SessionIdentity,
        permissions: Mapping[str, bool],
        saved_at: datetime,
    ) -> None:
        """Overwrite the snapshot atomically. Raises SnapshotWriteError on failure."""
        payload = {
            OFFLINE_FLAGS_KEY: {
                "userId": identity.user_id,
                "tenantId": identity.tenant_id,
                "permissions": {action: bool(v) for action, v in permissions.items()},
            },
            OFFLINE_FLAGS_TIMESTAMP_KEY: int(ensure_utc(saved_at).timestamp() * 1000),  # type: ignore[union-attr]
        }
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=".tmp_",
                suffix=self.file_path.suffix,
            )
            os.close(temp_fd)
            try:
                async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps(payload, sort_keys=True))
                os.chmod(temp_path, 0o640)
                await aiofiles.os.replace(temp_path, self.file_path)
            finally:
                if Path(temp_path).exists():
                    os.unlink(temp_path)
        except OSError as e:
            raise SnapshotWriteError(str(self.file_path), str(e)) from e

    async def clear(self) -> bool:
        """Delete the snapshot file. Returns True if a file was removed."""
        if not self.file_path.exists():
            return False
        await aiofiles.os.remove(self.file_path)
        return True

    async def _read(self) -> str | None:
        if not self.file_path.is_file():
            return None
        try:
            async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError):
            logger.warning("Could not read offline snapshot at %s", self.file_path, exc_info=True)
            return None

    @staticmethod
    def _parse(raw: str) -> tuple[tuple[str, str], OfflineSnapshot] | None:
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        body = data.get(OFFLINE_FLAGS_KEY)
        stamp = data.get(OFFLINE_FLAGS_TIMESTAMP_KEY)
        if not isinstance(body, dict) or isinstance(stamp, bool) or not isinstance(stamp, int):
            return None
        permissions = body.get("permissions")
        user_id, tenant_id = body.get("userId"), body.get("tenantId")
        if not isinstance(permissions, dict) or not isinstance(user_id, str) or not isinstance(tenant_id, str):
            return None
        if not all(isinstance(k, str) and isinstance(v, bool) for k, v in permissions.items()):
            return None
        try:
            saved_at = from_timestamp_ms_utc(stamp)
        except (OverflowError, OSError, ValueError):
            return None
        return (user_id, tenant_id), OfflineSnapshot(permissions=permissions, saved_at=saved_at)
