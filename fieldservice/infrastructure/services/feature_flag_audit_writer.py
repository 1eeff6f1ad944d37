"""Feature flag audit writer: appends mutation records to the tenant audit log (implements IAuditLogWriter)."""

from __future__ import annotations

from fieldservice.application.dtos.feature_flag import FeatureFlagAuditLog
from fieldservice.application.interfaces.services import IDocumentStore
from fieldservice.core.collections import feature_flag_audit_path
from fieldservice.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class FeatureFlagAuditWriter:
    """Best-effort audit log: a failed write is logged and reported, never raised.

    Audit is observability only; it does not take part in the flag write.
    """

    def __init__(self, document_store: IDocumentStore) -> None:
        self._documents = document_store

    async def record(self, tenant_id: str, entry: FeatureFlagAuditLog) -> bool:
        """Append one record. Returns True if stored."""
        try:
            record_id = await self._documents.add(
                feature_flag_audit_path(tenant_id), entry.to_document()
            )
        except Exception:
            logger.exception(
                "Failed to write audit record for flag %s (tenant %s)",
                entry.flag_key,
                tenant_id,
            )
            return False
        logger.debug(
            "Audit record %s: %s %s by %s",
            record_id,
            entry.flag_key,
            entry.action.value,
            entry.performed_by,
        )
        return True
