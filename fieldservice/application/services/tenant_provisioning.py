"""Tenant flag provisioning: create the flag document for tenants that lack one."""

from __future__ import annotations

from fieldservice.application.interfaces.services import IDocumentStore
from fieldservice.application.services.role_defaults import create_initial_feature_flags
from fieldservice.core.collections import tenant_feature_flags_path
from fieldservice.shared.telemetry.logging import get_logger
from fieldservice.shared.utils.datetime import Clock, utc_now

logger = get_logger(__name__)


async def ensure_tenant_feature_flags(
    document_store: IDocumentStore,
    tenant_id: str,
    created_by: str,
    *,
    clock: Clock = utc_now,
) -> bool:
    """Write the initial flag document if the tenant has none.

    Existing documents are never overwritten (flags are only superseded
    through toggles).

    Returns:
        True if a document was created, False if one already existed.
    """
    path = tenant_feature_flags_path(tenant_id)
    if await document_store.get(path) is not None:
        logger.debug("Tenant %s already has feature flags", tenant_id)
        return False
    flags = create_initial_feature_flags(created_by, clock())
    await document_store.set_merge(path, flags.model_dump(by_alias=True, mode="json"))
    logger.info("Created feature flags for tenant %s", tenant_id)
    return True
