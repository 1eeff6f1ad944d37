"""Permissions API: the caller's permission map, batch checks and cache reset."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from fieldservice.api.v1.dependencies import (
    get_permission_context,
    get_session_identity,
    get_session_store,
)
from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.application.services.permission_context import PermissionContext
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.schemas.permission import (
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionDecision,
    PermissionMapResponse,
)

router = APIRouter()


@router.get("", response_model=PermissionMapResponse)
async def get_permissions(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    permissions: Annotated[PermissionContext, Depends(get_permission_context)],
):
    """Flat action -> allowed map for the caller (opens the session on first call)."""
    return PermissionMapResponse(
        user_id=identity.user_id,
        tenant_id=identity.tenant_id,
        role=identity.role,
        permissions=dict(permissions.flags),
        degraded=permissions.degraded,
        last_sync=permissions.last_sync,
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permissions(
    body: PermissionCheckRequest,
    store: Annotated[FeatureFlagStore, Depends(get_session_store)],
):
    """Evaluate each action (with optional resource context) and report provenance."""
    results = []
    for action in body.actions:
        decision = store.evaluate(action, body.context)
        results.append(
            PermissionDecision(
                action=action,
                allowed=decision.allowed,
                source=decision.source,
                reason=decision.reason,
            )
        )
    return PermissionCheckResponse(results=results)


@router.post("/cache/clear", status_code=204)
async def clear_permission_cache(
    store: Annotated[FeatureFlagStore, Depends(get_session_store)],
) -> Response:
    """Drop cached decisions for the caller's session."""
    store.clear_cache()
    return Response(status_code=204)
