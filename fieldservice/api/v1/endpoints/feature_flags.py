"""Feature flags API: toggle tenant flags and apply flag templates.

Writes are gated by system_settings_manage_features inside the flag store;
the gate is evaluated against the caller's live permissions.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from fieldservice.api.v1.dependencies import get_session_store, require_permission
from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.application.services.role_defaults import FEATURE_FLAG_TEMPLATES
from fieldservice.core.constants import MANAGE_FEATURES_ACTION
from fieldservice.schemas.feature_flag import (
    FeatureFlagTemplateInfo,
    FeatureFlagToggleRequest,
    FeatureFlagToggleResponse,
    TemplateApplyRequest,
    TemplateApplyResponse,
)

router = APIRouter()


@router.get("/templates", response_model=list[FeatureFlagTemplateInfo])
async def list_templates(
    _: Annotated[FeatureFlagStore, Depends(require_permission(MANAGE_FEATURES_ACTION))],
):
    """Template catalogue for the admin UI."""
    return [
        FeatureFlagTemplateInfo(
            key=key,
            name=template["name"],
            description=template["description"],
            flags=list(template["flags"]),
            restrict_to_roles=(
                list(template["restrict_to_roles"]) if "restrict_to_roles" in template else None
            ),
        )
        for key, template in FEATURE_FLAG_TEMPLATES.items()
    ]


@router.put("/{action_id}", response_model=FeatureFlagToggleResponse)
async def toggle_feature_flag(
    action_id: str,
    body: FeatureFlagToggleRequest,
    store: Annotated[FeatureFlagStore, Depends(get_session_store)],
):
    """Enable or disable a tenant flag and record an audit entry."""
    await store.toggle_flag(
        action_id,
        body.enabled,
        body.metadata,
        reason=body.reason,
        targeted_roles=body.targeted_roles,
    )
    return FeatureFlagToggleResponse(action_id=action_id, enabled=body.enabled)


@router.post("/templates/{template_key}", response_model=TemplateApplyResponse)
async def apply_feature_flag_template(
    template_key: str,
    store: Annotated[FeatureFlagStore, Depends(get_session_store)],
    body: TemplateApplyRequest | None = None,
):
    """Toggle every flag in a template (404 for unknown template)."""
    body = body or TemplateApplyRequest()
    flags = await store.apply_template(template_key, body.enabled, reason=body.reason)
    return TemplateApplyResponse(template_key=template_key, enabled=body.enabled, flags=flags)
