"""Permission API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from fieldservice.domain.enums import PermissionSource, Role


class PermissionMapResponse(BaseModel):
    """Flat permission map for the caller's session."""

    user_id: str
    tenant_id: str
    role: Role
    permissions: dict[str, bool]
    degraded: bool = Field(..., description="True while served from offline snapshot or role defaults")
    last_sync: datetime | None = None


class PermissionCheckRequest(BaseModel):
    """Request body for checking one or more actions."""

    actions: list[str] = Field(..., min_length=1, max_length=200)
    context: dict[str, Any] | None = Field(
        default=None,
        description="Resource attributes for context rules (e.g. task_owner_id, team_id)",
    )


class PermissionDecision(BaseModel):
    """Decision for one action with its provenance."""

    action: str
    allowed: bool
    source: PermissionSource
    reason: str | None = None


class PermissionCheckResponse(BaseModel):
    """Decisions in request order."""

    results: list[PermissionDecision]
