"""Feature flag API schemas."""

from typing import Any

from pydantic import BaseModel, Field

from fieldservice.domain.enums import Role


class FeatureFlagToggleRequest(BaseModel):
    """Request body for PUT /feature-flags/{action_id}."""

    enabled: bool
    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Flag metadata (name, description, category, riskLevel, ...)",
    )
    reason: str | None = Field(default=None, max_length=500)
    targeted_roles: list[Role] | None = Field(
        default=None,
        description="Roles the flag applies to; omitted keeps the current targeting",
    )


class FeatureFlagToggleResponse(BaseModel):
    """Result of a flag toggle."""

    action_id: str
    enabled: bool


class TemplateApplyRequest(BaseModel):
    """Optional body for POST /feature-flags/templates/{template_key}."""

    enabled: bool = True
    reason: str | None = Field(default=None, max_length=500)


class TemplateApplyResponse(BaseModel):
    """Flags toggled by a template."""

    template_key: str
    enabled: bool
    flags: list[str]


class FeatureFlagTemplateInfo(BaseModel):
    """One entry from the template catalogue."""

    key: str
    name: str
    description: str
    flags: list[str]
    restrict_to_roles: list[Role] | None = None
