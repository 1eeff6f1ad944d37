"""Feature flag documents and permission decision results.

Document models parse what the document store returns. Field names on the
wire are camelCase (targetedRoles, defaultsForRoles, featureFlags); Python
code uses the snake_case attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fieldservice.domain.enums import (
    FeatureCategory,
    FlagAuditAction,
    PermissionSource,
    RiskLevel,
    Role,
)
from fieldservice.shared.utils.datetime import ensure_utc


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class FeatureFlagMetadata(_Document):
    """Admin-UI-only description of a flag; never evaluated."""

    description: str = ""
    category: FeatureCategory | None = None
    risk_level: RiskLevel | None = None


class FeatureFlag(_Document):
    """Tenant-level flag for one action identifier."""

    enabled: bool = False
    targeted_roles: list[Role] = Field(default_factory=list)
    targeted_users: list[str] = Field(default_factory=list)
    excluded_users: list[str] = Field(default_factory=list)
    enabled_at: datetime | None = None
    enabled_by: str | None = None
    expires_at: datetime | None = None
    metadata: FeatureFlagMetadata | None = None

    @field_validator("targeted_roles", mode="before")
    @classmethod
    def _drop_unknown_roles(cls, value: Any) -> Any:
        # Roles written by newer clients must not invalidate the whole document.
        if isinstance(value, (list, tuple, set)):
            return [r for r in value if isinstance(r, Role) or r in Role.values()]
        return value

    @field_validator("targeted_users", "excluded_users", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("enabled_at", "expires_at")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)

    def is_expired(self, now: datetime) -> bool:
        """Return True once expires_at is set and in the past."""
        return self.expires_at is not None and self.expires_at < now


class TenantFeatureFlags(_Document):
    """Tenant-wide flag document: flags by action plus per-role defaults."""

    flags: dict[str, FeatureFlag] = Field(default_factory=dict)
    defaults_for_roles: dict[Role, list[str]] = Field(default_factory=dict)

    @field_validator("flags", "defaults_for_roles", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def role_defaults(self, role: Role) -> frozenset[str] | None:
        """Configured defaults for role, or None when the tenant configures none.

        An explicitly empty list is a configuration (grants nothing), not absence.
        """
        configured = self.defaults_for_roles.get(role)
        if configured is None:
            return None
        return frozenset(configured)


class UserFlagOverride(_Document):
    """Per-(user, tenant) override. Has no expiry."""

    enabled: bool
    enabled_at: datetime | None = None
    enabled_by: str | None = None
    metadata: dict[str, Any] | None = None


class UserTenantRelation(_Document):
    """Membership document for a user in a tenant (holds the user overrides)."""

    role: Role | None = None
    status: str = "active"
    joined_at: datetime | None = None
    approved_by: str | None = None
    feature_flags: dict[str, UserFlagOverride] = Field(default_factory=dict)
    custom_permissions: list[str] = Field(default_factory=list)

    @field_validator("feature_flags", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class AuditContext(_Document):
    """Free-form context attached to an audit record."""

    user_agent: str | None = None
    ip_address: str | None = None
    reason: str | None = None


class FeatureFlagAuditLog(_Document):
    """Immutable record of one flag mutation."""

    flag_key: str
    action: FlagAuditAction
    performed_by: str
    performed_at: datetime
    previous_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None
    context: AuditContext = Field(default_factory=AuditContext)

    def to_document(self) -> dict[str, Any]:
        """Document written to the audit collection (camelCase keys)."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class PermissionCheckResult:
    """Outcome of one permission evaluation with its provenance."""

    allowed: bool
    source: PermissionSource
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "source": self.source.value,
            "reason": self.reason,
        }
