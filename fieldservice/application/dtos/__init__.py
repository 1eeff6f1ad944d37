"""DTOs and document models for the permission core."""

from fieldservice.application.dtos.feature_flag import (
    AuditContext,
    FeatureFlag,
    FeatureFlagAuditLog,
    FeatureFlagMetadata,
    PermissionCheckResult,
    TenantFeatureFlags,
    UserFlagOverride,
    UserTenantRelation,
)

__all__ = [
    "AuditContext",
    "FeatureFlag",
    "FeatureFlagAuditLog",
    "FeatureFlagMetadata",
    "PermissionCheckResult",
    "TenantFeatureFlags",
    "UserFlagOverride",
    "UserTenantRelation",
]
