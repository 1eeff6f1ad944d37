"""Document collection names and paths (schema-in-code).

The document database has no DDL. Collections exist once a document is
written. Use these builders so the layout stays consistent across the
Firestore and in-memory stores.

Layout:
    tenantFeatureFlags/{tenantId}                 {flags, defaultsForRoles}
    users/{userId}/userTenants/{tenantId}         {role, status, featureFlags, ...}
    featureFlagAudit/{tenantId}/logs/{autoId}     audit records
"""

COLLECTION_USERS = "users"
COLLECTION_USER_TENANTS = "userTenants"
COLLECTION_TENANT_FEATURE_FLAGS = "tenantFeatureFlags"
COLLECTION_FEATURE_FLAG_AUDIT = "featureFlagAudit"
COLLECTION_AUDIT_LOGS = "logs"


def _check_segment(value: str, name: str) -> str:
    if not value or "/" in value:
        raise ValueError(f"{name} must be non-empty and must not contain '/': {value!r}")
    return value


def tenant_feature_flags_path(tenant_id: str) -> str:
    """Path of the tenant-wide flag document."""
    return f"{COLLECTION_TENANT_FEATURE_FLAGS}/{_check_segment(tenant_id, 'tenant_id')}"


def user_tenant_path(user_id: str, tenant_id: str) -> str:
    """Path of the (user, tenant) membership document holding user overrides."""
    return (
        f"{COLLECTION_USERS}/{_check_segment(user_id, 'user_id')}/"
        f"{COLLECTION_USER_TENANTS}/{_check_segment(tenant_id, 'tenant_id')}"
    )


def feature_flag_audit_path(tenant_id: str) -> str:
    """Collection path for a tenant's flag audit records."""
    return (
        f"{COLLECTION_FEATURE_FLAG_AUDIT}/{_check_segment(tenant_id, 'tenant_id')}/"
        f"{COLLECTION_AUDIT_LOGS}"
    )
