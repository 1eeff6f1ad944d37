"""Infrastructure services (audit)."""

from fieldservice.infrastructure.services.feature_flag_audit_writer import (
    FeatureFlagAuditWriter,
)

__all__ = ["FeatureFlagAuditWriter"]
