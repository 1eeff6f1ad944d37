"""Role defaults, tenant provisioning defaults and flag templates.

DEFAULT_ROLE_PERMISSIONS is the hardcoded fallback table used whenever a
tenant has no readable configuration. Each role's set is built on top of
the next lower role so that owner >= manager >= team_member >= client.
When adding an action, add it at the lowest role that should have it.

Never put task_management_complete_task in a role set: it is decided by
the task ownership context rule, which only runs when role defaults do
not already grant.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any

from fieldservice.application.dtos.feature_flag import (
    FeatureFlag,
    FeatureFlagMetadata,
    TenantFeatureFlags,
)
from fieldservice.domain.enums import FeatureCategory, RiskLevel, Role

_CLIENT_ACTIONS = frozenset(
    {
        "client_portal_view_projects",
        "client_portal_submit_review",
        "client_portal_view_invoices",
        "client_portal_download_files",
        "client_portal_send_messages",
        "client_portal_view_timeline",
    }
)

_TEAM_MEMBER_ACTIONS = _CLIENT_ACTIONS | {
    "task_management_create_task",
    "task_management_view_assigned_tasks",
    "task_management_complete_own_tasks",
    "task_management_suggest_members",
    "reporting_view_own_reports",
    "client_portal_view_access",
}

_MANAGER_ACTIONS = _TEAM_MEMBER_ACTIONS | {
    "task_management_assign_task",
    "task_management_edit_task",
    "task_management_view_team_tasks",
    "user_management_invite_member",
    "user_management_approve_member",
    "user_management_create_client",
    "user_management_edit_client",
    "financial_view_invoices_team",
    "financial_create_invoices",
    "reporting_view_team_reports",
    "reporting_export_data",
    "system_settings_manage_features",
    "client_portal_manage_access",
}

_OWNER_ACTIONS = _MANAGER_ACTIONS | {
    "task_management_delete_task",
    "task_management_view_all_tasks",
    "user_management_remove_member",
    "user_management_change_roles",
    "user_management_delete_client",
    "user_management_manage_team",
    "financial_view_invoices_all",
    "financial_edit_invoices",
    "financial_manage_billing",
    "financial_export_data",
    "reporting_view_all_reports",
    "reporting_create_custom_reports",
    "system_settings_manage_tenant",
    "system_settings_manage_integrations",
    "system_settings_view_settings",
    "experimental_access_beta_features",
}

DEFAULT_ROLE_PERMISSIONS: Mapping[Role, frozenset[str]] = MappingProxyType(
    {
        Role.OWNER: frozenset(_OWNER_ACTIONS),
        Role.MANAGER: frozenset(_MANAGER_ACTIONS),
        Role.TEAM_MEMBER: frozenset(_TEAM_MEMBER_ACTIONS),
        Role.CLIENT: _CLIENT_ACTIONS,
    }
)

# Privilege order, highest first; used by the superset check.
ROLE_HIERARCHY: tuple[Role, ...] = tuple(sorted(Role, key=lambda r: r.rank, reverse=True))


def role_default_permissions(role: Role) -> frozenset[str]:
    """Hardcoded default action set for role."""
    return DEFAULT_ROLE_PERMISSIONS.get(role, frozenset())


def find_superset_violations(
    table: Mapping[Role, frozenset[str]] = DEFAULT_ROLE_PERMISSIONS,
) -> dict[tuple[Role, Role], frozenset[str]]:
    """Return actions a lower role has that the role directly above it lacks.

    Keys are (higher, lower) pairs; an empty result means the table is ordered.
    """
    violations: dict[tuple[Role, Role], frozenset[str]] = {}
    for higher, lower in zip(ROLE_HIERARCHY, ROLE_HIERARCHY[1:]):
        missing = table.get(lower, frozenset()) - table.get(higher, frozenset())
        if missing:
            violations[(higher, lower)] = frozenset(missing)
    return violations


def _default_tenant_flags() -> TenantFeatureFlags:
    return TenantFeatureFlags(
        flags={},
        defaults_for_roles={
            role: sorted(actions) for role, actions in DEFAULT_ROLE_PERMISSIONS.items()
        },
    )


# Per-role defaults every new tenant is provisioned with.
DEFAULT_TENANT_FLAGS: TenantFeatureFlags = _default_tenant_flags()

_EXPERIMENTAL_FLAGS: dict[str, tuple[tuple[Role, ...], str, RiskLevel]] = {
    "experimental_ai_task_suggestions": (
        (Role.OWNER, Role.MANAGER),
        "AI-powered task suggestions based on patterns",
        RiskLevel.MEDIUM,
    ),
    "experimental_voice_commands": (
        (Role.OWNER, Role.MANAGER, Role.TEAM_MEMBER),
        "Voice command interface for hands-free operation",
        RiskLevel.LOW,
    ),
    "experimental_advanced_analytics": (
        (Role.OWNER, Role.MANAGER),
        "Advanced analytics and predictive insights",
        RiskLevel.LOW,
    ),
}


def create_initial_feature_flags(created_by: str, now: datetime) -> TenantFeatureFlags:
    """Flag document for a newly provisioned tenant.

    Role defaults plus the experimental features, all disabled.
    """
    flags = {
        key: FeatureFlag(
            enabled=False,
            targeted_roles=list(roles),
            enabled_at=now,
            enabled_by=created_by,
            metadata=FeatureFlagMetadata(
                description=description,
                category=FeatureCategory.EXPERIMENTAL,
                risk_level=risk,
            ),
        )
        for key, (roles, description, risk) in _EXPERIMENTAL_FLAGS.items()
    }
    return TenantFeatureFlags(
        flags=flags,
        defaults_for_roles=dict(DEFAULT_TENANT_FLAGS.defaults_for_roles),
    )


# Quick-setup bundles for the admin UI. restrict_to_roles narrows targeting.
FEATURE_FLAG_TEMPLATES: Mapping[str, Mapping[str, Any]] = MappingProxyType(
    {
        "beta_features": {
            "name": "Enable Beta Features",
            "description": "Give early access to new features being tested",
            "flags": (
                "experimental_ai_task_suggestions",
                "experimental_voice_commands",
                "experimental_advanced_analytics",
            ),
        },
        "restricted_financial": {
            "name": "Restricted Financial Access",
            "description": "Limit financial features to owners only",
            "flags": (
                "financial_view_invoices_all",
                "financial_create_invoices",
                "financial_manage_billing",
            ),
            "restrict_to_roles": (Role.OWNER,),
        },
        "client_enhanced": {
            "name": "Enhanced Client Portal",
            "description": "Enable additional client portal features",
            "flags": (
                "client_portal_upload_files",
                "client_portal_approve_quotes",
                "client_portal_schedule_meetings",
            ),
        },
    }
)
