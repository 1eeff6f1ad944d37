"""Tests for PermissionEvaluator (layer precedence, caching, failure handling)."""

from datetime import timedelta

import pytest

from fieldservice.application.dtos.feature_flag import (
    FeatureFlag,
    TenantFeatureFlags,
    UserFlagOverride,
)
from fieldservice.application.services.permission_evaluator import (
    REASON_EXCLUDED,
    REASON_EXPIRED,
    REASON_FAILED,
    REASON_NO_RULE,
    PermissionEvaluator,
)
from fieldservice.application.services.role_defaults import (
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_HIERARCHY,
)
from fieldservice.domain.enums import PermissionSource, Role


def _tenant(**flags: FeatureFlag) -> TenantFeatureFlags:
    return TenantFeatureFlags(flags=flags)


def test_user_override_grants_over_disabled_tenant_flag(make_identity, clock) -> None:
    """An enabled user override wins even when the tenant flag denies the role."""
    identity = make_identity(role=Role.TEAM_MEMBER)
    tenant = _tenant(
        financial_view_invoices_all=FeatureFlag(enabled=False, targeted_roles=[Role.TEAM_MEMBER])
    )
    evaluator = PermissionEvaluator(
        identity,
        tenant,
        {"financial_view_invoices_all": UserFlagOverride(enabled=True)},
        clock=clock,
    )
    result = evaluator.evaluate("financial_view_invoices_all")
    assert result.allowed is True
    assert result.source is PermissionSource.USER_OVERRIDE


def test_user_override_denies_role_default(make_identity, clock) -> None:
    """A disabled user override revokes an action the role grants by default."""
    identity = make_identity(role=Role.OWNER)
    evaluator = PermissionEvaluator(
        identity,
        None,
        {"financial_manage_billing": UserFlagOverride(enabled=False)},
        clock=clock,
    )
    assert evaluator.can("financial_manage_billing") is False
    assert evaluator.evaluate("financial_manage_billing").source is PermissionSource.USER_OVERRIDE


def test_excluded_user_denied_even_when_targeted(make_identity, clock) -> None:
    """Exclusion beats user and role targeting."""
    identity = make_identity("u-x", role=Role.MANAGER)
    tenant = _tenant(
        experimental_voice_commands=FeatureFlag(
            enabled=True,
            targeted_roles=[Role.MANAGER],
            targeted_users=["u-x"],
            excluded_users=["u-x"],
        )
    )
    result = PermissionEvaluator(identity, tenant, clock=clock).evaluate(
        "experimental_voice_commands"
    )
    assert result.allowed is False
    assert result.source is PermissionSource.TENANT_FLAG
    assert result.reason == REASON_EXCLUDED


def test_targeted_user_gets_flag_state_without_role_targeting(make_identity, clock) -> None:
    """A directly targeted user gets the flag even if their role is not targeted."""
    identity = make_identity("u-t", role=Role.CLIENT)
    tenant = _tenant(
        experimental_advanced_analytics=FeatureFlag(
            enabled=True, targeted_roles=[Role.OWNER], targeted_users=["u-t"]
        )
    )
    result = PermissionEvaluator(identity, tenant, clock=clock).evaluate(
        "experimental_advanced_analytics"
    )
    assert result.allowed is True
    assert result.source is PermissionSource.TENANT_FLAG


def test_role_targeted_flag_denies_even_if_role_default_grants(make_identity, clock) -> None:
    """A disabled tenant flag targeting the role wins over the role default."""
    identity = make_identity(role=Role.MANAGER)
    tenant = _tenant(
        financial_create_invoices=FeatureFlag(enabled=False, targeted_roles=[Role.MANAGER])
    )
    result = PermissionEvaluator(identity, tenant, clock=clock).evaluate(
        "financial_create_invoices"
    )
    assert result.allowed is False
    assert result.source is PermissionSource.TENANT_FLAG


def test_expired_flag_denies_targeted_role(make_identity, clock) -> None:
    identity = make_identity(role=Role.OWNER)
    tenant = _tenant(
        experimental_ai_task_suggestions=FeatureFlag(
            enabled=True,
            targeted_roles=[Role.OWNER],
            expires_at=clock() - timedelta(seconds=1),
        )
    )
    result = PermissionEvaluator(identity, tenant, clock=clock).evaluate(
        "experimental_ai_task_suggestions"
    )
    assert result.allowed is False
    assert result.reason == REASON_EXPIRED


def test_flag_not_targeting_role_falls_through_to_role_default(make_identity, clock) -> None:
    """An untargeted role ignores the tenant flag and uses role defaults."""
    identity = make_identity(role=Role.CLIENT)
    tenant = _tenant(
        client_portal_view_projects=FeatureFlag(enabled=False, targeted_roles=[Role.OWNER])
    )
    result = PermissionEvaluator(identity, tenant, clock=clock).evaluate(
        "client_portal_view_projects"
    )
    assert result.allowed is True
    assert result.source is PermissionSource.ROLE_DEFAULT


def test_tenant_role_defaults_replace_hardcoded_table(make_identity, clock) -> None:
    identity = make_identity(role=Role.CLIENT)
    tenant = TenantFeatureFlags(
        defaults_for_roles={Role.CLIENT: ["financial_view_invoices_all"]}
    )
    evaluator = PermissionEvaluator(identity, tenant, clock=clock)
    assert evaluator.can("financial_view_invoices_all") is True
    assert evaluator.can("client_portal_view_projects") is False


def test_empty_tenant_role_defaults_grant_nothing(make_identity, clock) -> None:
    """An explicitly empty list is configuration, not absence."""
    identity = make_identity(role=Role.OWNER)
    tenant = TenantFeatureFlags(defaults_for_roles={Role.OWNER: []})
    assert PermissionEvaluator(identity, tenant, clock=clock).can("financial_manage_billing") is False


def test_missing_role_in_tenant_defaults_uses_hardcoded(make_identity, clock) -> None:
    identity = make_identity(role=Role.MANAGER)
    tenant = TenantFeatureFlags(defaults_for_roles={Role.OWNER: ["x"]})
    assert PermissionEvaluator(identity, tenant, clock=clock).can("financial_create_invoices") is True


def test_task_owner_context_rule(make_identity, clock) -> None:
    """Only the task owner may complete a task, regardless of role."""
    owner = PermissionEvaluator(make_identity("u1", role=Role.TEAM_MEMBER), clock=clock)
    other = PermissionEvaluator(make_identity("u2", role=Role.OWNER), clock=clock)
    context = {"task_owner_id": "u1"}

    allowed = owner.evaluate("task_management_complete_task", context)
    assert allowed.allowed is True
    assert allowed.source is PermissionSource.CONTEXT_RULE

    denied = other.evaluate("task_management_complete_task", context)
    assert denied.allowed is False
    assert denied.source is PermissionSource.CONTEXT_RULE


def test_context_rule_without_context_is_default_deny(make_identity, clock) -> None:
    evaluator = PermissionEvaluator(make_identity("u1"), clock=clock)
    result = evaluator.evaluate("task_management_complete_task")
    assert result.allowed is False
    assert result.source is PermissionSource.NONE
    assert result.reason == REASON_NO_RULE


def test_empty_context_still_consults_rules(make_identity, clock) -> None:
    """An empty mapping is a context; the rule abstains so the result is default deny."""
    evaluator = PermissionEvaluator(make_identity("u1"), clock=clock)
    result = evaluator.evaluate("task_management_complete_task", {})
    assert result.allowed is False
    assert result.source is PermissionSource.NONE


def test_team_reports_rule_for_team_member(make_identity, clock) -> None:
    evaluator = PermissionEvaluator(make_identity("lead", role=Role.TEAM_MEMBER), clock=clock)
    assert evaluator.can(
        "reporting_view_team_reports", {"teamId": "t9", "teamManagerId": "lead"}
    ) is True
    assert evaluator.can(
        "reporting_view_team_reports", {"teamId": "t9", "teamManagerId": "someone"}
    ) is False


def test_unknown_action_is_denied(make_identity, clock) -> None:
    result = PermissionEvaluator(make_identity(role=Role.OWNER), clock=clock).evaluate(
        "does_not_exist"
    )
    assert result.allowed is False
    assert result.source is PermissionSource.NONE


def test_decisions_are_cached_until_cleared(make_identity, clock) -> None:
    """Flag edits are invisible until clear_cache() or TTL expiry."""
    tenant = _tenant(
        experimental_voice_commands=FeatureFlag(enabled=True, targeted_roles=[Role.TEAM_MEMBER])
    )
    evaluator = PermissionEvaluator(make_identity(), tenant, cache_ttl=300, clock=clock)
    assert evaluator.can("experimental_voice_commands") is True

    tenant.flags["experimental_voice_commands"].enabled = False
    assert evaluator.can("experimental_voice_commands") is True

    evaluator.clear_cache()
    assert evaluator.can("experimental_voice_commands") is False


def test_cache_expires_after_ttl(make_identity, clock) -> None:
    tenant = _tenant(
        experimental_voice_commands=FeatureFlag(enabled=True, targeted_roles=[Role.TEAM_MEMBER])
    )
    evaluator = PermissionEvaluator(make_identity(), tenant, cache_ttl=300, clock=clock)
    assert evaluator.can("experimental_voice_commands") is True
    tenant.flags["experimental_voice_commands"].enabled = False

    clock.advance(seconds=299)
    assert evaluator.can("experimental_voice_commands") is True
    clock.advance(seconds=1)
    assert evaluator.can("experimental_voice_commands") is False


def test_cached_result_keeps_provenance(make_identity, clock) -> None:
    evaluator = PermissionEvaluator(make_identity(role=Role.CLIENT), clock=clock)
    first = evaluator.evaluate("client_portal_view_projects")
    second = evaluator.evaluate("client_portal_view_projects")
    assert first == second
    assert second.source is PermissionSource.ROLE_DEFAULT


def test_cache_distinguishes_contexts(make_identity, clock) -> None:
    evaluator = PermissionEvaluator(make_identity("u1"), clock=clock)
    assert evaluator.can("task_management_complete_task", {"task_owner_id": "u1"}) is True
    assert evaluator.can("task_management_complete_task", {"task_owner_id": "u2"}) is False


def test_internal_failure_resolves_to_deny(make_identity, clock, monkeypatch) -> None:
    evaluator = PermissionEvaluator(make_identity(role=Role.OWNER), clock=clock)

    def _boom(action, context):
        raise RuntimeError("corrupt flag data")

    monkeypatch.setattr(evaluator, "_resolve", _boom)
    result = evaluator.evaluate("financial_manage_billing")
    assert result.allowed is False
    assert result.source is PermissionSource.NONE
    assert result.reason == REASON_FAILED


def test_get_all_permissions_covers_every_layer(make_identity, clock) -> None:
    identity = make_identity(role=Role.CLIENT)
    tenant = _tenant(
        experimental_voice_commands=FeatureFlag(enabled=True, targeted_roles=[Role.CLIENT])
    )
    evaluator = PermissionEvaluator(
        identity,
        tenant,
        {"client_portal_send_messages": UserFlagOverride(enabled=False)},
        clock=clock,
    )
    permissions = evaluator.get_all_permissions()

    assert permissions["experimental_voice_commands"] is True
    assert permissions["client_portal_send_messages"] is False
    assert permissions["client_portal_view_projects"] is True
    assert list(permissions) == sorted(permissions)


def test_can_multiple(make_identity, clock) -> None:
    evaluator = PermissionEvaluator(make_identity(role=Role.MANAGER), clock=clock)
    assert evaluator.can_multiple(
        ["financial_create_invoices", "financial_manage_billing"]
    ) == {"financial_create_invoices": True, "financial_manage_billing": False}


@pytest.mark.parametrize("action", sorted(DEFAULT_ROLE_PERMISSIONS[Role.OWNER]))
def test_higher_roles_allow_whatever_lower_roles_allow(make_identity, clock, action) -> None:
    """With no tenant data, each role allows a superset of the role below it."""
    decisions = [
        PermissionEvaluator(make_identity(role=role), clock=clock).can(action)
        for role in ROLE_HIERARCHY
    ]
    for higher, lower in zip(decisions, decisions[1:]):
        assert higher or not lower


def test_evaluator_exposes_identity(make_identity, clock) -> None:
    identity = make_identity(role=Role.MANAGER)
    evaluator = PermissionEvaluator(identity, clock=clock)
    assert evaluator.identity == identity
    assert evaluator.role is Role.MANAGER
    assert evaluator.has_tenant_flags is False
