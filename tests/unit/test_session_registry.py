"""Tests for SessionRegistry (reuse, tenant switch, role change, sign-out)."""

import pytest

from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.application.services.session_registry import SessionRegistry
from fieldservice.domain.enums import Role


@pytest.fixture
def registry(documents, clock) -> SessionRegistry:
    return SessionRegistry(lambda identity: FeatureFlagStore(identity, documents, clock=clock))


async def test_open_reuses_live_store(registry, make_identity) -> None:
    identity = make_identity("u1", Role.MANAGER)
    first = await registry.open(identity)
    second = await registry.open(identity)
    assert first is second
    assert len(registry) == 1
    assert registry.get("u1", "tenant-1") is first


async def test_role_change_replaces_store(registry, make_identity) -> None:
    old = await registry.open(make_identity("u1", Role.TEAM_MEMBER))
    new = await registry.open(make_identity("u1", Role.MANAGER))
    assert new is not old
    assert old.is_destroyed is True
    assert new.identity.role is Role.MANAGER


async def test_tenant_switch_closes_other_tenants(registry, make_identity) -> None:
    first = await registry.open(make_identity("u1", tenant_id="a"))
    other_user = await registry.open(make_identity("u2", tenant_id="a"))
    second = await registry.open(make_identity("u1", tenant_id="b"))

    assert first.is_destroyed is True
    assert other_user.is_destroyed is False
    assert registry.get("u1", "a") is None
    assert registry.get("u1", "b") is second


async def test_close_and_close_all(registry, make_identity) -> None:
    store = await registry.open(make_identity("u1"))
    other = await registry.open(make_identity("u2"))

    assert await registry.close("u1", "tenant-1") is True
    assert await registry.close("u1", "tenant-1") is False
    assert store.is_destroyed is True

    await registry.close_all()
    assert other.is_destroyed is True
    assert len(registry) == 0


async def test_destroyed_store_is_reopened(registry, make_identity) -> None:
    identity = make_identity("u1")
    store = await registry.open(identity)
    store.destroy()
    reopened = await registry.open(identity)
    assert reopened is not store
    assert reopened.is_destroyed is False


async def test_store_with_failed_listeners_is_reopened(registry, documents, make_identity) -> None:
    tenant_path = "tenantFeatureFlags/tenant-1"
    await documents.set(
        tenant_path,
        {"flags": {"experimental_voice_commands": {"enabled": True, "targetedRoles": ["team_member"]}}},
    )
    identity = make_identity("u1")
    store = await registry.open(identity)
    await documents.fail(tenant_path, ConnectionError("HTTP 503"))
    assert store.degraded is True

    reopened = await registry.open(identity)

    assert reopened is not store
    assert store.is_destroyed is True
    assert reopened.degraded is False
    assert reopened.can("experimental_voice_commands") is True
    assert documents.watcher_count(tenant_path) == 1

