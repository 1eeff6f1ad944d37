"""Tests for the decision cache and its key builder."""

import pytest

from fieldservice.infrastructure.cache.keys import permission_decision_key, serialize_context
from fieldservice.infrastructure.cache.permission_cache import PermissionCache


def test_entry_expires_exactly_at_ttl(clock) -> None:
    cache: PermissionCache[bool] = PermissionCache(ttl=10, clock=clock)
    cache.set("k", True)
    clock.advance(seconds=9)
    assert cache.get("k") is True
    clock.advance(seconds=1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_zero_ttl_disables_caching(clock) -> None:
    cache: PermissionCache[bool] = PermissionCache(ttl=0, clock=clock)
    cache.set("k", True)
    assert cache.get("k") is None


def test_clear_drops_everything(clock) -> None:
    cache: PermissionCache[str] = PermissionCache(ttl=60, clock=clock)
    cache.set("a", "1")
    cache.set("b", "2")
    cache.clear()
    assert len(cache) == 0


def test_context_serialization_is_order_independent() -> None:
    assert serialize_context({"b": 1, "a": 2}) == serialize_context({"a": 2, "b": 1})
    assert serialize_context(None) == ""
    assert serialize_context({}) == "{}"


def test_decision_key_layout() -> None:
    key = permission_decision_key("u1", "t1", "act", {"x": 1})
    assert key == 'permission:u1:t1:act:{"x":1}'
    assert permission_decision_key("u1", "t1", "act") != permission_decision_key(
        "u1", "t1", "act", {}
    )


@pytest.mark.parametrize(("user_id", "tenant_id"), [("u:1", "t1"), ("u1", "t:1")])
def test_decision_key_rejects_separator_in_identity(user_id, tenant_id) -> None:
    with pytest.raises(ValueError):
        permission_decision_key(user_id, tenant_id, "act")
