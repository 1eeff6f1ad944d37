"""Resource-scoped context rules.

A closed set of (action, predicate) pairs consulted after role defaults
fail to grant. A predicate returns True/False for a definite answer or
None to abstain; abstaining falls through to default deny and is not the
same as an explicit False.

Context keys are accepted in snake_case or in the camelCase used by
browser clients (task_owner_id / taskOwnerId).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

ContextRule = Callable[[str, Mapping[str, Any]], bool | None]


def _context_str(context: Mapping[str, Any], *keys: str) -> str | None:
    """First non-empty string value among keys, else None."""
    for key in keys:
        value = context.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def task_owner_can_complete(user_id: str, context: Mapping[str, Any]) -> bool | None:
    """Only the task's owner may complete it."""
    owner_id = _context_str(context, "task_owner_id", "taskOwnerId")
    if owner_id is None:
        return None
    return owner_id == user_id


def team_manager_can_view_reports(user_id: str, context: Mapping[str, Any]) -> bool | None:
    """A manager may view reports only for a team they manage."""
    if _context_str(context, "team_id", "teamId") is None:
        return None
    manager_id = _context_str(context, "team_manager_id", "teamManagerId")
    if manager_id is None:
        return None
    return manager_id == user_id


CONTEXT_RULES: Mapping[str, ContextRule] = MappingProxyType(
    {
        "task_management_complete_task": task_owner_can_complete,
        "reporting_view_team_reports": team_manager_can_view_reports,
    }
)


def evaluate_context_rules(action: str, user_id: str, context: Any) -> bool | None:
    """Run the rule registered for action against context.

    Returns None (abstain) when no rule exists or context is not a mapping.
    """
    rule = CONTEXT_RULES.get(action)
    if rule is None or not isinstance(context, Mapping):
        return None
    return rule(user_id, context)
