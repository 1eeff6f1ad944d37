"""Permission evaluator: resolves action queries for one (user, tenant) session.

Strict precedence, first matching layer wins:

1. user override   - explicit per-user flag, authoritative
2. tenant flag     - exclusion, then user targeting, then role targeting (+ expiry)
3. role default    - tenant-configured set for the role, else hardcoded table
4. context rule    - resource-scoped predicate, only when context is given
5. default deny

Decisions are cached per evaluator for cache_ttl seconds. Flag changes are
not visible until the entry expires or clear_cache() runs. The full result
(including provenance) is cached so replays report the true source.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from fieldservice.application.dtos.feature_flag import (
    PermissionCheckResult,
    TenantFeatureFlags,
    UserFlagOverride,
)
from fieldservice.application.services.context_rules import evaluate_context_rules
from fieldservice.application.services.role_defaults import role_default_permissions
from fieldservice.core.constants import DEFAULT_PERMISSION_CACHE_TTL
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.domain.enums import PermissionSource, Role
from fieldservice.infrastructure.cache.keys import permission_decision_key
from fieldservice.infrastructure.cache.permission_cache import PermissionCache
from fieldservice.shared.telemetry.logging import get_logger
from fieldservice.shared.utils.datetime import Clock, utc_now

logger = get_logger(__name__)

REASON_EXCLUDED = "User explicitly excluded"
REASON_EXPIRED = "Flag expired"
REASON_NO_RULE = "No matching permission rule"
REASON_FAILED = "Permission evaluation failed"


class PermissionEvaluator:
    """Decision engine over one immutable snapshot of tenant and user flags.

    can(), evaluate(), can_multiple() and get_all_permissions() never raise;
    any internal failure resolves to deny. Build a new evaluator when flags
    change instead of mutating this one.
    """

    def __init__(
        self,
        identity: SessionIdentity,
        tenant_flags: TenantFeatureFlags | None = None,
        user_flags: Mapping[str, UserFlagOverride] | None = None,
        *,
        cache_ttl: int = DEFAULT_PERMISSION_CACHE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize evaluator.

        Args:
            identity: Session user, tenant and role.
            tenant_flags: Tenant flag document; None falls back to hardcoded role defaults.
            user_flags: Per-user overrides keyed by action.
            cache_ttl: Decision cache TTL in seconds.
            clock: Returns current UTC time (flag expiry and cache expiry).
        """
        self._identity = identity
        self._tenant_flags = tenant_flags
        self._user_flags: Mapping[str, UserFlagOverride] = dict(user_flags or {})
        self._clock = clock
        self._cache: PermissionCache[PermissionCheckResult] = PermissionCache(
            ttl=cache_ttl, clock=clock
        )

    @property
    def identity(self) -> SessionIdentity:
        return self._identity

    @property
    def role(self) -> Role:
        return self._identity.role

    @property
    def has_tenant_flags(self) -> bool:
        """False when running purely on the hardcoded role table."""
        return self._tenant_flags is not None

    def can(self, action: str, context: Any = None) -> bool:
        """Return True if the session may perform action (optionally against context)."""
        return self.evaluate(action, context).allowed

    def can_multiple(self, actions: Iterable[str]) -> dict[str, bool]:
        """Evaluate each action independently (no context)."""
        return {action: self.can(action) for action in actions}

    def evaluate(self, action: str, context: Any = None) -> PermissionCheckResult:
        """Same decision as can() with the deciding layer and reason."""
        try:
            key = permission_decision_key(
                self._identity.user_id, self._identity.tenant_id, action, context
            )
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            result = self._resolve(action, context)
            self._cache.set(key, result)
            return result
        except Exception:
            logger.exception(
                "Permission evaluation failed for %s (user %s, tenant %s); denying",
                action,
                self._identity.user_id,
                self._identity.tenant_id,
            )
            return PermissionCheckResult(False, PermissionSource.NONE, REASON_FAILED)

    def get_all_permissions(self) -> dict[str, bool]:
        """Evaluate every known action: tenant flags, user overrides and role defaults."""
        actions: set[str] = set(self._user_flags)
        if self._tenant_flags is not None:
            actions.update(self._tenant_flags.flags)
        try:
            actions.update(self._role_defaults())
        except Exception:
            logger.exception("Could not read role defaults for %s", self.role.value)
        return {action: self.can(action) for action in sorted(actions)}

    def clear_cache(self) -> None:
        """Invalidate all cached decisions for this evaluator."""
        self._cache.clear()

    def _role_defaults(self) -> frozenset[str]:
        if self._tenant_flags is not None:
            configured = self._tenant_flags.role_defaults(self.role)
            if configured is not None:
                return configured
        return role_default_permissions(self.role)

    def _resolve(self, action: str, context: Any) -> PermissionCheckResult:
        override = self._user_flags.get(action)
        if override is not None:
            return PermissionCheckResult(override.enabled, PermissionSource.USER_OVERRIDE)

        flag = self._tenant_flags.flags.get(action) if self._tenant_flags else None
        if flag is not None:
            user_id = self._identity.user_id
            if user_id in flag.excluded_users:
                return PermissionCheckResult(
                    False, PermissionSource.TENANT_FLAG, REASON_EXCLUDED
                )
            if user_id in flag.targeted_users:
                return PermissionCheckResult(flag.enabled, PermissionSource.TENANT_FLAG)
            if self.role in flag.targeted_roles:
                if flag.is_expired(self._clock()):
                    return PermissionCheckResult(
                        False, PermissionSource.TENANT_FLAG, REASON_EXPIRED
                    )
                return PermissionCheckResult(flag.enabled, PermissionSource.TENANT_FLAG)

        if action in self._role_defaults():
            return PermissionCheckResult(True, PermissionSource.ROLE_DEFAULT)

        if context is not None:
            ruled = evaluate_context_rules(action, self._identity.user_id, context)
            if ruled is not None:
                return PermissionCheckResult(ruled, PermissionSource.CONTEXT_RULE)

        return PermissionCheckResult(False, PermissionSource.NONE, REASON_NO_RULE)
