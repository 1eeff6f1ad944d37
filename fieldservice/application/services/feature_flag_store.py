"""Feature flag store: live tenant/user flags feeding one permission evaluator.

One store per authenticated (user, tenant) session. It subscribes to the
tenant flag document and the user's membership document, and rebuilds the
evaluator from the latest snapshot of each side on every callback. The
evaluator reference is swapped in one assignment, so a check never sees
half-updated state.

When live data is unavailable the store serves, in order:
a fresh offline snapshot (at most 24h old), then the hardcoded role defaults.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

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
from fieldservice.application.interfaces.services import (
    IAuditLogWriter,
    IDocumentStore,
    IOfflineSnapshotStore,
    OfflineSnapshot,
    SnapshotHandler,
    Subscription,
)
from fieldservice.application.services.context_rules import evaluate_context_rules
from fieldservice.application.services.permission_evaluator import PermissionEvaluator
from fieldservice.application.services.role_defaults import FEATURE_FLAG_TEMPLATES
from fieldservice.core.collections import tenant_feature_flags_path, user_tenant_path
from fieldservice.core.constants import (
    DEFAULT_PERMISSION_CACHE_TTL,
    MANAGE_FEATURES_ACTION,
    OFFLINE_SNAPSHOT_MAX_AGE,
)
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.domain.enums import FlagAuditAction, PermissionSource, Role
from fieldservice.domain.exceptions import (
    AuthorizationException,
    NoActiveSessionException,
    ResourceNotFoundException,
    ValidationException,
)
from fieldservice.shared.telemetry.logging import get_logger
from fieldservice.shared.utils.datetime import Clock, utc_now

logger = get_logger(__name__)

PermissionsListener = Callable[[Mapping[str, bool]], None]

REASON_OFFLINE = "Served from offline snapshot"


class FeatureFlagStore:
    """Live view of tenant and user flags for one session.

    Lifecycle is explicit: construct, await start(), call destroy() on
    sign-out or tenant switch. Callbacks that arrive after destroy() are
    ignored.
    """

    def __init__(
        self,
        identity: SessionIdentity,
        document_store: IDocumentStore,
        *,
        snapshot_store: IOfflineSnapshotStore | None = None,
        audit_writer: IAuditLogWriter | None = None,
        cache_ttl: int = DEFAULT_PERMISSION_CACHE_TTL,
        offline_max_age: timedelta = OFFLINE_SNAPSHOT_MAX_AGE,
        clock: Clock = utc_now,
        user_agent: str | None = None,
    ) -> None:
        self._identity = identity
        self._documents = document_store
        self._snapshots = snapshot_store
        self._audit = audit_writer
        self._cache_ttl = cache_ttl
        self._offline_max_age = offline_max_age
        self._clock = clock
        self._user_agent = user_agent

        self._tenant_flags: TenantFeatureFlags | None = None
        self._user_flags: dict[str, UserFlagOverride] = {}
        self._tenant_loaded = False
        self._evaluator: PermissionEvaluator | None = None
        self._fallback = PermissionEvaluator(
            identity, None, None, cache_ttl=cache_ttl, clock=clock
        )
        self._offline: OfflineSnapshot | None = None

        self._flags: dict[str, bool] = {}
        self._listeners: list[PermissionsListener] = []
        self._subscriptions: list[Subscription] = []
        self._tenant_ready = asyncio.Event()
        self._user_ready = asyncio.Event()

        self._started = False
        self._destroyed = False
        self.loading = False
        self.error: Exception | None = None
        self.last_sync: datetime | None = None
        self.degraded = True

    # ---- State ----

    @property
    def identity(self) -> SessionIdentity:
        return self._identity

    @property
    def flags(self) -> Mapping[str, bool]:
        """Read-only flat permission map from the last refresh."""
        return MappingProxyType(dict(self._flags))

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def evaluator(self) -> PermissionEvaluator | None:
        """Evaluator built from live data, or None while degraded."""
        return self._evaluator

    # ---- Lifecycle ----

    async def start(self) -> None:
        """Load the offline snapshot, subscribe both documents and wait for first delivery.

        Never raises on storage failures; those leave the store degraded.
        """
        if self._destroyed:
            raise NoActiveSessionException()
        if self._started:
            return
        self._started = True
        self.loading = True
        try:
            await self._load_offline()
            self._publish(self._degraded_permissions())

            self._subscribe(
                tenant_feature_flags_path(self._identity.tenant_id),
                self._on_tenant_snapshot,
            )
            self._subscribe(
                user_tenant_path(self._identity.user_id, self._identity.tenant_id),
                self._on_user_snapshot,
            )
            await asyncio.gather(self._tenant_ready.wait(), self._user_ready.wait())
        finally:
            self.loading = False

    def destroy(self) -> None:
        """Revoke both listeners and drop all evaluation state. Idempotent."""
        if self._destroyed:
            return
        self._destroyed = True
        self._unsubscribe_all()
        self._listeners.clear()
        if self._evaluator is not None:
            self._evaluator.clear_cache()
            self._evaluator = None
        self._fallback.clear_cache()
        self._offline = None
        self._flags = {}
        # Unblock a start() still waiting on first delivery.
        self._tenant_ready.set()
        self._user_ready.set()
        logger.debug(
            "Feature flag store destroyed (user %s, tenant %s)",
            self._identity.user_id,
            self._identity.tenant_id,
        )

    def subscribe(self, listener: PermissionsListener) -> Callable[[], None]:
        """Call listener with the new permission map after every refresh.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- Queries ----

    def can(self, action: str, context: Any = None) -> bool:
        """Return True if the session may perform action. Never raises."""
        return self.evaluate(action, context).allowed

    def evaluate(self, action: str, context: Any = None) -> PermissionCheckResult:
        """Decision with provenance from the live, offline or fallback source."""
        if self._destroyed:
            return PermissionCheckResult(
                False, PermissionSource.NONE, "Session has ended"
            )
        if self._evaluator is not None:
            return self._evaluator.evaluate(action, context)
        offline = self._fresh_offline()
        if offline is not None:
            if action in offline.permissions:
                return PermissionCheckResult(
                    offline.permissions[action], PermissionSource.NONE, REASON_OFFLINE
                )
            # Context-scoped actions never appear in the flat map.
            if context is not None:
                ruled = evaluate_context_rules(action, self._identity.user_id, context)
                if ruled is not None:
                    return PermissionCheckResult(ruled, PermissionSource.CONTEXT_RULE)
            return PermissionCheckResult(False, PermissionSource.NONE, REASON_OFFLINE)
        return self._fallback.evaluate(action, context)

    def can_multiple(self, actions: Iterable[str]) -> dict[str, bool]:
        return {action: self.can(action) for action in actions}

    def get_all_permissions(self) -> dict[str, bool]:
        if self._destroyed:
            return {}
        if self._evaluator is not None:
            return self._evaluator.get_all_permissions()
        return self._degraded_permissions()

    def is_enabled(self, flag_key: str) -> bool:
        """Lookup in the flat map from the last refresh (False when unknown)."""
        return self._flags.get(flag_key, False)

    def clear_cache(self) -> None:
        """Invalidate cached decisions of the live and fallback evaluators."""
        if self._evaluator is not None:
            self._evaluator.clear_cache()
        self._fallback.clear_cache()

    # ---- Mutations ----

    async def toggle_flag(
        self,
        action_id: str,
        enabled: bool,
        metadata: Mapping[str, Any] | None = None,
        *,
        reason: str | None = None,
        targeted_roles: Iterable[Role] | None = None,
    ) -> None:
        """Set a tenant flag's enabled state and append an audit record.

        Requires system_settings_manage_features. The flag is merged into the
        tenant document, so targeting lists not written here are preserved.
        The audit write is best-effort and never undoes the flag write.

        Raises:
            NoActiveSessionException: Store was destroyed.
            AuthorizationException: Caller lacks system_settings_manage_features.
            ValidationException: Empty action id or malformed metadata.
        """
        if self._destroyed:
            raise NoActiveSessionException()
        if not action_id or not action_id.strip():
            raise ValidationException("Action identifier is required", field="action_id")
        if not self.can(MANAGE_FEATURES_ACTION):
            raise AuthorizationException(
                action=MANAGE_FEATURES_ACTION,
                message="Insufficient permissions to manage features",
            )
        flag_metadata = self._validate_metadata(metadata)

        now = self._clock()
        previous = self._tenant_flags.flags.get(action_id) if self._tenant_flags else None
        if targeted_roles is not None:
            roles = list(targeted_roles)
        elif previous is not None and previous.targeted_roles:
            roles = list(previous.targeted_roles)
        else:
            roles = list(Role)

        update: dict[str, Any] = {
            "enabled": enabled,
            "enabledAt": now,
            "enabledBy": self._identity.user_id,
            "targetedRoles": [role.value for role in roles],
        }
        if flag_metadata is not None:
            update["metadata"] = flag_metadata.model_dump(by_alias=True, mode="json")

        try:
            await self._documents.set_merge(
                tenant_feature_flags_path(self._identity.tenant_id),
                {"flags": {action_id: update}},
            )
        except Exception:
            logger.exception(
                "Failed to toggle feature flag %s (tenant %s)",
                action_id,
                self._identity.tenant_id,
            )
            raise

        new_flag = (previous or FeatureFlag()).model_copy(
            update={
                "enabled": enabled,
                "enabled_at": now,
                "enabled_by": self._identity.user_id,
                "targeted_roles": roles,
                "metadata": flag_metadata or (previous.metadata if previous else None),
            }
        )
        if previous is not None and previous.enabled == enabled:
            audit_action = FlagAuditAction.MODIFIED
        else:
            audit_action = FlagAuditAction.ENABLED if enabled else FlagAuditAction.DISABLED
        logger.info(
            "Feature flag %s %s by %s (tenant %s)",
            action_id,
            audit_action.value,
            self._identity.user_id,
            self._identity.tenant_id,
        )
        if self._audit is not None:
            await self._audit.record(
                self._identity.tenant_id,
                FeatureFlagAuditLog(
                    flag_key=action_id,
                    action=audit_action,
                    performed_by=self._identity.user_id,
                    performed_at=now,
                    previous_state=(
                        previous.model_dump(by_alias=True, mode="json") if previous else None
                    ),
                    new_state=new_flag.model_dump(by_alias=True, mode="json"),
                    context=AuditContext(user_agent=self._user_agent, reason=reason),
                ),
            )

    async def apply_template(
        self, template_key: str, enabled: bool = True, *, reason: str | None = None
    ) -> list[str]:
        """Toggle every flag of a FEATURE_FLAG_TEMPLATES entry; return the flag keys."""
        template = FEATURE_FLAG_TEMPLATES.get(template_key)
        if template is None:
            raise ResourceNotFoundException("feature_flag_template", template_key)
        flag_keys = list(template["flags"])
        for flag_key in flag_keys:
            await self.toggle_flag(
                flag_key,
                enabled,
                reason=reason or f"Applied template {template_key}",
                targeted_roles=template.get("restrict_to_roles"),
            )
        return flag_keys

    # ---- Listener callbacks ----

    async def _on_tenant_snapshot(self, data: dict[str, Any] | None) -> None:
        if self._destroyed:
            logger.debug("Ignoring tenant flag snapshot after destroy")
            return
        if data is None:
            logger.warning(
                "No feature flag document for tenant %s; using role defaults",
                self._identity.tenant_id,
            )
            self._tenant_flags = None
            self._offline = None
        else:
            try:
                self._tenant_flags = TenantFeatureFlags.model_validate(data)
            except ValidationError as exc:
                await self._fail_over(exc)
                return
        self._tenant_loaded = True
        self._rebuild()
        await self._save_offline()
        self._tenant_ready.set()

    async def _on_user_snapshot(self, data: dict[str, Any] | None) -> None:
        if self._destroyed:
            logger.debug("Ignoring user flag snapshot after destroy")
            return
        if data is None:
            self._user_flags = {}
        else:
            try:
                self._user_flags = dict(UserTenantRelation.model_validate(data).feature_flags)
            except ValidationError as exc:
                await self._fail_over(exc)
                return
        if self._tenant_loaded:
            self._rebuild()
            await self._save_offline()
        self._user_ready.set()

    async def _on_listener_error(self, exc: Exception) -> None:
        if self._destroyed:
            return
        await self._fail_over(exc)

    # ---- Internals ----

    def _subscribe(self, path: str, on_snapshot: SnapshotHandler) -> None:
        try:
            subscription = self._documents.subscribe(
                path, on_snapshot, self._on_listener_error
            )
        except Exception as exc:
            logger.exception("Could not subscribe to %s", path)
            self._tenant_ready.set()
            self._user_ready.set()
            self._enter_degraded(exc)
            return
        self._subscriptions.append(subscription)

    def _rebuild(self) -> None:
        self._evaluator = PermissionEvaluator(
            self._identity,
            self._tenant_flags,
            self._user_flags,
            cache_ttl=self._cache_ttl,
            clock=self._clock,
        )
        self.degraded = False
        self.error = None
        self.last_sync = self._clock()
        self._publish(self._evaluator.get_all_permissions())

    async def _fail_over(self, exc: Exception) -> None:
        logger.warning(
            "Feature flag listener failed for tenant %s (%s); using %s",
            self._identity.tenant_id,
            exc,
            "offline snapshot" if self._fresh_offline() else "role defaults",
        )
        self._enter_degraded(exc)
        self._tenant_ready.set()
        self._user_ready.set()

    def _enter_degraded(self, exc: Exception) -> None:
        self._unsubscribe_all()
        self._evaluator = None
        self.error = exc
        self.degraded = True
        self._publish(self._degraded_permissions())

    def _degraded_permissions(self) -> dict[str, bool]:
        offline = self._fresh_offline()
        if offline is not None:
            return dict(offline.permissions)
        return self._fallback.get_all_permissions()

    def _fresh_offline(self) -> OfflineSnapshot | None:
        if self._offline is None:
            return None
        if self._clock() - self._offline.saved_at > self._offline_max_age:
            logger.info("Offline permission snapshot went stale; discarding")
            self._offline = None
        return self._offline

    async def _load_offline(self) -> None:
        if self._snapshots is None:
            return
        try:
            self._offline = await self._snapshots.load(self._identity, self._clock())
        except Exception:
            logger.exception("Could not load offline permission snapshot")
            self._offline = None
        if self._offline is not None:
            self.last_sync = self._offline.saved_at

    async def _save_offline(self) -> None:
        """Keep the live map as last-known-good, in memory and on disk."""
        # Role defaults are always available; only tenant-backed maps are kept.
        if self._tenant_flags is None or self._evaluator is None:
            return
        self._offline = OfflineSnapshot(permissions=dict(self._flags), saved_at=self._clock())
        if self._snapshots is None:
            return
        try:
            await self._snapshots.save(
                self._identity, self._offline.permissions, self._offline.saved_at
            )
        except Exception:
            logger.exception("Could not save offline permission snapshot")

    def _publish(self, permissions: Mapping[str, bool]) -> None:
        self._flags = dict(permissions)
        view = MappingProxyType(dict(self._flags))
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Permission listener raised")

    def _unsubscribe_all(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.unsubscribe()

    @staticmethod
    def _validate_metadata(
        metadata: Mapping[str, Any] | None,
    ) -> FeatureFlagMetadata | None:
        if metadata is None:
            return None
        try:
            return FeatureFlagMetadata.model_validate(dict(metadata))
        except ValidationError as exc:
            raise ValidationException(
                f"Invalid flag metadata: {exc.errors()[0].get('msg', 'invalid')}",
                field="metadata",
            ) from exc
