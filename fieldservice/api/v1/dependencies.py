"""Presentation-layer dependency injection (composition root).

Resolves the caller's session identity from the bearer JWT and hands
routes the session's FeatureFlagStore from the registry on app.state.
Routes depend only on these dependencies, not on infrastructure directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.application.services.permission_context import PermissionContext
from fieldservice.application.services.session_registry import SessionRegistry
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.domain.enums import Role
from fieldservice.domain.exceptions import (
    AuthenticationException,
    AuthorizationException,
    ValidationException,
)
from fieldservice.infrastructure.security.jwt import verify_token

_http_bearer = HTTPBearer(auto_error=False)


def identity_from_token(token: str) -> SessionIdentity:
    """Decode a session JWT into a SessionIdentity.

    Raises:
        AuthenticationException: Token invalid, expired or carrying an unknown role.
    """
    try:
        payload = verify_token(token)
    except ValueError as e:
        raise AuthenticationException("Invalid or expired token") from e
    try:
        return SessionIdentity(
            user_id=str(payload["sub"]),
            tenant_id=str(payload["tenant_id"]),
            role=Role(payload["role"]),
        )
    except (ValueError, ValidationException) as e:
        raise AuthenticationException("Token carries an invalid session identity") from e


async def get_session_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> SessionIdentity:
    """Identity of the authenticated caller; 401 when missing or invalid."""
    if not credentials:
        raise AuthenticationException("Not authenticated")
    return identity_from_token(credentials.credentials)


def get_session_registry(request: Request) -> SessionRegistry:
    """Session registry created in lifespan."""
    return request.app.state.sessions


async def get_session_store(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> FeatureFlagStore:
    """Started flag store for the caller's session (opened on first use)."""
    return await registry.open(identity)


def get_permission_context(
    store: Annotated[FeatureFlagStore, Depends(get_session_store)],
) -> PermissionContext:
    """Read-only permission facade for the caller's session."""
    return PermissionContext(store)


def require_permission(action: str):
    """Dependency factory: require JWT auth and that the session may perform action."""

    async def _require(
        store: Annotated[FeatureFlagStore, Depends(get_session_store)],
    ) -> FeatureFlagStore:
        if not store.can(action):
            raise AuthorizationException(action=action)
        return store

    return _require
