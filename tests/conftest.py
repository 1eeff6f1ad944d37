"""Pytest configuration and fixtures for the permission service.

Environment is pinned to the in-memory document backend before any
fieldservice settings are read. HTTP tests run the app lifespan so the
session registry exists on app.state.
"""

import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["DOCUMENT_BACKEND"] = "memory"
os.environ["OFFLINE_SNAPSHOT_PATH"] = str(
    Path(tempfile.mkdtemp(prefix="fieldservice-tests-")) / "snapshot.json"
)

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from fieldservice.core.config import get_settings  # noqa: E402
from fieldservice.domain.entities.session import SessionIdentity  # noqa: E402
from fieldservice.domain.enums import Role  # noqa: E402
from fieldservice.infrastructure.memory.document_store import (  # noqa: E402
    InMemoryDocumentStore,
)
from fieldservice.infrastructure.security.jwt import create_access_token  # noqa: E402

get_settings.cache_clear()

TENANT_ID = "tenant-1"


class FakeClock:
    """Controllable UTC clock for cache and expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_identity() -> Callable[..., SessionIdentity]:
    """Factory for session identities (default tenant-1)."""

    def _make(user_id: str = "user-1", role: Role = Role.TEAM_MEMBER, tenant_id: str = TENANT_ID):
        return SessionIdentity(user_id=user_id, tenant_id=tenant_id, role=role)

    return _make


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


def bearer(user_id: str, role: Role | str, tenant_id: str = TENANT_ID) -> dict[str, str]:
    """Authorization header for a session token."""
    token = create_access_token(
        {"sub": user_id, "tenant_id": tenant_id, "role": Role(role).value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FastAPI:
    """FastAPI app with lifespan running and an isolated offline snapshot file."""
    monkeypatch.setenv("OFFLINE_SNAPSHOT_PATH", str(tmp_path / "snapshot.json"))
    get_settings.cache_clear()
    from fieldservice.main import create_app

    application = create_app()
    async with application.router.lifespan_context(application):
        yield application
    get_settings.cache_clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Factory: auth_headers(user_id, role, tenant_id=...) -> Authorization header."""
    return bearer
