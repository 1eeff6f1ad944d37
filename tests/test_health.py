"""Smoke tests for health and app wiring."""

from httpx import AsyncClient


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data.get("status") == "ok"
    assert data.get("document_backend") == "memory"


async def test_lifespan_wires_session_registry(app) -> None:
    assert len(app.state.sessions) == 0
    assert app.state.document_store is not None
