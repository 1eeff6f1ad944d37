"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from fieldservice.api.v1.dependencies.
"""

from fastapi import APIRouter

from fieldservice.api.v1.endpoints import (
    feature_flags,
    health,
    permissions,
    session,
    websocket as ws_endpoint,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
api_router.include_router(
    feature_flags.router, prefix="/feature-flags", tags=["feature-flags"]
)
api_router.include_router(session.router, prefix="/session", tags=["session"])
api_router.include_router(ws_endpoint.router, tags=["websocket"])
