"""WebSocket endpoint: push the caller's permission map whenever it changes.

Requires a valid JWT via query param ?token=... before accepting. The
session's flag store comes from the registry on app.state; every refresh
of that store is forwarded to the socket as a "permissions" message.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fieldservice.api.v1.dependencies import identity_from_token
from fieldservice.application.services.feature_flag_store import FeatureFlagStore
from fieldservice.domain.exceptions import AuthenticationException
from fieldservice.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _reject_websocket(websocket: WebSocket, reason: str, code: int = 1008) -> None:
    """Accept then immediately close with code/reason so client gets a proper close frame."""
    await websocket.accept()
    await websocket.close(code=code, reason=reason)


def _permissions_message(store: FeatureFlagStore, permissions: Mapping[str, bool]) -> dict[str, Any]:
    return {
        "type": "permissions",
        "permissions": dict(permissions),
        "degraded": store.degraded,
        "lastSync": store.last_sync.isoformat() if store.last_sync else None,
    }


async def _forward_changes(
    websocket: WebSocket,
    store: FeatureFlagStore,
    queue: "asyncio.Queue[Mapping[str, bool]]",
) -> None:
    while True:
        permissions = await queue.get()
        await websocket.send_json(_permissions_message(store, permissions))


@router.websocket("/ws/permissions")
async def permissions_websocket(websocket: WebSocket):
    """Stream permission map updates for the token's session.

    Sends the current map on connect, then one message per refresh. Text
    "ping" is answered with {"type": "pong"}; other client messages are ignored.
    """
    token = websocket.query_params.get("token")
    if not token:
        await _reject_websocket(websocket, "Missing token")
        return
    try:
        identity = identity_from_token(token)
    except AuthenticationException:
        await _reject_websocket(websocket, "Invalid token")
        return

    store = await websocket.app.state.sessions.open(identity)
    await websocket.accept()
    await websocket.send_json(_permissions_message(store, store.flags))

    queue: asyncio.Queue[Mapping[str, bool]] = asyncio.Queue()
    unsubscribe = store.subscribe(queue.put_nowait)
    forwarder = asyncio.create_task(_forward_changes(websocket, store, queue))
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug("Permission socket closed for user %s", identity.user_id)
    finally:
        unsubscribe()
        forwarder.cancel()
        # Send failures after disconnect are expected here.
        await asyncio.gather(forwarder, return_exceptions=True)
