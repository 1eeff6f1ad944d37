"""Session API: sign-out for the caller's (user, tenant) session."""

from typing import Annotated

from fastapi import APIRouter, Depends

from fieldservice.api.v1.dependencies import get_session_identity, get_session_registry
from fieldservice.application.services.session_registry import SessionRegistry
from fieldservice.domain.entities.session import SessionIdentity
from fieldservice.schemas.session import SessionClosedResponse

router = APIRouter()


@router.delete("", response_model=SessionClosedResponse)
async def close_session(
    identity: Annotated[SessionIdentity, Depends(get_session_identity)],
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
):
    """Destroy the caller's flag store; closed is False if no session was open."""
    closed = await registry.close(identity.user_id, identity.tenant_id)
    return SessionClosedResponse(closed=closed)
