"""Session API schemas."""

from pydantic import BaseModel


class SessionClosedResponse(BaseModel):
    """Response for DELETE /session."""

    closed: bool
