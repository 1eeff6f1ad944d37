"""Domain entities."""

from fieldservice.domain.entities.session import SessionIdentity

__all__ = ["SessionIdentity"]
