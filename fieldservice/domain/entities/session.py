"""Session identity entity.

Who is asking, in which tenant, with which role. Supplied by the auth
layer; the role is trusted input and is never derived here.
"""

from dataclasses import dataclass

from fieldservice.domain.enums import Role
from fieldservice.domain.exceptions import ValidationException


@dataclass(frozen=True)
class SessionIdentity:
    """Identity of one authenticated (user, tenant) session.

    Validation runs on construction so an evaluator or flag store can never
    be built for an anonymous or tenant-less session.
    """

    user_id: str
    tenant_id: str
    role: Role

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ValidationException if any identity part is missing."""
        if not self.user_id or not self.user_id.strip():
            raise ValidationException("User ID is required", field="user_id")
        if not self.tenant_id or not self.tenant_id.strip():
            raise ValidationException("Tenant ID is required", field="tenant_id")
        if not isinstance(self.role, Role):
            raise ValidationException(f"Unknown role: {self.role!r}", field="role")

    @property
    def session_key(self) -> tuple[str, str]:
        """Key used to scope per-session state (user_id, tenant_id)."""
        return (self.user_id, self.tenant_id)
