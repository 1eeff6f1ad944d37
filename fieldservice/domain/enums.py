"""Domain enumerations for field-service permissions.

Enums represent fixed sets of domain values (roles, flag categories,
decision provenance, audit actions).
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class Role(_ValuesMixin, str, Enum):
    """Membership role within a tenant.

    Assigned at invite acceptance. Only a strictly higher-privileged role
    may change it.
    """

    OWNER = "owner"
    MANAGER = "manager"
    TEAM_MEMBER = "team_member"
    CLIENT = "client"

    @property
    def rank(self) -> int:
        """Privilege rank; higher means more privileged."""
        return _ROLE_RANK[self]

    def can_assign(self, other: "Role") -> bool:
        """Return True if this role may assign or change `other` (strictly outranks it)."""
        return self.rank > other.rank


_ROLE_RANK: dict[Role, int] = {
    Role.CLIENT: 0,
    Role.TEAM_MEMBER: 1,
    Role.MANAGER: 2,
    Role.OWNER: 3,
}


class FeatureCategory(_ValuesMixin, str, Enum):
    """Category used to group flags in the admin UI."""

    TASK_MANAGEMENT = "task_management"
    USER_MANAGEMENT = "user_management"
    FINANCIAL = "financial"
    REPORTING = "reporting"
    CLIENT_PORTAL = "client_portal"
    SYSTEM_SETTINGS = "system_settings"
    EXPERIMENTAL = "experimental"


class RiskLevel(_ValuesMixin, str, Enum):
    """Risk level shown next to a flag in the admin UI."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PermissionSource(_ValuesMixin, str, Enum):
    """Layer of the precedence chain that decided a permission check."""

    USER_OVERRIDE = "user_override"
    TENANT_FLAG = "tenant_flag"
    ROLE_DEFAULT = "role_default"
    CONTEXT_RULE = "context_rule"
    NONE = "none"


class FlagAuditAction(_ValuesMixin, str, Enum):
    """What a flag mutation did."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    MODIFIED = "modified"
