"""Cache: in-process permission decision cache and key utilities."""

from fieldservice.infrastructure.cache.keys import permission_decision_key
from fieldservice.infrastructure.cache.permission_cache import PermissionCache

__all__ = ["PermissionCache", "permission_decision_key"]
