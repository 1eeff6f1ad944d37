"""Cache key builders. Single place for key format.

Identity components (tenant_id, user_id) must not contain CACHE_KEY_SEP
to avoid ambiguous or colliding keys. The action and serialized context
are the trailing components and may contain anything.
"""

import json
from typing import Any

from fieldservice.core.constants import CACHE_KEY_SEP, CACHE_PREFIX_PERMISSION


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value contains the cache key separator."""
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def serialize_context(context: Any) -> str:
    """Stable serialization of a decision context; '' when there is none.

    Keys are sorted so equal dicts give equal keys. Values that JSON cannot
    represent fall back to their repr.
    """
    if context is None:
        return ""
    try:
        return json.dumps(context, sort_keys=True, separators=(",", ":"), default=repr)
    except (TypeError, ValueError):
        return repr(context)


def permission_decision_key(
    user_id: str, tenant_id: str, action: str, context: Any = None
) -> str:
    """Cache key for one decision: user, tenant, action and serialized context."""
    _validate_key_component(user_id, "user_id")
    _validate_key_component(tenant_id, "tenant_id")
    return CACHE_KEY_SEP.join(
        (CACHE_PREFIX_PERMISSION, user_id, tenant_id, action, serialize_context(context))
    )
