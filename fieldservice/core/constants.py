"""Core constants: cache key parts, permission timing and well-known actions."""

from datetime import timedelta

# Cache key prefix and delimiter for composite keys
CACHE_PREFIX_PERMISSION = "permission"
CACHE_KEY_SEP = ":"

# Decisions are reused for this long unless clear_cache() runs first.
DEFAULT_PERMISSION_CACHE_TTL = 300

# Offline snapshot: fixed keys inside the snapshot file and max age.
OFFLINE_FLAGS_KEY = "feature_flags_snapshot"
OFFLINE_FLAGS_TIMESTAMP_KEY = "feature_flags_timestamp"
OFFLINE_SNAPSHOT_MAX_AGE = timedelta(hours=24)

# Toggling a flag is itself gated by this action.
MANAGE_FEATURES_ACTION = "system_settings_manage_features"
