"""Encode/decode Python values to/from Firestore REST API 'fields' format."""

import base64
import re
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from fieldservice.shared.utils.datetime import ensure_utc, parse_iso_utc

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# Firestore timestamps carry up to nanoseconds; datetime keeps microseconds.
_FRACTION = re.compile(r"\.(\d{6})\d+")


def _encode_key(k: Any) -> str:
    if isinstance(k, Enum):
        return str(k.value)
    if not isinstance(k, str):
        raise TypeError(f"Firestore map keys must be strings, got {type(k)}")
    return k


def _encode_value(v: Any) -> dict:
    if v is None:
        return {"nullValue": None}
    if isinstance(v, Enum):
        return _encode_value(v.value)
    if isinstance(v, bool):
        return {"booleanValue": v}
    if isinstance(v, int):
        return {"integerValue": str(v)}
    if isinstance(v, float):
        return {"doubleValue": v}
    if isinstance(v, datetime):
        as_utc = ensure_utc(v)
        return {"timestampValue": as_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")}  # type: ignore[union-attr]
    if isinstance(v, str):
        return {"stringValue": v}
    if isinstance(v, bytes):
        return {"bytesValue": base64.standard_b64encode(v).decode("ascii")}
    if isinstance(v, (list, tuple, set, frozenset)):
        items = sorted(v, key=str) if isinstance(v, (set, frozenset)) else v
        return {"arrayValue": {"values": [_encode_value(x) for x in items]}}
    if isinstance(v, Mapping):
        return {
            "mapValue": {"fields": {_encode_key(k): _encode_value(x) for k, x in v.items()}}
        }
    raise TypeError(f"Unsupported Firestore value type: {type(v)}")


def encode_document(data: Mapping[str, Any]) -> dict:
    """Convert a Python mapping to Firestore REST Document.fields format."""
    return {"fields": {_encode_key(k): _encode_value(v) for k, v in data.items()}}


def _decode_timestamp(value: str) -> datetime:
    return parse_iso_utc(_FRACTION.sub(r".\1", value))


def _decode_value(obj: dict) -> Any:
    if "nullValue" in obj:
        return None
    if "booleanValue" in obj:
        return obj["booleanValue"]
    if "integerValue" in obj:
        return int(obj["integerValue"])
    if "doubleValue" in obj:
        return float(obj["doubleValue"])
    if "timestampValue" in obj:
        return _decode_timestamp(obj["timestampValue"])
    if "stringValue" in obj:
        return obj["stringValue"]
    if "bytesValue" in obj:
        return base64.standard_b64decode(obj["bytesValue"])
    if "arrayValue" in obj:
        vals = obj.get("arrayValue", {}).get("values") or []
        return [_decode_value(x) for x in vals]
    if "mapValue" in obj:
        fields = obj["mapValue"].get("fields") or {}
        return {k: _decode_value(x) for k, x in fields.items()}
    return None


def decode_document(fields: dict | None) -> dict:
    """Convert Firestore REST Document.fields (the inner map) to a Python dict."""
    if not fields:
        return {}
    return {k: _decode_value(v) for k, v in fields.items()}


def decode_update_time(value: str | None) -> datetime | None:
    """Parse Document.updateTime; None when absent."""
    return _decode_timestamp(value) if value else None


def _quote_segment(segment: str) -> str:
    if _SIMPLE_FIELD.match(segment):
        return segment
    escaped = segment.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def merge_field_paths(data: Mapping[str, Any], _prefix: tuple[str, ...] = ()) -> list[str]:
    """Leaf field paths for an updateMask that deep-merges data.

    Nested non-empty maps are descended so sibling fields already stored are
    kept; every other value (including an empty map) replaces its path.
    """
    paths: list[str] = []
    for key, value in data.items():
        segments = (*_prefix, _encode_key(key))
        if isinstance(value, Mapping) and value:
            paths.extend(merge_field_paths(value, segments))
        else:
            paths.append(".".join(_quote_segment(s) for s in segments))
    return paths
