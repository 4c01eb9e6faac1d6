from __future__ import annotations

import re
from typing import Any

from nostr_tx_broadcast.core.errors import InvalidEventError


EVENT_REQUIRED_KEYS = {
    "id",
    "pubkey",
    "created_at",
    "kind",
    "tags",
    "content",
    "sig",
}

MAX_KIND = 65535

_HEX_RE = re.compile(r"[0-9a-f]*")


def _require_keys(obj: dict[str, Any], *, required: set[str]) -> None:
    missing = required - set(obj.keys())
    if missing:
        raise InvalidEventError(f"missing keys: {sorted(missing)}")


def _require_str(d: dict[str, Any], k: str) -> str:
    v = d.get(k)
    if not isinstance(v, str):
        raise InvalidEventError(f"{k} must be string")
    return v


def _require_int(d: dict[str, Any], k: str) -> int:
    v = d.get(k)
    # bool is an int subclass; reject it explicitly.
    if not isinstance(v, int) or isinstance(v, bool):
        raise InvalidEventError(f"{k} must be int")
    return v


def _require_lower_hex(d: dict[str, Any], k: str, *, length: int) -> str:
    v = _require_str(d, k)
    if len(v) != length or not _HEX_RE.fullmatch(v):
        raise InvalidEventError(f"{k} must be {length} lowercase hex characters")
    return v


def validate_tags(tags: Any) -> None:
    if not isinstance(tags, list):
        raise InvalidEventError("tags must be array")
    for i, tag in enumerate(tags):
        if not isinstance(tag, list):
            raise InvalidEventError(f"tags[{i}] must be array")
        for j, item in enumerate(tag):
            if not isinstance(item, str):
                raise InvalidEventError(f"tags[{i}][{j}] must be string")


def validate_event_dict(event: Any) -> None:
    """Strict NIP-01 shape validation.

    - required keys present with the right JSON types
    - id / pubkey / sig are lowercase hex of the right size
    - extra keys are tolerated (some relays annotate events)
    """

    if not isinstance(event, dict):
        raise InvalidEventError("event must be object")
    _require_keys(event, required=EVENT_REQUIRED_KEYS)
    _require_lower_hex(event, "id", length=64)
    _require_lower_hex(event, "pubkey", length=64)
    _require_lower_hex(event, "sig", length=128)
    if _require_int(event, "created_at") < 0:
        raise InvalidEventError("created_at must be >= 0")
    kind = _require_int(event, "kind")
    if not (0 <= kind <= MAX_KIND):
        raise InvalidEventError(f"kind must be 0..{MAX_KIND}")
    _require_str(event, "content")
    validate_tags(event.get("tags"))
