from __future__ import annotations

import json
from typing import Any


def _canonical_body(body: Any) -> str:
    if body is None:
        return ""
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def operation_key(method: str, path: str, body: Any = None) -> str:
    """Deterministic identifier for a logical network operation."""

    return f"{method.upper()} {path} {_canonical_body(body)}".rstrip()


def cache_key(entity_id: str, kind: str) -> str:
    return f"{entity_id}:{kind}"


def entity_prefix(entity_id: str) -> str:
    return f"{entity_id}:"
