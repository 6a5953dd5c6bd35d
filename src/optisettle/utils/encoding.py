"""
Canonical byte encodings for hashing and signing.
"""

from __future__ import annotations

import json
from typing import Any


def canonical_json(obj: Any, *, sort_keys: bool = False) -> bytes:
    """
    Compact UTF-8 JSON with no insignificant whitespace.

    Leaf encoding keeps insertion order (the field order is part of the
    commitment); anchor payloads sort their keys.
    """
    return json.dumps(
        obj,
        separators=(",", ":"),
        sort_keys=sort_keys,
        ensure_ascii=False,
    ).encode("utf-8")
