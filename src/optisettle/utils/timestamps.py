"""
Timestamp utilities used across optisettle:
- UTC datetime helpers
- ISO-8601 formatting/parsing for the wire format
"""

from __future__ import annotations

import datetime as _dt
from typing import Callable, Optional

Clock = Callable[[], _dt.datetime]


def utc_now() -> _dt.datetime:
    """Return a timezone-aware UTC datetime."""
    return _dt.datetime.now(tz=_dt.timezone.utc)


def to_iso(value: Optional[_dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(_dt.timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(value: Optional[str]) -> Optional[_dt.datetime]:
    if value is None:
        return None
    parsed = _dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_dt.timezone.utc)
    return parsed
