"""Timestamp helpers shared by the transcript pipeline."""
from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any

_ISO_DATETIME_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}(?::?\d{2})?)?$"
)


def _normalize_iso_token(token: str) -> str:
    """Pad or trim fractions to six digits and spell offsets as `+HH:MM`."""
    match = _ISO_DATETIME_RE.match(token)
    if match is None:
        return token
    normalized = match.group("base")
    fraction = match.group("fraction")
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset:
        if offset in ("Z", "z"):
            offset = "+00:00"
        else:
            digits = offset[1:].replace(":", "").ljust(4, "0")
            offset = f"{offset[0]}{digits[:2]}:{digits[2:]}"
        normalized += offset
    return normalized


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 / RFC 3339 timestamp, returning None on invalid input.

    Naive values are treated as UTC so they compare against offset-aware ones.
    """
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    try:
        parsed = datetime.fromisoformat(_normalize_iso_token(token))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_unix_seconds(value: Any) -> int | None:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return int(parsed.timestamp() // 1)


def now_unix_seconds() -> int:
    return int(time.time())
