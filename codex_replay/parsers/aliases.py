"""Field lookup shared by every place that reads camelCase / snake_case aliases."""
from __future__ import annotations

from typing import Any, Mapping


def as_object(value: Any) -> dict[str, Any] | None:
    """Return value if it is a JSON object, else None."""
    if isinstance(value, dict):
        return value
    return None


def first_present(
    source: Mapping[str, Any] | None,
    *keys: str,
    kind: type | tuple[type, ...] = str,
    default: Any = None,
) -> Any:
    """Return the first of `keys` whose value has the expected kind.

    Keys are tried in order: the canonical name first, then its aliases.
    Values of the wrong kind are skipped rather than coerced, so a malformed
    canonical field falls through to the alias and then to `default`.
    """
    if not source:
        return default
    kinds = kind if isinstance(kind, tuple) else (kind,)
    for key in keys:
        value = source.get(key)
        # JSON booleans are not numbers.
        if isinstance(value, bool) and bool not in kinds:
            continue
        if isinstance(value, kinds):
            return value
    return default
