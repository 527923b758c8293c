"""Lenient id coercion for bulk updates.

Bulk membership and assignment calls must not fail as a whole because of one
malformed entry: entries that cannot be read as a positive integer are
dropped, the rest are kept in order.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

logger = logging.getLogger(__name__)


def coerce_id(value: Any) -> int | None:
    """Return ``value`` as a positive int, or None when it is not one.

    Accepts ints and numeric strings (surrounding whitespace allowed).
    Booleans, floats with a fraction, and everything else are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            number = int(text)
            return number if number > 0 else None
    return None


def coerce_ids(values: Iterable[Any] | Any) -> list[int]:
    """Coerce a collection of ids, dropping malformed entries and duplicates.

    A scalar is treated as a one-element collection.

    Example::

        >>> coerce_ids(["3", 1, "x", 3, None, 2.0])
        [3, 1, 2]
    """
    if values is None:
        return []
    if isinstance(values, (str, bytes, int, float)):
        values = [values]

    result: list[int] = []
    seen: set[int] = set()
    dropped = 0
    for value in values:
        number = coerce_id(value)
        if number is None:
            dropped += 1
            continue
        if number not in seen:
            seen.add(number)
            result.append(number)

    if dropped:
        logger.debug("Dropped %d malformed id(s) from bulk input", dropped)
    return result


__all__ = ["coerce_id", "coerce_ids"]
