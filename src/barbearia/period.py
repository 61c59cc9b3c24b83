"""Month-key utilities shared by the ranker and the allocator.

Every rotation and commission computation is scoped to one calendar
month identified by a literal ``YYYY-MM`` key (e.g. ``"2025-05"``).
"""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from barbearia.errors import InvalidMonth

MONTH_KEY_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})")


def month_key(day: date) -> str:
    """Return the ``YYYY-MM`` key of the month containing ``day``."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a month key into (year, month).

    Raises InvalidMonth if the key is not a well-formed ``YYYY-MM``.
    """
    match = MONTH_KEY_PATTERN.fullmatch(key or "")
    if match is None:
        raise InvalidMonth(str(key), f"Malformed month key: {key!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidMonth(key, f"Month key out of range: {key!r}")
    return year, month


def validate_month_key(key: str) -> str:
    """Return ``key`` unchanged if it is a valid month key."""
    parse_month_key(key)
    return key


def shift_month(key: str, delta: int) -> str:
    """Return the month key ``delta`` months away from ``key``."""
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def recent_month_keys(key: str, count: int) -> list[str]:
    """Return ``count`` month keys ending at ``key``, oldest first."""
    if count <= 0:
        return []
    return [shift_month(key, -offset) for offset in range(count - 1, -1, -1)]


def current_month_key(today: Optional[date] = None) -> str:
    """Return the month key of today (or the given date)."""
    return month_key(today or date.today())


def ensure_in_month(day: date, key: str) -> None:
    """Raise InvalidMonth unless ``day`` falls inside the month ``key``.

    Guards against back-dating an event into a closed period.
    """
    validate_month_key(key)
    derived = month_key(day)
    if derived != key:
        raise InvalidMonth(
            derived,
            f"Date {day.isoformat()} belongs to {derived}, not the open month {key}",
        )
