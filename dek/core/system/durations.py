"""Human-readable durations: ``30s``, ``5m``, ``1h30m``, ``2d``."""

from __future__ import annotations

from datetime import timedelta

_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(text: str) -> timedelta:
    """Parse a compact duration string. A bare number means seconds.

    Raises:
        ValueError: On an unknown unit or a unit with no number.
    """
    total = 0
    digits = ""
    for ch in text.strip():
        if ch.isdigit():
            digits += ch
            continue
        if ch not in _UNITS:
            raise ValueError(f"unknown duration unit '{ch}' in: {text}")
        if not digits:
            raise ValueError(f"invalid duration: {text}")
        total += int(digits) * _UNITS[ch]
        digits = ""
    if digits:
        total += int(digits)
    return timedelta(seconds=total)
