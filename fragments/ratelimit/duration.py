from __future__ import annotations

import re

_UNITS_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

_DURATION = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)\s*$")


def parse_duration(value: str) -> int:
    """Parse "10 s", "1d", "500ms" style windows into milliseconds."""
    match = _DURATION.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. '10s', '1 h', '1d')")
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return amount * _UNITS_MS[unit]
