"""Kilometre-post text <-> linear metres.

Accepted input forms:
- ``"<km>+<metres>"``, e.g. ``"5+250"`` -> 5250
- a bare number: values below 100 are kilometres, 100 and above are metres
  (``"12"`` -> 12000, ``"150"`` -> 150). The boundary is ambiguous by nature
  and kept as entered in the field.
"""

from __future__ import annotations

import re

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)")

# Bare numbers below this are read as kilometres
KM_THRESHOLD = 100


def _leading_float(text: str) -> float | None:
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return None
    return float(match.group(0))


def parse_kp(text: str | float | int | None) -> int | None:
    """Parse a kilometre-post string into whole metres, or None if unparsable."""
    if text is None:
        return None
    raw = str(text).strip()
    if not raw:
        return None

    if "+" in raw.lstrip("+"):
        km_part, _, m_part = raw.rpartition("+")
        km = _leading_float(km_part) if km_part.strip() else 0.0
        metres = _leading_float(m_part) if m_part.strip() else 0.0
        if km is None and metres is None:
            return None
        return round((km or 0.0) * 1000 + (metres or 0.0))

    value = _leading_float(raw)
    if value is None:
        return None
    if value < KM_THRESHOLD:
        return round(value * 1000)
    return round(value)


def format_kp(metres: int | float | None) -> str:
    """Format metres as ``<km>+<mmm>``; empty string for None."""
    if metres is None:
        return ""
    whole = round(metres)
    km, m = divmod(whole, 1000)
    return f"{km}+{m:03d}"
