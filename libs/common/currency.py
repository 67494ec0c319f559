"""Currency constants shared by money handling.

Internal storage unit: minor units (cents, 100 per major unit) as integers.
API / display unit: major units as ``Decimal`` with two places, e.g.
``Decimal("12.50")``.

Every currency handled by the platform uses two decimal places.
"""

from __future__ import annotations

from decimal import Decimal

# ─── constants ───────────────────────────────────────────────────────────────

MINOR_UNITS_PER_MAJOR: int = 100
TWO_PLACES: Decimal = Decimal("0.01")


def normalize_currency(code: str) -> str:
    """Upper-case and validate an ISO 4217 style currency code."""
    normalized = (code or "").strip().upper()
    if len(normalized) != 3 or not (normalized.isascii() and normalized.isalpha()):
        raise ValueError(f"Invalid currency code: {code!r}")
    return normalized
