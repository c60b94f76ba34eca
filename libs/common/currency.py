"""Currency conversion utilities.

Internal storage unit: cents (100 cents = 1 currency unit).
API / display unit: currency units (float, e.g. 1500.0 = €1,500).

Amounts are converted only at the API boundary so the fundraising ledger never
accumulates floating-point drift.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

CENTS_PER_UNIT: int = 100


# ─── conversion helpers ───────────────────────────────────────────────────────


def units_to_cents(units: float) -> int:
    """Convert currency units to cents (round half-up). 1 unit = 100 cents."""
    return int(
        (Decimal(str(units)) * CENTS_PER_UNIT).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )


def cents_to_units(cents: int) -> float:
    """Convert cents to currency units. 100 cents = 1 unit."""
    return cents / CENTS_PER_UNIT
