# FILE: hospital_ledger/services/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def D(x) -> Decimal:
    """Safe Decimal conversion (never Decimal -= float)."""
    if x is None:
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))  # str() avoids float binary issues


def money(x) -> Decimal:
    """Money rounding to 2 decimals."""
    return D(x).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def weighted_average_cost(old_avg, old_qty: int, unit_cost, qty: int) -> Decimal:
    """
    (old_avg * old_qty + unit_cost * qty) / (old_qty + qty)

    Pure; the caller must pass the quantity read under the same row lock it
    increments. A non-positive combined quantity falls back to the incoming cost.
    """
    old_qty = max(int(old_qty or 0), 0)
    qty = int(qty or 0)
    combined = old_qty + qty
    if combined <= 0:
        return money(unit_cost)
    return money((D(old_avg) * old_qty + D(unit_cost) * qty) / Decimal(combined))
