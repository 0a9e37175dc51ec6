from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ledgercore.platform.ledger.types import NormalBalance

ZERO = Decimal("0")
MONEY_PLACES = Decimal("0.0001")
# Debit/credit equality tolerance. Never used for balance accumulation.
TOLERANCE = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize ``value`` to the ledger's fixed-point scale.

    Floats are routed through ``str`` so database drivers that hand back
    binary floats (SQLite) do not leak representation error into sums.
    """
    if value is None:
        return ZERO.quantize(MONEY_PLACES)
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def is_balanced(left: Decimal, right: Decimal) -> bool:
    return abs(to_money(left) - to_money(right)) < TOLERANCE


def natural_amount(balance: Decimal, normal_balance: NormalBalance | str) -> Decimal:
    """Express a debit-positive balance in the account's natural sign."""
    if NormalBalance(normal_balance) is NormalBalance.DEBIT:
        return to_money(balance)
    return to_money(-balance)


def sum_money(values: Any) -> Decimal:
    return to_money(sum((to_money(item) for item in values), start=ZERO))
