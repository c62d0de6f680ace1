"""
Amounts -- exact fixed-point arithmetic for every ledger computation.

Responsibility:
    Normalizes inputs to Decimal at a fixed scale and provides the add /
    subtract / multiply / divide / compare primitives used by journal
    totals, balance aggregation and inventory costing.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money has scale 2, rates and conversion factors scale 6, inventory
      quantities scale 3.  Every result is quantized ROUND_HALF_UP to its
      target scale; nothing is left at an intermediate precision.
    - Binary floating point is rejected at the boundary.  A float can not
      represent 0.10 exactly, so accepting one would let drift into the
      ledger before any rounding happens.
    - is_balanced() is exact equality at money scale.  within_tolerance()
      is a different policy for reconciliation differences and must not be
      used to decide whether a journal entry balances.

Failure modes:
    - InvalidAmountError for floats, booleans, non-numeric strings, NaN and
      infinities.
    - InvalidAmountError for division by zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

from ledger_kernel.exceptions import InvalidAmountError

MONEY_SCALE = 2
RATE_SCALE = 6
QUANTITY_SCALE = 3

ZERO = Decimal("0.00")
ONE_RATE = Decimal("1.000000")
DEFAULT_RECONCILIATION_TOLERANCE = Decimal("0.01")

AmountLike = Union[Decimal, int, str]

_QUANTUMS = {scale: Decimal(1).scaleb(-scale) for scale in range(0, 10)}


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert an int, str or Decimal to a finite Decimal without rounding.

    Raises:
        InvalidAmountError: For floats, bools, unparseable strings and
            non-finite values.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "binary floating point is not accepted")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise InvalidAmountError(value, "not a decimal number") from None
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(value, "must be finite")
    return result


def quantize(value: AmountLike, scale: int) -> Decimal:
    """Round to ``scale`` decimal places, half up."""
    return to_decimal(value).quantize(_QUANTUMS[scale], rounding=ROUND_HALF_UP)


def money(value: AmountLike) -> Decimal:
    return quantize(value, MONEY_SCALE)


def rate(value: AmountLike) -> Decimal:
    return quantize(value, RATE_SCALE)


def quantity(value: AmountLike) -> Decimal:
    return quantize(value, QUANTITY_SCALE)


def add(*values: AmountLike, scale: int = MONEY_SCALE) -> Decimal:
    """Sum of the values at ``scale``."""
    total = sum((to_decimal(v) for v in values), Decimal(0))
    return quantize(total, scale)


def total(values: Iterable[AmountLike], scale: int = MONEY_SCALE) -> Decimal:
    """Sum of an iterable at ``scale``; zero for an empty iterable."""
    return add(*values, scale=scale)


def subtract(minuend: AmountLike, subtrahend: AmountLike, scale: int = MONEY_SCALE) -> Decimal:
    return quantize(to_decimal(minuend) - to_decimal(subtrahend), scale)


def multiply(left: AmountLike, right: AmountLike, scale: int = MONEY_SCALE) -> Decimal:
    """Exact product rounded once to ``scale`` (e.g. amount x exchange rate)."""
    return quantize(to_decimal(left) * to_decimal(right), scale)


def divide(dividend: AmountLike, divisor: AmountLike, scale: int = MONEY_SCALE) -> Decimal:
    """
    Quotient rounded to ``scale``.

    Raises:
        InvalidAmountError: If the divisor is zero.
    """
    d = to_decimal(divisor)
    if d == 0:
        raise InvalidAmountError(divisor, "division by zero")
    return quantize(to_decimal(dividend) / d, scale)


def compare(left: AmountLike, right: AmountLike, scale: int = MONEY_SCALE) -> int:
    """Return -1, 0 or 1 comparing both values after rounding to ``scale``."""
    a = quantize(left, scale)
    b = quantize(right, scale)
    return (a > b) - (a < b)


def is_zero(value: AmountLike, scale: int = MONEY_SCALE) -> bool:
    return quantize(value, scale) == 0


def is_balanced(total_debit: AmountLike, total_credit: AmountLike) -> bool:
    """Exact equality at money scale.  No tolerance."""
    return compare(total_debit, total_credit) == 0


def within_tolerance(
    left: AmountLike,
    right: AmountLike,
    tolerance: AmountLike = DEFAULT_RECONCILIATION_TOLERANCE,
) -> bool:
    """True when |left - right| is strictly below ``tolerance``.

    Reconciliation policy only (bank statement vs. book balance).
    """
    difference = abs(subtract(left, right))
    return difference < money(tolerance)


def weighted_average(
    old_quantity: AmountLike,
    old_average: AmountLike | None,
    added_quantity: AmountLike,
    added_cost: AmountLike,
) -> Decimal | None:
    """
    Average unit cost after adding ``added_quantity`` at ``added_cost``.

    ``old_quantity`` must be the on-hand quantity captured *before* the
    addition.  A missing old average is treated as the incoming cost.
    Returns None when the resulting quantity is not positive, leaving the
    caller's existing average untouched.
    """
    old_qty = to_decimal(old_quantity)
    new_qty = to_decimal(added_quantity)
    cost = to_decimal(added_cost)
    avg = to_decimal(old_average) if old_average is not None else cost

    resulting = old_qty + new_qty
    if resulting <= 0:
        return None
    return divide(old_qty * avg + new_qty * cost, resulting)
