"""
Amounts -- fixed-point arithmetic for ledger amounts.

Responsibility:
    The only place monetary values are converted, rounded, summed and
    compared.  Every other component routes amount arithmetic through here.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No binary floating point: floats are converted through ``str()`` so
      ``0.1`` becomes ``Decimal("0.1")``, never ``Decimal(0.1)``.
    - Rounding policy is ROUND_HALF_UP to two decimal places, applied when a
      line amount or a total is finalized for persistence or comparison.
    - Two totals balance when their absolute difference is at most
      BALANCE_TOLERANCE (0.01).

Failure modes:
    - InvalidAmountError (a ValueError) for values that are not numbers,
      are NaN or are infinite.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

AMOUNT_PLACES = 2
ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")
BALANCE_TOLERANCE = Decimal("0.01")

_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)


class InvalidAmountError(ValueError):
    """Raised when a value cannot be interpreted as an amount."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid amount: {value!r}")


def to_amount(value: object) -> Decimal:
    """
    Convert a boundary value (Decimal, int, float, str, None) to Decimal.

    None and empty strings are treated as zero.  The result is NOT rounded.

    Raises:
        InvalidAmountError: If the value is not a finite number.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise InvalidAmountError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return Decimal(0)
        try:
            result = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidAmountError(value) from exc
    else:
        raise InvalidAmountError(value)

    if not result.is_finite():
        raise InvalidAmountError(value)
    return result


def round_amount(value: Decimal) -> Decimal:
    """Round to two decimal places using ROUND_HALF_UP."""
    return value.quantize(_QUANTUM, rounding=ROUNDING)


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    """Exact decimal sum, rounded to two places."""
    total = Decimal(0)
    for value in values:
        total += value
    return round_amount(total)


def is_balanced(total_debit: Decimal, total_credit: Decimal) -> bool:
    """True when the two rounded totals differ by no more than the tolerance."""
    return abs(round_amount(total_debit) - round_amount(total_credit)) <= BALANCE_TOLERANCE


def format_amount(value: Decimal) -> str:
    """Render an amount with exactly two decimals, e.g. ``"150.00"``."""
    return f"{round_amount(value):.2f}"
