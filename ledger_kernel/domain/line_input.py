"""
Line input adapter.

Responsibility:
    Accepts candidate journal lines in either boundary encoding and turns
    them into CandidateLine records with explicit debit and credit amounts:

        {"account": "1000", "debit": 150.00}
        {"account": "4000", "credit": "150.00"}
        {"account_id": ..., "amount": 150, "side": "debit"}
        {"account_code": "1000", "amount": 150, "is_debit": True}

    Mappings and attribute-bearing objects (including EntryLine) are both
    accepted.  Nothing past the Balance Validator sees the alternate forms:
    the validator collapses CandidateLine into the tagged EntryLine.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - LineInputError (a ValueError) for an unreadable amount or side.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.amounts import InvalidAmountError, round_amount, to_amount
from ledger_kernel.domain.dtos import EntryLine, LineSide

_ACCOUNT_KEYS = ("account", "account_id", "account_code", "account_ref")

_MISSING = object()


class LineInputError(ValueError):
    """A candidate line could not be read."""

    def __init__(self, line_index: int, reason: str):
        self.line_index = line_index
        self.reason = reason
        super().__init__(f"Line {line_index + 1}: {reason}")


@dataclass(frozen=True)
class CandidateLine:
    """A line as received, normalized to debit/credit. Amounts rounded to 2dp."""

    account_ref: str
    debit: Decimal
    credit: Decimal
    description: str | None = None


def _get(raw: Any, key: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key, _MISSING)
    return getattr(raw, key, _MISSING)


def account_ref_of(raw: Any) -> str:
    """Account reference of a boundary line, or "" when none is given."""
    for key in _ACCOUNT_KEYS:
        value = _get(raw, key)
        if value is not _MISSING and value is not None:
            text = str(value).strip()
            if text:
                return text
    return ""


def _side(raw: Any, index: int) -> LineSide:
    side = _get(raw, "side")
    if side is not _MISSING and side is not None:
        try:
            return LineSide(side.lower() if isinstance(side, str) else side)
        except ValueError:
            raise LineInputError(index, f"unknown side {side!r}") from None
    is_debit = _get(raw, "is_debit")
    if is_debit is not _MISSING and is_debit is not None:
        return LineSide.DEBIT if is_debit else LineSide.CREDIT
    raise LineInputError(index, "amount given without a side")


def _amount(value: Any, index: int) -> Decimal:
    try:
        return round_amount(to_amount(value))
    except InvalidAmountError:
        raise LineInputError(index, f"invalid amount {value!r}") from None


def normalize_line(raw: Any, index: int = 0) -> CandidateLine:
    """Normalize one boundary line. ``index`` is 0-based, used in messages."""
    if isinstance(raw, EntryLine):
        return CandidateLine(raw.account_ref, raw.debit, raw.credit, raw.description)

    description = _get(raw, "description")
    description = None if description is _MISSING else description
    account_ref = account_ref_of(raw)

    debit = _get(raw, "debit")
    credit = _get(raw, "credit")
    if debit is _MISSING and credit is _MISSING:
        amount = _get(raw, "amount")
        if amount is _MISSING:
            raise LineInputError(index, "no debit, credit or amount given")
        value = _amount(amount, index)
        zero = round_amount(Decimal(0))
        if _side(raw, index) is LineSide.DEBIT:
            return CandidateLine(account_ref, value, zero, description)
        return CandidateLine(account_ref, zero, value, description)

    return CandidateLine(
        account_ref,
        _amount(None if debit is _MISSING else debit, index),
        _amount(None if credit is _MISSING else credit, index),
        description,
    )


def normalize_lines(raw_lines: Iterable[Any]) -> list[CandidateLine]:
    """Normalize every line, preserving order."""
    return [normalize_line(raw, index) for index, raw in enumerate(raw_lines)]
