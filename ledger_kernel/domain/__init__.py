"""Pure domain layer: amounts, clock, DTOs, line input and the Balance Validator."""

from ledger_kernel.domain.amounts import (
    BALANCE_TOLERANCE,
    round_amount,
    sum_amounts,
    to_amount,
)
from ledger_kernel.domain.balance_validator import raise_for_check, validate_balance
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountClass,
    AccountInfo,
    AdjustmentType,
    BalanceCheck,
    EntryHeader,
    EntryLine,
    EntryStatus,
    LineSide,
    ReadinessCheck,
    ReopeningResult,
)

__all__ = [
    "BALANCE_TOLERANCE",
    "round_amount",
    "sum_amounts",
    "to_amount",
    "validate_balance",
    "raise_for_check",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AccountClass",
    "AccountInfo",
    "AdjustmentType",
    "BalanceCheck",
    "EntryHeader",
    "EntryLine",
    "EntryStatus",
    "LineSide",
    "ReadinessCheck",
    "ReopeningResult",
]
