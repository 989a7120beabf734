"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the enumerations and immutable data structures shared by the
    validator, the services and the selectors: line sides, entry statuses,
    account classes, adjustment kinds, the tagged EntryLine, the EntryHeader
    accepted by the lifecycle operations, and the result objects returned
    to callers (BalanceCheck, ReadinessCheck, ReopeningResult).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Models import the
    enumerations from here; nothing here imports from models/ or services/.

Invariants enforced:
    - EntryLine.amount is a positive Decimal rounded to two places; the side
      says which column it belongs to.  There is no "both sides" line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.amounts import ZERO

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel


class LineSide(str, Enum):
    """Which side of the entry a line is on."""

    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def opposite(self) -> LineSide:
        return LineSide.CREDIT if self is LineSide.DEBIT else LineSide.DEBIT


class EntryStatus(str, Enum):
    """
    Lifecycle status of a journal entry.

    Contract:
        DRAFT -> PENDING -> APPROVED -> POSTED, with DRAFT/PENDING -> VOIDED.
        APPROVED, POSTED and VOIDED entries are never structurally edited.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    POSTED = "posted"
    VOIDED = "voided"


# Statuses whose header and lines may still change (or be deleted)
EDITABLE_STATUSES = frozenset({EntryStatus.DRAFT, EntryStatus.PENDING})

# Statuses that count towards ledger balances
APPROVED_STATUSES = frozenset({EntryStatus.APPROVED, EntryStatus.POSTED})


class AccountClass(str, Enum):
    """Classification of an account in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST = "cost"
    MEMO = "memo"

    @property
    def natural_side(self) -> LineSide:
        """Side that increases an account of this class."""
        if self in (AccountClass.LIABILITY, AccountClass.EQUITY, AccountClass.REVENUE):
            return LineSide.CREDIT
        return LineSide.DEBIT

    @property
    def is_balance_sheet(self) -> bool:
        return self in (AccountClass.ASSET, AccountClass.LIABILITY, AccountClass.EQUITY)

    @property
    def is_income_statement(self) -> bool:
        return self in (AccountClass.REVENUE, AccountClass.EXPENSE, AccountClass.COST)


class AdjustmentType(str, Enum):
    """Kind of adjusting entry. Descriptive only."""

    DEPRECIATION = "depreciation"
    AMORTIZATION = "amortization"
    ACCRUAL = "accrual"
    DEFERRED = "deferred"
    INVENTORY = "inventory"
    CORRECTION = "correction"
    PROVISION = "provision"
    VALUATION = "valuation"
    OTHER = "other"


@dataclass(frozen=True)
class EntryLine:
    """
    A validated journal line in its single internal representation.

    Guarantees:
        - amount > 0, rounded to two places.
        - side is DEBIT or CREDIT.
    """

    account_ref: str
    side: LineSide
    amount: Decimal
    description: str | None = None

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side is LineSide.DEBIT else ZERO

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side is LineSide.CREDIT else ZERO


@dataclass(frozen=True)
class EntryHeader:
    """
    Header fields supplied by the caller for create and update.

    fiscal_period_id may be omitted; it is derived from the monthly period.
    Adjustment kind and adjusted entry are ignored unless is_adjustment is set.
    """

    entry_date: date
    description: str
    monthly_period_id: UUID
    fiscal_period_id: UUID | None = None
    reference_number: str | None = None
    reference_date: date | None = None
    notes: str | None = None
    is_adjustment: bool = False
    adjustment_type: AdjustmentType | None = None
    adjusted_entry_id: UUID | None = None


@dataclass(frozen=True)
class AccountInfo:
    """
    Pure domain representation of an account.

    Used by the Balance Validator to check the hierarchy and activity of
    referenced accounts without ORM access.
    """

    id: UUID
    code: str
    name: str
    account_class: AccountClass
    natural_side: LineSide
    is_parent: bool = False
    is_active: bool = True
    parent_id: UUID | None = None

    @property
    def is_postable(self) -> bool:
        return self.is_active and not self.is_parent

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            account_class=AccountClass(model.account_class),
            natural_side=LineSide(model.natural_side),
            is_parent=model.is_parent,
            is_active=model.is_active,
            parent_id=model.parent_id,
        )


@dataclass(frozen=True)
class BalanceCheck:
    """
    Outcome of the Balance Validator.

    Contract:
        ``valid`` is True only when every rule passed; ``message`` always
        carries a human-readable sentence.  On success ``lines`` holds the
        normalized, tagged lines in input order.

    Guarantees:
        - bool(check) == check.valid
        - failed_rule is None on success, else the 1-based rule number.
    """

    valid: bool
    message: str
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    failed_rule: int | None = None
    line_index: int | None = None
    lines: tuple[EntryLine, ...] = field(default_factory=tuple)

    @property
    def difference(self) -> Decimal:
        """Signed difference, debits minus credits."""
        return self.total_debit - self.total_credit

    def __bool__(self) -> bool:
        return self.valid

    def as_dict(self) -> dict[str, object]:
        """Caller-facing ``{valid, message}`` shape."""
        return {"valid": self.valid, "message": self.message}


@dataclass(frozen=True)
class ReadinessCheck:
    """Outcome of a period transition readiness check."""

    ready: bool
    message: str
    code: str | None = None

    def __bool__(self) -> bool:
        return self.ready

    def as_dict(self) -> dict[str, object]:
        return {"ready": self.ready, "message": self.message}


@dataclass(frozen=True)
class AccountBalance:
    """Net balance of one account over a date range."""

    account_id: UUID
    code: str
    name: str
    account_class: AccountClass
    natural_side: LineSide
    total_debit: Decimal
    total_credit: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance on the account's natural side."""
        if self.natural_side is LineSide.DEBIT:
            return self.total_debit - self.total_credit
        return self.total_credit - self.total_debit


@dataclass(frozen=True)
class ReopeningResult:
    """Totals reported after a successful period transition."""

    opening_entry_id: UUID
    entry_number: str
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    line_count: int

    def as_dict(self) -> dict[str, object]:
        return {
            "opening_entry_id": self.opening_entry_id,
            "total_assets": self.total_assets,
            "total_liabilities": self.total_liabilities,
            "total_equity": self.total_equity,
        }


@dataclass(frozen=True)
class ActivityRecord:
    """One row of the activity log."""

    action: str
    entity_type: str
    entity_id: UUID
    actor_id: UUID
    description: str
    occurred_at: datetime


@dataclass(frozen=True)
class FiscalPeriodInfo:
    """Pure domain representation of a fiscal (accounting) period."""

    id: UUID
    name: str
    start_date: date
    end_date: date
    is_closed: bool
    has_opening_balances: bool = False
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


@dataclass(frozen=True)
class MonthlyPeriodInfo:
    """Pure domain representation of a monthly period."""

    id: UUID
    fiscal_period_id: UUID
    name: str
    year: int
    month: int
    start_date: date
    end_date: date
    is_active: bool
    is_closed: bool
    allows_out_of_range_dates: bool = False
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
