"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only query access to journal entries and their lines.
    Converts ORM models to frozen DTOs for clean layer separation.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: no mutations are performed on queried data.
    - Lines are returned in line_seq order.
    - list_entries() sorts only by whitelisted fields; anything else falls
      back to entry date.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from ledger_kernel.domain.dtos import AdjustmentType, EntryStatus, LineSide
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_LIST_LIMIT = 100

SORT_FIELDS = {
    "date": JournalEntry.entry_date,
    "entry_number": JournalEntry.entry_number,
    "total_debit": JournalEntry.total_debit,
    "status": JournalEntry.status,
    "created_at": JournalEntry.created_at,
}

ENTRY_TYPES = ("all", "regular", "adjustment")


@dataclass(frozen=True)
class JournalLineDTO:
    """Data transfer object for a journal line."""

    id: UUID
    account_id: UUID
    account_code: str
    side: LineSide
    amount: Decimal
    description: str | None
    line_seq: int

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side is LineSide.DEBIT else Decimal("0.00")

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side is LineSide.CREDIT else Decimal("0.00")


@dataclass(frozen=True)
class JournalEntryDTO:
    """Data transfer object for a journal entry."""

    id: UUID
    entry_number: str
    entry_date: date
    description: str
    status: EntryStatus
    monthly_period_id: UUID | None
    fiscal_period_id: UUID
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool
    reference_number: str | None = None
    reference_date: date | None = None
    notes: str | None = None
    is_adjustment: bool = False
    adjustment_type: AdjustmentType | None = None
    adjusted_entry_id: UUID | None = None
    is_opening_entry: bool = False
    opening_for_period_id: UUID | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    posted_at: datetime | None = None
    voided_by_id: UUID | None = None
    voided_at: datetime | None = None
    lines: tuple[JournalLineDTO, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EntryFilter:
    """
    Filters for list_entries().

    entry_type is one of ``all``, ``regular`` or ``adjustment``.  search
    matches entry number, description and reference number,
    case-insensitively.
    """

    monthly_period_id: UUID | None = None
    fiscal_period_id: UUID | None = None
    status: EntryStatus | None = None
    entry_type: str = "all"
    search: str | None = None
    sort_by: str = "date"
    descending: bool = True
    exclude_voided: bool = False
    limit: int = DEFAULT_LIST_LIMIT


class JournalSelector(BaseSelector[JournalEntry]):
    """
    Selector for journal entry queries.

    Guarantees:
        - Read-only.
        - JournalEntry.lines and their accounts are eager-loaded.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_dto(self, entry: JournalEntry) -> JournalEntryDTO:
        codes = self._account_codes(entry)
        lines = tuple(
            JournalLineDTO(
                id=line.id,
                account_id=line.account_id,
                account_code=codes.get(line.account_id, ""),
                side=LineSide(line.side),
                amount=line.amount,
                description=line.description,
                line_seq=line.line_seq,
            )
            for line in sorted(entry.lines, key=lambda x: x.line_seq)
        )
        return JournalEntryDTO(
            id=entry.id,
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            description=entry.description,
            status=EntryStatus(entry.status),
            monthly_period_id=entry.monthly_period_id,
            fiscal_period_id=entry.fiscal_period_id,
            total_debit=entry.total_debit,
            total_credit=entry.total_credit,
            is_balanced=entry.is_balanced,
            reference_number=entry.reference_number,
            reference_date=entry.reference_date,
            notes=entry.notes,
            is_adjustment=entry.is_adjustment,
            adjustment_type=(
                AdjustmentType(entry.adjustment_type) if entry.adjustment_type else None
            ),
            adjusted_entry_id=entry.adjusted_entry_id,
            is_opening_entry=entry.is_opening_entry,
            opening_for_period_id=entry.opening_for_period_id,
            created_by_id=entry.created_by_id,
            created_at=entry.created_at,
            approved_by_id=entry.approved_by_id,
            approved_at=entry.approved_at,
            posted_at=entry.posted_at,
            voided_by_id=entry.voided_by_id,
            voided_at=entry.voided_at,
            lines=lines,
        )

    def _account_codes(self, entry: JournalEntry) -> dict[UUID, str]:
        account_ids = {line.account_id for line in entry.lines}
        if not account_ids:
            return {}
        rows = self.session.execute(
            select(Account.id, Account.code).where(Account.id.in_(account_ids))
        ).all()
        return {row.id: row.code for row in rows}

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        """
        Get a journal entry by ID.

        Postconditions: Returns JournalEntryDTO with all lines if found,
            None if no entry exists with the given ID.
        """
        entry = self.session.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(JournalEntry.id == entry_id)
        ).scalar_one_or_none()

        if entry is None:
            return None

        return self._to_dto(entry)

    def get_by_number(self, entry_number: str) -> JournalEntryDTO | None:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.entry_number == entry_number)
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry else None

    def get_opening_entry(self, fiscal_period_id: UUID) -> JournalEntryDTO | None:
        """Opening entry generated for the given target fiscal period."""
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.opening_for_period_id == fiscal_period_id
            )
        ).scalar_one_or_none()
        return self._to_dto(entry) if entry else None

    def count_for_fiscal_period(self, fiscal_period_id: UUID) -> int:
        """Number of entries (of any status) booked to a fiscal period."""
        return self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.fiscal_period_id == fiscal_period_id
            )
        ).scalar_one()

    def list_entries(self, entry_filter: EntryFilter | None = None) -> list[JournalEntryDTO]:
        """
        List entries matching the filter.

        Postconditions: at most ``entry_filter.limit`` entries, ordered by the
            whitelisted sort field (entry date when the field is unknown),
            entry number as tie-breaker.
        """
        entry_filter = entry_filter or EntryFilter()
        query = select(JournalEntry).options(selectinload(JournalEntry.lines))

        if entry_filter.monthly_period_id is not None:
            query = query.where(JournalEntry.monthly_period_id == entry_filter.monthly_period_id)

        if entry_filter.fiscal_period_id is not None:
            query = query.where(JournalEntry.fiscal_period_id == entry_filter.fiscal_period_id)

        if entry_filter.status is not None:
            query = query.where(JournalEntry.status == EntryStatus(entry_filter.status).value)

        if entry_filter.entry_type == "regular":
            query = query.where(JournalEntry.is_adjustment.is_(False))
        elif entry_filter.entry_type == "adjustment":
            query = query.where(JournalEntry.is_adjustment.is_(True))

        if entry_filter.exclude_voided:
            query = query.where(JournalEntry.status != EntryStatus.VOIDED.value)

        if entry_filter.search:
            pattern = f"%{entry_filter.search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(JournalEntry.entry_number).like(pattern),
                    func.lower(JournalEntry.description).like(pattern),
                    func.lower(JournalEntry.reference_number).like(pattern),
                )
            )

        sort_column = SORT_FIELDS.get(entry_filter.sort_by, JournalEntry.entry_date)
        if entry_filter.descending:
            query = query.order_by(sort_column.desc(), JournalEntry.entry_number.desc())
        else:
            query = query.order_by(sort_column.asc(), JournalEntry.entry_number.asc())

        if entry_filter.limit:
            query = query.limit(entry_filter.limit)

        entries = self.session.execute(query).scalars().all()
        return [self._to_dto(entry) for entry in entries]
