"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/ and the
    enumerations in domain/dtos.py only.

Invariants enforced:
    - entry_number is unique (uq_journal_entry_number).
    - opening_for_period_id is unique: at most one opening entry per target
      period, even under concurrent period transitions.
    - Lines are owned by their entry (cascade delete-orphan) and stored in
      the tagged form: one positive amount and a side.

Failure modes:
    - IntegrityError on duplicate entry_number or a second opening entry for
      the same period.  Services translate these into ConcurrencyError
      subclasses.

Audit relevance:
    JournalEntry and JournalLine rows are the authoritative financial record.
    Voided entries are kept (status VOIDED, annotated notes) and stay visible.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import Money
from ledger_kernel.domain.amounts import ZERO
from ledger_kernel.domain.dtos import (
    APPROVED_STATUSES,
    EDITABLE_STATUSES,
    AdjustmentType,
    EntryStatus,
    LineSide,
)

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Contract:
        Created in DRAFT (or POSTED for system-generated opening entries).
        total_debit/total_credit equal the rounded sums of the lines' sides,
        and is_balanced is only ever persisted True when they agree within
        the balance tolerance.

    Guarantees:
        - entry_number is assigned by EntryNumberService in the same
          transaction as the insert.
        - APPROVED, POSTED and VOIDED entries are never structurally edited
          (enforced by JournalService).
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        UniqueConstraint("opening_for_period_id", name="uq_journal_opening_period"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_monthly_period", "monthly_period_id"),
        Index("idx_journal_fiscal_period", "fiscal_period_id"),
    )

    entry_number: Mapped[str] = mapped_column(String(20), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reference_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # Nullable only for opening entries dated outside every monthly period
    monthly_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("monthly_periods.id"),
        nullable=True,
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    status: Mapped[EntryStatus] = mapped_column(
        String(10),
        default=EntryStatus.DRAFT,
        nullable=False,
    )

    total_debit: Mapped[Money] = mapped_column(default=ZERO, nullable=False)
    total_credit: Mapped[Money] = mapped_column(default=ZERO, nullable=False)

    is_balanced: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Adjustment metadata (descriptive only)
    is_adjustment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    adjustment_type: Mapped[AdjustmentType | None] = mapped_column(
        String(20),
        nullable=True,
    )

    adjusted_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    # Opening entry produced by a period transition
    is_opening_entry: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    opening_for_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=True,
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    voided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_seq",
        lazy="selectin",
    )

    adjusted_entry: Mapped["JournalEntry | None"] = relationship(
        remote_side="JournalEntry.id",
        foreign_keys=[adjusted_entry_id],
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} status={self.status}>"

    @property
    def is_editable(self) -> bool:
        """Draft or pending."""
        return EntryStatus(self.status) in EDITABLE_STATUSES

    @property
    def is_approved(self) -> bool:
        """Approved or posted."""
        return EntryStatus(self.status) in APPROVED_STATUSES

    @property
    def is_voided(self) -> bool:
        return self.status == EntryStatus.VOIDED


class JournalLine(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        Each line belongs to exactly one JournalEntry, references exactly one
        postable Account, and records a positive amount on one side.

    Guarantees:
        - amount > 0, two decimal places; side decides the column.
        - line_seq gives the input order.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    side: Mapped[LineSide] = mapped_column(String(10), nullable=False)

    amount: Mapped[Money] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped[JournalEntry] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.side} {self.amount}>"

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side == LineSide.DEBIT else ZERO

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side == LineSide.CREDIT else ZERO
