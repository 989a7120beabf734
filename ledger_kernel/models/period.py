"""
Module: ledger_kernel.models.period
Responsibility: ORM persistence for accounting periods.  A FiscalPeriod (the
    accounting year) owns its MonthlyPeriods; every journal entry belongs to
    one monthly period and, through it, to one fiscal period.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - is_closed is monotonic within this kernel: close() sets it, nothing
      here clears it.  Reopening a closed period is an administrative action
      outside the kernel.
    - has_opening_balances is set exactly once, in the same transaction that
      inserts the period's opening entry.

Failure modes:
    - ValueError from close() on an already-closed period.

Audit relevance:
    closed_at / closed_by_id record who froze the period and when.
"""

from datetime import date, datetime
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


class FiscalPeriod(TrackedBase):
    """
    Accounting period (usually a fiscal year).

    Contract:
        Once closed, no entry may be created or edited in any of its monthly
        periods.  A period transition reads balances from a closed fiscal
        period and writes the opening entry into an open one.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("name", name="uq_fiscal_period_name"),
        Index("idx_fiscal_period_dates", "start_date", "end_date"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Inclusive boundaries
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    has_opening_balances: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    monthly_periods: Mapped[list["MonthlyPeriod"]] = relationship(
        back_populates="fiscal_period",
        order_by="MonthlyPeriod.start_date",
    )

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.name} closed={self.is_closed}>"

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def close(self, actor_id: UUID, closed_at: datetime) -> None:
        """Close the period.

        Preconditions: Period is not already closed.
        Raises: ValueError if period is already closed.
        """
        if self.is_closed:
            raise ValueError(f"Fiscal period {self.name} is already closed")
        self.is_closed = True
        self.closed_at = closed_at
        self.closed_by_id = actor_id


class MonthlyPeriod(TrackedBase):
    """
    Calendar month within a fiscal period.

    Contract:
        A closed monthly period (or one whose fiscal period is closed)
        rejects new and edited entries dated within it.  Dates outside
        [start_date, end_date] are rejected unless allows_out_of_range_dates.
    """

    __tablename__ = "monthly_periods"

    __table_args__ = (
        UniqueConstraint("fiscal_period_id", "year", "month", name="uq_monthly_period_month"),
        Index("idx_monthly_period_dates", "start_date", "end_date"),
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    allows_out_of_range_dates: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    fiscal_period: Mapped[FiscalPeriod] = relationship(back_populates="monthly_periods")

    def __repr__(self) -> str:
        return f"<MonthlyPeriod {self.name} closed={self.is_closed}>"

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def close(self, actor_id: UUID, closed_at: datetime) -> None:
        """Close the month.

        Raises: ValueError if the month is already closed.
        """
        if self.is_closed:
            raise ValueError(f"Monthly period {self.name} is already closed")
        self.is_closed = True
        self.closed_at = closed_at
        self.closed_by_id = actor_id
