"""
PeriodService -- accounting period lifecycle and entry-date validation.

Responsibility:
    Creates fiscal periods and their monthly periods, closes them, and
    decides whether an entry dated on a given day may be written into a
    given monthly period.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalService before every create/update, and by
    ReopeningService to lock the target period of a transition.

Invariants enforced:
    - A monthly period is closed for entries when its own flag is set or
      its fiscal period is closed.  ``validate_entry_date()`` enforces it.
    - Closing is monotonic; close() never clears a flag.
    - A period with draft or pending entries cannot be closed.
    - Closing a fiscal period closes all of its monthly periods.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: unknown fiscal or monthly period.
    - PeriodClosedError: entry targets a closed period, or close of an
      already-closed period.
    - PeriodInactiveError: monthly period is deactivated.
    - DateOutOfRangeError: entry date outside the monthly period.
    - PeriodOverlapError: new fiscal period overlaps an existing one.
    - UnapprovedEntriesError: close blocked by draft/pending entries.

Audit relevance:
    Period creation and close are logged with structured fields and written
    to the activity log.  Validation failures are logged at WARNING level.
"""

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    EDITABLE_STATUSES,
    FiscalPeriodInfo,
    MonthlyPeriodInfo,
)
from ledger_kernel.exceptions import (
    DateOutOfRangeError,
    PeriodClosedError,
    PeriodInactiveError,
    PeriodNotFoundError,
    PeriodOverlapError,
    UnapprovedEntriesError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.activity_log import ActivityAction
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.period import FiscalPeriod, MonthlyPeriod
from ledger_kernel.services.activity_log_service import (
    ENTITY_FISCAL_PERIOD,
    ENTITY_MONTHLY_PERIOD,
    ActivityLogService,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


def row_lock_query(model, row_id: UUID, shared: bool = False):
    """SELECT of one period row with FOR UPDATE, or FOR SHARE when ``shared``."""
    return (
        select(model)
        .where(model.id == row_id)
        .with_for_update(read=shared)
        .execution_options(populate_existing=True)
    )


def fiscal_to_dto(period: FiscalPeriod) -> FiscalPeriodInfo:
    return FiscalPeriodInfo(
        id=period.id,
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        is_closed=period.is_closed,
        has_opening_balances=period.has_opening_balances,
        closed_at=period.closed_at,
        closed_by_id=period.closed_by_id,
    )


def monthly_to_dto(period: MonthlyPeriod) -> MonthlyPeriodInfo:
    return MonthlyPeriodInfo(
        id=period.id,
        fiscal_period_id=period.fiscal_period_id,
        name=period.name,
        year=period.year,
        month=period.month,
        start_date=period.start_date,
        end_date=period.end_date,
        is_active=period.is_active,
        is_closed=period.is_closed,
        allows_out_of_range_dates=period.allows_out_of_range_dates,
        closed_at=period.closed_at,
        closed_by_id=period.closed_by_id,
    )


class PeriodService(BaseService[FiscalPeriod]):
    """
    Service for accounting period lifecycle.

    Contract:
        Returns frozen FiscalPeriodInfo / MonthlyPeriodInfo DTOs.  Validation
        methods raise typed PeriodError subclasses.  Lifecycle methods flush
        within the caller's transaction.

    Non-goals:
        - Does NOT reopen closed periods.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity: ActivityLogService | None = None,
    ):
        super().__init__(session, clock)
        self._activity = activity or ActivityLogService(session, self.clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_fiscal_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> FiscalPeriodInfo:
        """
        Create a fiscal period.

        Raises:
            ValueError: If start_date > end_date.
            PeriodOverlapError: If the range overlaps an existing period.
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )

        overlapping = self.session.execute(
            select(FiscalPeriod)
            .where(
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodOverlapError(name, overlapping.name)

        period = FiscalPeriod(
            name=name,
            start_date=start_date,
            end_date=end_date,
            is_closed=False,
            has_opening_balances=False,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "fiscal_period_created",
            extra={
                "period_id": str(period.id),
                "period_name": name,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return fiscal_to_dto(period)

    def generate_monthly_periods(
        self,
        fiscal_period_id: UUID,
        actor_id: UUID,
    ) -> list[MonthlyPeriodInfo]:
        """
        Create one monthly period per calendar month of the fiscal period.

        Months are clipped to the fiscal range.  Months that already exist
        are left untouched.

        Raises:
            PeriodNotFoundError: Unknown fiscal period.
        """
        fiscal = self.session.get(FiscalPeriod, fiscal_period_id)
        if fiscal is None:
            raise PeriodNotFoundError(str(fiscal_period_id), "fiscal period")

        existing = {
            (row.year, row.month)
            for row in self.session.execute(
                select(MonthlyPeriod).where(MonthlyPeriod.fiscal_period_id == fiscal.id)
            ).scalars()
        }

        created: list[MonthlyPeriod] = []
        cursor = fiscal.start_date.replace(day=1)
        while cursor <= fiscal.end_date:
            last_day = calendar.monthrange(cursor.year, cursor.month)[1]
            month_end = cursor.replace(day=last_day)
            if (cursor.year, cursor.month) not in existing:
                month = MonthlyPeriod(
                    fiscal_period_id=fiscal.id,
                    name=f"{calendar.month_name[cursor.month]} {cursor.year}",
                    year=cursor.year,
                    month=cursor.month,
                    start_date=max(cursor, fiscal.start_date),
                    end_date=min(month_end, fiscal.end_date),
                    is_active=True,
                    is_closed=False,
                    created_by_id=actor_id,
                )
                self.session.add(month)
                created.append(month)
            cursor = month_end + timedelta(days=1)

        self.session.flush()
        logger.info(
            "monthly_periods_generated",
            extra={"period_id": str(fiscal.id), "count": len(created)},
        )
        return [monthly_to_dto(month) for month in created]

    def set_monthly_period_active(
        self,
        monthly_period_id: UUID,
        active: bool,
        actor_id: UUID,
    ) -> MonthlyPeriodInfo:
        """Activate or deactivate a monthly period for new entries."""
        month = self._monthly_or_raise(monthly_period_id)
        month.is_active = active
        month.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "monthly_period_activation_changed",
            extra={"period_id": str(monthly_period_id), "is_active": active},
        )
        return monthly_to_dto(month)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _monthly_or_raise(self, monthly_period_id: UUID) -> MonthlyPeriod:
        month = self.session.get(MonthlyPeriod, monthly_period_id)
        if month is None:
            raise PeriodNotFoundError(str(monthly_period_id), "monthly period")
        return month

    def _lock_row(self, model, row_id: UUID, shared: bool = False):
        return self.session.execute(row_lock_query(model, row_id, shared)).scalar_one_or_none()

    def get_fiscal_for_update(self, fiscal_period_id: UUID) -> FiscalPeriod | None:
        """ORM fiscal period with a row lock held until the transaction ends."""
        return self._lock_row(FiscalPeriod, fiscal_period_id)

    def _monthly_for_update(self, monthly_period_id: UUID) -> MonthlyPeriod | None:
        return self._lock_row(MonthlyPeriod, monthly_period_id)

    def get_fiscal_period(self, fiscal_period_id: UUID) -> FiscalPeriodInfo | None:
        period = self.session.get(FiscalPeriod, fiscal_period_id)
        return fiscal_to_dto(period) if period else None

    def get_monthly_period(self, monthly_period_id: UUID) -> MonthlyPeriodInfo | None:
        month = self.session.get(MonthlyPeriod, monthly_period_id)
        return monthly_to_dto(month) if month else None

    def monthly_periods(self, fiscal_period_id: UUID) -> list[MonthlyPeriodInfo]:
        """Monthly periods of a fiscal period in date order."""
        months = self.session.execute(
            select(MonthlyPeriod)
            .where(MonthlyPeriod.fiscal_period_id == fiscal_period_id)
            .order_by(MonthlyPeriod.start_date)
        ).scalars()
        return [monthly_to_dto(month) for month in months]

    def find_monthly_period_for_date(
        self,
        fiscal_period_id: UUID,
        check_date: date,
    ) -> MonthlyPeriodInfo | None:
        """Monthly period of the fiscal period that contains the date."""
        month = self.session.execute(
            select(MonthlyPeriod).where(
                MonthlyPeriod.fiscal_period_id == fiscal_period_id,
                MonthlyPeriod.start_date <= check_date,
                MonthlyPeriod.end_date >= check_date,
            )
        ).scalar_one_or_none()
        return monthly_to_dto(month) if month else None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_monthly_period_closed(self, monthly_period_id: UUID) -> bool:
        """True if the month is missing, closed, or its fiscal period is closed."""
        month = self.session.get(MonthlyPeriod, monthly_period_id)
        if month is None:
            return True
        return month.is_closed or month.fiscal_period.is_closed

    def validate_entry_date(
        self,
        monthly_period_id: UUID,
        entry_date: date,
    ) -> MonthlyPeriodInfo:
        """
        Check that an entry dated ``entry_date`` may be written into the month.

        Postconditions:
            Returns the monthly period only if it exists, it and its fiscal
            period are open, it is active, and the date is within its range
            (or the month allows out-of-range dates).

        Locking:
            Takes shared row locks on the fiscal period, then the month,
            held until the transaction ends.  A concurrent close (which
            locks the same rows FOR UPDATE) waits for this transaction and
            then sees its entry when counting unapproved entries.

        Raises:
            PeriodNotFoundError, PeriodClosedError, PeriodInactiveError,
            DateOutOfRangeError.
        """
        fiscal_period_id = self.session.execute(
            select(MonthlyPeriod.fiscal_period_id).where(MonthlyPeriod.id == monthly_period_id)
        ).scalar_one_or_none()
        month = None
        if fiscal_period_id is not None:
            # Same order as close_fiscal_period: fiscal row first
            self._lock_row(FiscalPeriod, fiscal_period_id, shared=True)
            month = self._lock_row(MonthlyPeriod, monthly_period_id, shared=True)
        if month is None:
            logger.warning(
                "entry_period_not_found",
                extra={"period_id": str(monthly_period_id)},
            )
            raise PeriodNotFoundError(str(monthly_period_id), "monthly period")

        if month.is_closed:
            logger.warning("entry_period_closed", extra={"period_id": str(month.id)})
            raise PeriodClosedError(str(month.id), month.name)

        fiscal = month.fiscal_period
        if fiscal.is_closed:
            logger.warning("entry_fiscal_period_closed", extra={"period_id": str(fiscal.id)})
            raise PeriodClosedError(
                str(month.id),
                month.name,
                reason=f"fiscal period {fiscal.name} is closed",
            )

        if not month.is_active:
            logger.warning("entry_period_inactive", extra={"period_id": str(month.id)})
            raise PeriodInactiveError(str(month.id), month.name)

        if not month.contains_date(entry_date) and not month.allows_out_of_range_dates:
            logger.warning(
                "entry_date_out_of_range",
                extra={"period_id": str(month.id), "entry_date": str(entry_date)},
            )
            raise DateOutOfRangeError(
                str(entry_date),
                month.name,
                str(month.start_date),
                str(month.end_date),
            )

        return monthly_to_dto(month)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def _count_unapproved(self, *conditions) -> int:
        return self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.status.in_([status.value for status in EDITABLE_STATUSES]),
                *conditions,
            )
        ).scalar_one()

    def close_monthly_period(self, monthly_period_id: UUID, actor_id: UUID) -> MonthlyPeriodInfo:
        """
        Close a monthly period.

        Uses SELECT FOR UPDATE to serialize concurrent close attempts.

        Raises:
            PeriodNotFoundError: Unknown period.
            PeriodClosedError: Already closed.
            UnapprovedEntriesError: Draft or pending entries remain.
        """
        month = self._monthly_for_update(monthly_period_id)
        if month is None:
            raise PeriodNotFoundError(str(monthly_period_id), "monthly period")
        if month.is_closed:
            raise PeriodClosedError(str(month.id), month.name, reason="already closed")

        unapproved = self._count_unapproved(JournalEntry.monthly_period_id == month.id)
        if unapproved:
            logger.warning(
                "period_close_blocked",
                extra={"period_id": str(month.id), "unapproved_entries": unapproved},
            )
            raise UnapprovedEntriesError(str(month.id), month.name, unapproved)

        month.close(actor_id, self.clock.now())
        month.updated_by_id = actor_id
        self.session.flush()

        self._activity.record(
            ActivityAction.PERIOD_CLOSED,
            ENTITY_MONTHLY_PERIOD,
            month.id,
            actor_id,
            f"Closed monthly period {month.name}",
        )
        logger.info("monthly_period_closed", extra={"period_id": str(month.id)})
        return monthly_to_dto(month)

    def close_fiscal_period(self, fiscal_period_id: UUID, actor_id: UUID) -> FiscalPeriodInfo:
        """
        Close a fiscal period and every monthly period it owns.

        Raises:
            PeriodNotFoundError: Unknown period.
            PeriodClosedError: Already closed.
            UnapprovedEntriesError: Draft or pending entries remain.
        """
        fiscal = self.get_fiscal_for_update(fiscal_period_id)
        if fiscal is None:
            raise PeriodNotFoundError(str(fiscal_period_id), "fiscal period")
        if fiscal.is_closed:
            raise PeriodClosedError(str(fiscal.id), fiscal.name, reason="already closed")

        unapproved = self._count_unapproved(JournalEntry.fiscal_period_id == fiscal.id)
        if unapproved:
            logger.warning(
                "period_close_blocked",
                extra={"period_id": str(fiscal.id), "unapproved_entries": unapproved},
            )
            raise UnapprovedEntriesError(str(fiscal.id), fiscal.name, unapproved)

        closed_at = self.clock.now()
        fiscal.close(actor_id, closed_at)
        fiscal.updated_by_id = actor_id

        cascaded = 0
        for month in fiscal.monthly_periods:
            if not month.is_closed:
                month.close(actor_id, closed_at)
                month.updated_by_id = actor_id
                cascaded += 1
        self.session.flush()

        self._activity.record(
            ActivityAction.PERIOD_CLOSED,
            ENTITY_FISCAL_PERIOD,
            fiscal.id,
            actor_id,
            f"Closed fiscal period {fiscal.name}",
            payload={"monthly_periods_closed": cascaded},
        )
        logger.info(
            "fiscal_period_closed",
            extra={"period_id": str(fiscal.id), "monthly_periods_closed": cascaded},
        )
        return fiscal_to_dto(fiscal)

    def closed_fiscal_periods(self) -> list[FiscalPeriodInfo]:
        """Closed fiscal periods, newest first: candidate transition sources."""
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.is_closed.is_(True))
            .order_by(FiscalPeriod.start_date.desc())
        ).scalars()
        return [fiscal_to_dto(period) for period in periods]

    def open_target_periods(self, source_period_id: UUID) -> list[FiscalPeriodInfo]:
        """
        Open fiscal periods starting after the source ends that do not yet
        have opening balances: candidate transition targets.
        """
        source = self.session.get(FiscalPeriod, source_period_id)
        if source is None:
            raise PeriodNotFoundError(str(source_period_id), "fiscal period")
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(
                FiscalPeriod.is_closed.is_(False),
                FiscalPeriod.has_opening_balances.is_(False),
                FiscalPeriod.start_date > source.end_date,
            )
            .order_by(FiscalPeriod.start_date)
        ).scalars()
        return [fiscal_to_dto(period) for period in periods]
