"""
ReopeningService -- period transition (opening balances).

Responsibility:
    Given a closed source fiscal period and an open, empty target fiscal
    period, computes the closing balance of every balance-sheet account in
    the source and materializes one balanced, posted opening entry in the
    target.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by LedgerApi.reopen_period() inside one ``session_scope()``.

Procedure:
    1. Lock the target period row (SELECT ... FOR UPDATE).
    2. Re-check readiness under the lock.
    3. Aggregate approved/posted lines dated within the source range.
    4. Discard zero balances; carry asset, liability and equity accounts on
       their natural side (negative balances on the opposite side).
    5. Run the Balance Validator over the generated lines.
    6. Insert the opening entry, flag the target as having opening
       balances, record activity.

Invariants enforced:
    - At most one opening entry per target: check-then-act under the target
      lock, backed by the uq_journal_opening_period constraint.
    - The opening entry always passes the Balance Validator.
    - All writes belong to the caller's transaction.

Failure modes:
    - PeriodNotFoundError: source or target does not exist.
    - PeriodNotReadyError: any other failed precondition (distinct message
      per rule).
    - AlreadyReopenedError: target already has opening balances, or a
      concurrent transition won the race.
    - OpeningEntryUnbalancedError: generated lines failed the validator.
      Logged at CRITICAL; never swallowed.

Audit relevance:
    The transition writes a PERIOD_REOPENED activity row for the target and
    logs ``period_reopened`` with the carried totals.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import ZERO, round_amount, sum_amounts
from ledger_kernel.domain.balance_validator import validate_balance
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    AccountBalance,
    AccountClass,
    EntryLine,
    EntryStatus,
    FiscalPeriodInfo,
    LineSide,
    ReadinessCheck,
    ReopeningResult,
)
from ledger_kernel.exceptions import (
    AlreadyReopenedError,
    DuplicateEntryNumberError,
    OpeningEntryUnbalancedError,
    PeriodNotFoundError,
    PeriodNotReadyError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.activity_log import ActivityAction
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.models.period import FiscalPeriod
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalEntryDTO, JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.activity_log_service import (
    ENTITY_FISCAL_PERIOD,
    ActivityLogService,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.entry_number_service import EntryNumberService
from ledger_kernel.services.period_service import PeriodService

logger = get_logger("services.reopening")

# Readiness codes
READY = "READY"
SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
SOURCE_NOT_CLOSED = "SOURCE_NOT_CLOSED"
TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
TARGET_CLOSED = "TARGET_CLOSED"
ALREADY_REOPENED = "ALREADY_REOPENED"
TARGET_HAS_ENTRIES = "TARGET_HAS_ENTRIES"
DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
RESULTS_NOT_CLOSED = "RESULTS_NOT_CLOSED"
ACCOUNT_NOT_POSTABLE = "ACCOUNT_NOT_POSTABLE"
NO_BALANCES = "NO_BALANCES"


@dataclass(frozen=True)
class _Assessment:
    """Readiness outcome plus the data gathered while checking it."""

    check: ReadinessCheck
    balances: tuple[AccountBalance, ...] = ()
    opening_entry_id: UUID | None = None


def _not_ready(code: str, message: str, opening_entry_id: UUID | None = None) -> _Assessment:
    return _Assessment(ReadinessCheck(False, message, code), opening_entry_id=opening_entry_id)


def _carried(balance: AccountBalance) -> bool:
    return balance.account_class.is_balance_sheet and round_amount(balance.balance) != ZERO


class ReopeningService(BaseService[FiscalPeriod]):
    """
    Service for period transitions.

    Contract:
        verify_ready_for_reopening() never writes and never raises for an
        unmet precondition.  reopen_period() either flushes exactly one
        opening entry plus the target flag, or raises.

    Non-goals:
        - Does NOT close the source period or post closing entries.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: EntryNumberService | None = None,
        periods: PeriodService | None = None,
        activity: ActivityLogService | None = None,
    ):
        super().__init__(session, clock)
        self._numbering = numbering or EntryNumberService(session)
        self._activity = activity or ActivityLogService(session, self.clock)
        self._periods = periods or PeriodService(session, self.clock, self._activity)
        self._accounts = AccountSelector(session)
        self._journal = JournalSelector(session)
        self._ledger = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def _existing_opening_entry_id(self, target_id: UUID) -> UUID | None:
        return self.session.execute(
            select(JournalEntry.id).where(JournalEntry.opening_for_period_id == target_id)
        ).scalar_one_or_none()

    def _assess(
        self,
        source: FiscalPeriod | None,
        target: FiscalPeriod | None,
        entry_date: date | None,
    ) -> _Assessment:
        if source is None:
            return _not_ready(SOURCE_NOT_FOUND, "The previous period does not exist")
        if not source.is_closed:
            return _not_ready(
                SOURCE_NOT_CLOSED,
                f"The previous period {source.name} must be closed before reopening",
            )
        if target is None:
            return _not_ready(TARGET_NOT_FOUND, "The new period does not exist")
        if target.is_closed:
            return _not_ready(TARGET_CLOSED, f"The new period {target.name} is closed")

        opening_entry_id = self._existing_opening_entry_id(target.id)
        if target.has_opening_balances or opening_entry_id is not None:
            return _not_ready(
                ALREADY_REOPENED,
                f"The new period {target.name} already has opening balances",
                opening_entry_id,
            )

        if self._journal.count_for_fiscal_period(target.id):
            return _not_ready(
                TARGET_HAS_ENTRIES,
                f"The new period {target.name} already has journal entries",
            )

        if entry_date is not None and not target.contains_date(entry_date):
            return _not_ready(
                DATE_OUT_OF_RANGE,
                f"The opening date {entry_date} is outside the new period "
                f"{target.name} ({target.start_date} to {target.end_date})",
            )

        balances = self._ledger.account_balances(source.start_date, source.end_date)

        unclosed = [
            b for b in balances
            if b.account_class.is_income_statement and round_amount(b.balance) != ZERO
        ]
        if unclosed:
            codes = ", ".join(b.code for b in unclosed)
            return _not_ready(
                RESULTS_NOT_CLOSED,
                f"Income and expense accounts of {source.name} still carry balances "
                f"({codes}); post the closing entries first",
            )

        carried = tuple(b for b in balances if _carried(b))
        if not carried:
            return _not_ready(
                NO_BALANCES,
                f"The previous period {source.name} has no balances to carry forward",
            )

        infos = self._accounts.resolve_refs(str(b.account_id) for b in carried)
        for balance in carried:
            info = infos.get(str(balance.account_id))
            if info is None or not info.is_postable:
                return _not_ready(
                    ACCOUNT_NOT_POSTABLE,
                    f"Account {balance.code} carries a balance but cannot receive entries",
                )

        return _Assessment(
            ReadinessCheck(True, "The periods are ready for reopening", READY),
            balances=carried,
        )

    def verify_ready_for_reopening(
        self,
        source_period_id: UUID,
        target_period_id: UUID,
        entry_date: date | None = None,
    ) -> ReadinessCheck:
        """
        Check every transition precondition without writing.

        Returns:
            ReadinessCheck; ``code`` names the first failed rule.
        """
        source = self.session.get(FiscalPeriod, source_period_id)
        target = self.session.get(FiscalPeriod, target_period_id)
        return self._assess(source, target, entry_date).check

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def _raise_not_ready(
        self,
        assessment: _Assessment,
        source_period_id: UUID,
        target: FiscalPeriod | None,
    ) -> None:
        check = assessment.check
        logger.warning(
            "period_reopen_rejected",
            extra={
                "source_period_id": str(source_period_id),
                "target_period_id": str(target.id) if target else None,
                "reason_code": check.code,
                "reason": check.message,
            },
        )
        if check.code == SOURCE_NOT_FOUND:
            raise PeriodNotFoundError(str(source_period_id), "fiscal period")
        if check.code == ALREADY_REOPENED:
            raise AlreadyReopenedError(
                str(target.id),
                target.name,
                str(assessment.opening_entry_id) if assessment.opening_entry_id else None,
            )
        raise PeriodNotReadyError(check.message, str(target.id) if target else None)

    def _opening_lines(self, balances: tuple[AccountBalance, ...]) -> list[EntryLine]:
        lines = []
        for balance in balances:
            amount = round_amount(balance.balance)
            side = balance.natural_side if amount > 0 else balance.natural_side.opposite
            lines.append(
                EntryLine(
                    account_ref=str(balance.account_id),
                    side=side,
                    amount=abs(amount),
                    description=balance.name,
                )
            )
        return lines

    @staticmethod
    def _class_total(balances: tuple[AccountBalance, ...], account_class: AccountClass) -> Decimal:
        return sum_amounts(b.balance for b in balances if b.account_class is account_class)

    def reopen_period(
        self,
        source_period_id: UUID,
        target_period_id: UUID,
        actor_id: UUID,
        entry_date: date | None = None,
        notes: str | None = None,
    ) -> ReopeningResult:
        """
        Carry the closing balances of the source period into the target.

        Args:
            entry_date: Date of the opening entry; defaults to the target's
                start date and must lie within the target.
            notes: Stored on the opening entry.

        Raises:
            PeriodNotFoundError, PeriodNotReadyError, AlreadyReopenedError,
            OpeningEntryUnbalancedError, SequenceUnavailableError.
        """
        target = self._periods.get_fiscal_for_update(target_period_id)
        if target is None:
            raise PeriodNotFoundError(str(target_period_id), "fiscal period")
        source = self.session.get(FiscalPeriod, source_period_id)

        entry_date = entry_date or target.start_date
        assessment = self._assess(source, target, entry_date)
        if not assessment.check.ready:
            self._raise_not_ready(assessment, source_period_id, target)

        balances = assessment.balances
        lines = self._opening_lines(balances)
        accounts = self._accounts.resolve_refs(line.account_ref for line in lines)

        check = validate_balance(lines, accounts)
        if not check.valid:
            logger.critical(
                "opening_entry_invariant_violated",
                extra={
                    "source_period_id": str(source.id),
                    "target_period_id": str(target.id),
                    "reason": check.message,
                },
            )
            raise OpeningEntryUnbalancedError(str(target.id), check.message)

        month = self._periods.find_monthly_period_for_date(target.id, entry_date)
        entry_number = self._numbering.next_number()
        now = self.clock.now()

        entry = JournalEntry(
            entry_number=entry_number,
            entry_date=entry_date,
            description=f"Opening balances {target.name}",
            reference_number=f"OPEN-{target.name}",
            notes=notes,
            monthly_period_id=month.id if month else None,
            fiscal_period_id=target.id,
            status=EntryStatus.POSTED.value,
            total_debit=check.total_debit,
            total_credit=check.total_credit,
            is_balanced=True,
            is_opening_entry=True,
            opening_for_period_id=target.id,
            approved_by_id=actor_id,
            approved_at=now,
            posted_by_id=actor_id,
            posted_at=now,
            created_by_id=actor_id,
        )
        entry.lines = [
            JournalLine(
                account_id=accounts[line.account_ref].id,
                side=line.side.value,
                amount=line.amount,
                description=line.description,
                line_seq=seq,
                created_by_id=actor_id,
            )
            for seq, line in enumerate(check.lines)
        ]
        self.session.add(entry)

        target.has_opening_balances = True
        target.updated_by_id = actor_id

        try:
            self.session.flush()
        except IntegrityError as exc:
            message = str(exc.orig)
            if "opening" in message:
                logger.warning(
                    "period_reopen_conflict",
                    extra={"target_period_id": str(target.id)},
                )
                raise AlreadyReopenedError(str(target.id), target.name) from exc
            if "entry_number" in message:
                raise DuplicateEntryNumberError(entry_number) from exc
            raise

        result = ReopeningResult(
            opening_entry_id=entry.id,
            entry_number=entry_number,
            total_assets=self._class_total(balances, AccountClass.ASSET),
            total_liabilities=self._class_total(balances, AccountClass.LIABILITY),
            total_equity=self._class_total(balances, AccountClass.EQUITY),
            line_count=len(check.lines),
        )

        self._activity.record(
            ActivityAction.PERIOD_REOPENED,
            ENTITY_FISCAL_PERIOD,
            target.id,
            actor_id,
            f"Opening balances of {target.name} carried from {source.name}",
            payload={
                "source_period_id": str(source.id),
                "opening_entry_id": str(entry.id),
                "total_assets": str(result.total_assets),
                "total_liabilities": str(result.total_liabilities),
                "total_equity": str(result.total_equity),
            },
        )

        with LogContext.bind(period_id=str(target.id), actor_id=str(actor_id)):
            logger.info(
                "period_reopened",
                extra={
                    "source_period_id": str(source.id),
                    "opening_entry_id": str(entry.id),
                    "entry_number": entry_number,
                    "line_count": result.line_count,
                    "total_assets": str(result.total_assets),
                    "total_liabilities": str(result.total_liabilities),
                    "total_equity": str(result.total_equity),
                },
            )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_opening_entry(self, fiscal_period_id: UUID) -> JournalEntryDTO | None:
        return self._journal.get_opening_entry(fiscal_period_id)

    def periods_ready_for_reopening(self) -> list[FiscalPeriodInfo]:
        """Closed fiscal periods, newest first."""
        return self._periods.closed_fiscal_periods()

    def target_periods_for_reopening(self, source_period_id: UUID) -> list[FiscalPeriodInfo]:
        return self._periods.open_target_periods(source_period_id)
