"""
JournalService -- journal entry lifecycle.

Responsibility:
    Creates, edits, submits, approves, posts, voids and deletes journal
    entries.  Owns the status state machine; delegates arithmetic to the
    Balance Validator, date legality to PeriodService and numbering to
    EntryNumberService.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by LedgerApi inside one ``session_scope()`` per operation.

State machine:

    draft --submit--> pending --approve--> approved --post--> posted
      |                  |
      +------void--------+------> voided
    draft --approve--> approved

    Draft and pending entries are editable and deletable.  Approved,
    posted and voided entries are never structurally edited or deleted.

Invariants enforced:
    - Period legality is checked first, then the lines; both before any
      write (including the entry number allocation).
    - An entry is only ever persisted with is_balanced True and totals equal
      to the rounded sums of its lines.
    - Number allocation and entry insert happen in the same transaction.
    - Voiding keeps the description and appends the reason to the notes.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodError subclasses from PeriodService.validate_entry_date().
    - InvalidLineError / UnbalancedEntryError from the Balance Validator.
    - StateError subclasses for illegal transitions.
    - DuplicateEntryNumberError when the insert hits uq_journal_entry_number.
    - SequenceUnavailableError from EntryNumberService.

Audit relevance:
    Every transition writes an ActivityLog row in the same transaction and
    emits a structured log event.
"""

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.balance_validator import raise_for_check, validate_balance
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.line_input import account_ref_of
from ledger_kernel.domain.dtos import (
    APPROVED_STATUSES,
    AccountInfo,
    AdjustmentType,
    BalanceCheck,
    EntryHeader,
    EntryStatus,
    MonthlyPeriodInfo,
)
from ledger_kernel.exceptions import (
    DuplicateEntryNumberError,
    EntryAlreadyApprovedError,
    EntryAlreadyVoidedError,
    EntryNotDeletableError,
    EntryNotFoundError,
    EntryVoidedError,
    ImmutableEntryError,
    InvalidTransitionError,
    PeriodClosedError,
    VoidNotAllowedError,
    VoidReasonRequiredError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.activity_log import ActivityAction
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.activity_log_service import (
    ENTITY_JOURNAL_ENTRY,
    ActivityLogService,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.entry_number_service import EntryNumberService
from ledger_kernel.services.period_service import PeriodService

logger = get_logger("services.journal")

DEFAULT_VOID_ANNOTATION = "VOIDED"


class JournalService(BaseService[JournalEntry]):
    """
    Service for the journal entry lifecycle.

    Contract:
        Each public method performs one lifecycle operation and flushes its
        changes into the caller's transaction.  Errors are raised before any
        write where the failure is detectable up front; otherwise the caller
        rolls back.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT reverse approved entries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: EntryNumberService | None = None,
        periods: PeriodService | None = None,
        activity: ActivityLogService | None = None,
        void_annotation: str = DEFAULT_VOID_ANNOTATION,
    ):
        super().__init__(session, clock)
        self._numbering = numbering or EntryNumberService(session)
        self._activity = activity or ActivityLogService(session, self.clock)
        self._periods = periods or PeriodService(session, self.clock, self._activity)
        self._accounts = AccountSelector(session)
        self._void_annotation = void_annotation

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def check_lines(self, lines: Iterable[Any]) -> tuple[BalanceCheck, dict[str, AccountInfo]]:
        """
        Run the Balance Validator against the chart of accounts.

        Does not raise; the returned BalanceCheck carries the outcome.
        """
        raw_lines = list(lines)
        accounts = self._accounts.resolve_refs(account_ref_of(raw) for raw in raw_lines)
        return validate_balance(raw_lines, accounts), accounts

    def _validated_lines(self, lines: Iterable[Any]) -> tuple[BalanceCheck, dict[str, AccountInfo]]:
        check, accounts = self.check_lines(lines)
        if not check.valid:
            logger.warning(
                "journal_entry_rejected",
                extra={"reason": check.message, "failed_rule": check.failed_rule},
            )
        raise_for_check(check)
        return check, accounts

    def _adjustment_fields(
        self,
        header: EntryHeader,
    ) -> tuple[bool, str | None, UUID | None]:
        if not header.is_adjustment:
            return False, None, None
        adjustment_type = (
            AdjustmentType(header.adjustment_type).value if header.adjustment_type else None
        )
        adjusted_entry_id = header.adjusted_entry_id
        if adjusted_entry_id is not None and self.session.get(JournalEntry, adjusted_entry_id) is None:
            raise EntryNotFoundError(str(adjusted_entry_id))
        return True, adjustment_type, adjusted_entry_id

    def _build_lines(
        self,
        check: BalanceCheck,
        accounts: dict[str, AccountInfo],
        actor_id: UUID,
    ) -> list[JournalLine]:
        return [
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

    def _fiscal_period_id(self, header: EntryHeader, month: MonthlyPeriodInfo) -> UUID:
        if header.fiscal_period_id is not None and header.fiscal_period_id != month.fiscal_period_id:
            logger.warning(
                "entry_fiscal_period_overridden",
                extra={
                    "given": str(header.fiscal_period_id),
                    "derived": str(month.fiscal_period_id),
                },
            )
        return month.fiscal_period_id

    def _get_for_update(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def _flush_entry(self, entry_number: str) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            if "entry_number" in str(exc.orig):
                logger.error(
                    "entry_number_collision",
                    extra={"entry_number": entry_number},
                )
                raise DuplicateEntryNumberError(entry_number) from exc
            raise

    def _record(
        self,
        action: ActivityAction,
        entry: JournalEntry,
        actor_id: UUID,
        description: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        self._activity.record(
            action,
            ENTITY_JOURNAL_ENTRY,
            entry.id,
            actor_id,
            description,
            payload=payload,
        )

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create(self, header: EntryHeader, lines: Iterable[Any], actor_id: UUID) -> UUID:
        """
        Create a draft journal entry.

        Preconditions:
            The monthly period is open and active, the entry date lies in it
            (unless it permits out-of-range dates), and the lines pass the
            Balance Validator.

        Postconditions:
            A DRAFT entry with a freshly allocated entry number and its lines
            is flushed; the entry id is returned.
        """
        month = self._periods.validate_entry_date(header.monthly_period_id, header.entry_date)
        check, accounts = self._validated_lines(lines)
        is_adjustment, adjustment_type, adjusted_entry_id = self._adjustment_fields(header)

        entry_number = self._numbering.next_number()

        entry = JournalEntry(
            entry_number=entry_number,
            entry_date=header.entry_date,
            description=header.description,
            reference_number=header.reference_number,
            reference_date=header.reference_date,
            notes=header.notes,
            monthly_period_id=month.id,
            fiscal_period_id=self._fiscal_period_id(header, month),
            status=EntryStatus.DRAFT.value,
            total_debit=check.total_debit,
            total_credit=check.total_credit,
            is_balanced=True,
            is_adjustment=is_adjustment,
            adjustment_type=adjustment_type,
            adjusted_entry_id=adjusted_entry_id,
            created_by_id=actor_id,
        )
        entry.lines = self._build_lines(check, accounts, actor_id)
        self.session.add(entry)
        self._flush_entry(entry_number)

        self._record(
            ActivityAction.ENTRY_CREATED,
            entry,
            actor_id,
            f"Created journal entry {entry_number}",
            payload={"total_debit": str(check.total_debit)},
        )

        with LogContext.bind(entry_id=str(entry.id), actor_id=str(actor_id)):
            logger.info(
                "journal_entry_created",
                extra={
                    "entry_number": entry_number,
                    "line_count": len(check.lines),
                    "total_debit": str(check.total_debit),
                    "total_credit": str(check.total_credit),
                },
            )
        return entry.id

    def update(
        self,
        entry_id: UUID,
        header: EntryHeader,
        lines: Iterable[Any],
        actor_id: UUID,
    ) -> None:
        """
        Replace the header fields and all lines of a draft or pending entry.

        The entry number and status are kept.  Both the entry's current
        period and the requested period must be open.

        Raises:
            EntryNotFoundError, ImmutableEntryError, PeriodError subclasses,
            InvalidLineError, UnbalancedEntryError.
        """
        entry = self._get_for_update(entry_id)
        if not entry.is_editable:
            logger.warning(
                "journal_entry_update_rejected",
                extra={"entry_id": str(entry_id), "status": entry.status},
            )
            raise ImmutableEntryError(str(entry_id), entry.status)

        if entry.monthly_period_id is not None and self._periods.is_monthly_period_closed(
            entry.monthly_period_id
        ):
            current = self._periods.get_monthly_period(entry.monthly_period_id)
            raise PeriodClosedError(
                str(entry.monthly_period_id),
                current.name if current else str(entry.monthly_period_id),
            )

        month = self._periods.validate_entry_date(header.monthly_period_id, header.entry_date)
        check, accounts = self._validated_lines(lines)
        is_adjustment, adjustment_type, adjusted_entry_id = self._adjustment_fields(header)
        if adjusted_entry_id == entry.id:
            raise InvalidTransitionError(str(entry_id), "entry", "adjustment of itself")

        entry.entry_date = header.entry_date
        entry.description = header.description
        entry.reference_number = header.reference_number
        entry.reference_date = header.reference_date
        entry.notes = header.notes
        entry.monthly_period_id = month.id
        entry.fiscal_period_id = self._fiscal_period_id(header, month)
        entry.is_adjustment = is_adjustment
        entry.adjustment_type = adjustment_type
        entry.adjusted_entry_id = adjusted_entry_id
        entry.total_debit = check.total_debit
        entry.total_credit = check.total_credit
        entry.is_balanced = True
        entry.updated_by_id = actor_id

        # delete-orphan removes the previous lines on flush
        entry.lines = self._build_lines(check, accounts, actor_id)
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_UPDATED,
            entry,
            actor_id,
            f"Updated journal entry {entry.entry_number}",
        )
        logger.info(
            "journal_entry_updated",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "line_count": len(check.lines),
            },
        )

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def submit(self, entry_id: UUID, actor_id: UUID) -> None:
        """Move a draft entry to pending review."""
        entry = self._get_for_update(entry_id)
        status = EntryStatus(entry.status)
        if status is EntryStatus.VOIDED:
            raise EntryVoidedError(str(entry_id))
        if status is not EntryStatus.DRAFT:
            raise InvalidTransitionError(str(entry_id), status.value, EntryStatus.PENDING.value)

        entry.status = EntryStatus.PENDING.value
        entry.updated_by_id = actor_id
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_SUBMITTED,
            entry,
            actor_id,
            f"Submitted journal entry {entry.entry_number} for approval",
        )
        logger.info("journal_entry_submitted", extra={"entry_id": str(entry.id)})

    def approve(self, entry_id: UUID, actor_id: UUID) -> None:
        """
        Approve a draft or pending entry.

        Raises:
            EntryNotFoundError, EntryVoidedError, EntryAlreadyApprovedError.
        """
        entry = self._get_for_update(entry_id)
        status = EntryStatus(entry.status)
        if status is EntryStatus.VOIDED:
            raise EntryVoidedError(str(entry_id))
        if status in APPROVED_STATUSES:
            raise EntryAlreadyApprovedError(str(entry_id), status.value)

        entry.status = EntryStatus.APPROVED.value
        entry.approved_by_id = actor_id
        entry.approved_at = self.clock.now()
        entry.updated_by_id = actor_id
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_APPROVED,
            entry,
            actor_id,
            f"Approved journal entry {entry.entry_number}",
        )
        logger.info(
            "journal_entry_approved",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )

    def post(self, entry_id: UUID, actor_id: UUID) -> None:
        """Post an approved entry."""
        entry = self._get_for_update(entry_id)
        status = EntryStatus(entry.status)
        if status is EntryStatus.VOIDED:
            raise EntryVoidedError(str(entry_id))
        if status is not EntryStatus.APPROVED:
            raise InvalidTransitionError(str(entry_id), status.value, EntryStatus.POSTED.value)

        entry.status = EntryStatus.POSTED.value
        entry.posted_by_id = actor_id
        entry.posted_at = self.clock.now()
        entry.updated_by_id = actor_id
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_POSTED,
            entry,
            actor_id,
            f"Posted journal entry {entry.entry_number}",
        )
        logger.info(
            "journal_entry_posted",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )

    def void(self, entry_id: UUID, actor_id: UUID, reason: str) -> None:
        """
        Void a draft or pending entry.

        The description is preserved; ``"<annotation>: <reason>"`` is
        appended to the notes.

        Raises:
            VoidReasonRequiredError: reason is empty or whitespace.
            EntryNotFoundError, EntryAlreadyVoidedError, VoidNotAllowedError.
        """
        reason = (reason or "").strip()
        if not reason:
            raise VoidReasonRequiredError(str(entry_id))

        entry = self._get_for_update(entry_id)
        status = EntryStatus(entry.status)
        if status is EntryStatus.VOIDED:
            raise EntryAlreadyVoidedError(str(entry_id))
        if status in APPROVED_STATUSES:
            logger.warning(
                "journal_entry_void_rejected",
                extra={"entry_id": str(entry_id), "status": status.value},
            )
            raise VoidNotAllowedError(str(entry_id), status.value)

        annotation = f"{self._void_annotation}: {reason}"
        entry.notes = f"{entry.notes} | {annotation}" if entry.notes else annotation
        entry.status = EntryStatus.VOIDED.value
        entry.voided_by_id = actor_id
        entry.voided_at = self.clock.now()
        entry.updated_by_id = actor_id
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_VOIDED,
            entry,
            actor_id,
            f"Voided journal entry {entry.entry_number}",
            payload={"reason": reason},
        )
        logger.info(
            "journal_entry_voided",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )

    def delete(self, entry_id: UUID, actor_id: UUID) -> None:
        """
        Delete a draft or pending entry together with its lines.

        Lines are deleted before the header.  Entries referenced as the
        adjusted entry of another entry cannot be deleted.

        Raises:
            EntryNotFoundError, EntryNotDeletableError.
        """
        entry = self._get_for_update(entry_id)
        if not entry.is_editable:
            raise EntryNotDeletableError(str(entry_id), entry.status)

        referencing = self.session.execute(
            select(func.count(JournalEntry.id)).where(JournalEntry.adjusted_entry_id == entry.id)
        ).scalar_one()
        if referencing:
            raise EntryNotDeletableError(str(entry_id), "referenced by an adjustment entry")

        entry_number = entry.entry_number
        entry.lines.clear()
        self.session.flush()
        self.session.delete(entry)
        self.session.flush()

        self._activity.record(
            ActivityAction.ENTRY_DELETED,
            ENTITY_JOURNAL_ENTRY,
            entry_id,
            actor_id,
            f"Deleted journal entry {entry_number}",
        )
        logger.info(
            "journal_entry_deleted",
            extra={"entry_id": str(entry_id), "entry_number": entry_number},
        )

    def mark_as_adjustment(
        self,
        entry_id: UUID,
        adjustment_type: AdjustmentType | str,
        actor_id: UUID,
        adjusted_entry_id: UUID | None = None,
    ) -> None:
        """
        Tag a non-voided entry as an adjustment.

        Descriptive only: the status and lines are left untouched.
        """
        adjustment_type = AdjustmentType(adjustment_type)
        entry = self._get_for_update(entry_id)
        if entry.is_voided:
            raise EntryVoidedError(str(entry_id))
        if adjusted_entry_id is not None:
            if adjusted_entry_id == entry.id:
                raise InvalidTransitionError(str(entry_id), "entry", "adjustment of itself")
            if self.session.get(JournalEntry, adjusted_entry_id) is None:
                raise EntryNotFoundError(str(adjusted_entry_id))

        entry.is_adjustment = True
        entry.adjustment_type = adjustment_type.value
        entry.adjusted_entry_id = adjusted_entry_id
        entry.updated_by_id = actor_id
        self.session.flush()

        self._record(
            ActivityAction.ENTRY_MARKED_ADJUSTMENT,
            entry,
            actor_id,
            f"Marked journal entry {entry.entry_number} as {adjustment_type.value} adjustment",
        )
        logger.info(
            "journal_entry_marked_adjustment",
            extra={"entry_id": str(entry.id), "adjustment_type": adjustment_type.value},
        )
