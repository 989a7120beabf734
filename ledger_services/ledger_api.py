"""
ledger_services.ledger_api -- public operations of the ledger.

Responsibility:
    The exposed interface of the system: balance validation, the journal
    entry lifecycle, period transitions and the supporting period, account
    and query operations.  Each call is one atomic unit of work.

Architecture position:
    Services -- outermost layer.  Owns transaction boundaries through
    ``session_scope()`` and builds a LedgerContext per call.

Invariants enforced:
    - One transaction per operation: commit on success, full rollback on any
      error, so a rejected operation leaves entries, lines, periods and
      counters exactly as before.
    - Kernel errors (LedgerKernelError subclasses) propagate unchanged.
    - Any other SQLAlchemyError is wrapped in StoreError with the cause
      attached.

Usage:
    api = LedgerApi.from_settings(get_active_settings())
    entry_id = api.create_entry(header, lines, actor_id)
    api.approve_entry(entry_id, actor_id)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_config import LedgerSettings
from ledger_kernel.db.engine import (
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountClass,
    AccountInfo,
    AdjustmentType,
    BalanceCheck,
    EntryHeader,
    FiscalPeriodInfo,
    LineSide,
    MonthlyPeriodInfo,
    ReadinessCheck,
    ReopeningResult,
)
from ledger_kernel.exceptions import LedgerKernelError, StoreError
from ledger_kernel.logging_config import LogContext, configure_logging, get_logger
from ledger_kernel.selectors.journal_selector import EntryFilter, JournalEntryDTO
from ledger_services.ledger_context import LedgerContext

logger = get_logger("services.api")

T = TypeVar("T")


class LedgerApi:
    """
    Transactional facade over the ledger kernel.

    Contract:
        Every public method opens its own session, runs one kernel
        operation through a fresh LedgerContext and commits.  Results are
        ids or frozen DTOs; no ORM instance escapes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._settings = settings or LedgerSettings()
        self._clock = clock or SystemClock()

    @classmethod
    def from_settings(cls, settings: LedgerSettings, clock: Clock | None = None) -> LedgerApi:
        """Initialize logging and the engine from settings and build an api."""
        configure_logging(level=settings.logging.level)
        db = settings.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
        )
        return cls(get_session_factory(), settings, clock)

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def _unit(self, operation: str, **log_fields: Any) -> Iterator[LedgerContext]:
        with LogContext.bind(operation=operation, **log_fields):
            try:
                with session_scope(self._session_factory) as session:
                    yield LedgerContext(session, self._settings, self._clock)
            except LedgerKernelError:
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "store_error",
                    extra={"operation": operation, "error": type(exc).__name__},
                )
                raise StoreError(operation, exc) from exc

    def _run(self, operation: str, fn: Callable[[LedgerContext], T], **log_fields: Any) -> T:
        with self._unit(operation, **log_fields) as ctx:
            return fn(ctx)

    # ------------------------------------------------------------------
    # Balance validation
    # ------------------------------------------------------------------

    def validate_balance(self, lines: Iterable[Any]) -> BalanceCheck:
        """
        Check candidate lines without writing anything.

        ``result.as_dict()`` gives the ``{valid, message}`` shape.
        """
        lines = list(lines)
        return self._run("validate_balance", lambda ctx: ctx.journal.check_lines(lines)[0])

    # ------------------------------------------------------------------
    # Journal entry lifecycle
    # ------------------------------------------------------------------

    def create_entry(self, header: EntryHeader, lines: Iterable[Any], actor_id: UUID) -> UUID:
        lines = list(lines)
        return self._run(
            "create_entry",
            lambda ctx: ctx.journal.create(header, lines, actor_id),
            actor_id=actor_id,
        )

    def update_entry(
        self,
        entry_id: UUID,
        header: EntryHeader,
        lines: Iterable[Any],
        actor_id: UUID,
    ) -> None:
        lines = list(lines)
        self._run(
            "update_entry",
            lambda ctx: ctx.journal.update(entry_id, header, lines, actor_id),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def submit_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        self._run(
            "submit_entry",
            lambda ctx: ctx.journal.submit(entry_id, actor_id),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def approve_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        self._run(
            "approve_entry",
            lambda ctx: ctx.journal.approve(entry_id, actor_id),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def post_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        self._run(
            "post_entry",
            lambda ctx: ctx.journal.post(entry_id, actor_id),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def void_entry(self, entry_id: UUID, actor_id: UUID, reason: str) -> None:
        self._run(
            "void_entry",
            lambda ctx: ctx.journal.void(entry_id, actor_id, reason),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        self._run(
            "delete_entry",
            lambda ctx: ctx.journal.delete(entry_id, actor_id),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def mark_as_adjustment(
        self,
        entry_id: UUID,
        adjustment_type: AdjustmentType | str,
        actor_id: UUID,
        adjusted_entry_id: UUID | None = None,
    ) -> None:
        self._run(
            "mark_as_adjustment",
            lambda ctx: ctx.journal.mark_as_adjustment(
                entry_id, adjustment_type, actor_id, adjusted_entry_id
            ),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    # ------------------------------------------------------------------
    # Period transition
    # ------------------------------------------------------------------

    def verify_ready_for_reopening(
        self,
        source_period_id: UUID,
        target_period_id: UUID,
        entry_date: date | None = None,
    ) -> ReadinessCheck:
        """``result.as_dict()`` gives the ``{ready, message}`` shape."""
        return self._run(
            "verify_ready_for_reopening",
            lambda ctx: ctx.reopening.verify_ready_for_reopening(
                source_period_id, target_period_id, entry_date
            ),
            period_id=target_period_id,
        )

    def reopen_period(
        self,
        source_period_id: UUID,
        target_period_id: UUID,
        actor_id: UUID,
        entry_date: date | None = None,
        notes: str | None = None,
    ) -> ReopeningResult:
        return self._run(
            "reopen_period",
            lambda ctx: ctx.reopening.reopen_period(
                source_period_id, target_period_id, actor_id, entry_date, notes
            ),
            actor_id=actor_id,
            period_id=target_period_id,
        )

    def periods_ready_for_reopening(self) -> list[FiscalPeriodInfo]:
        return self._run(
            "periods_ready_for_reopening",
            lambda ctx: ctx.reopening.periods_ready_for_reopening(),
        )

    def target_periods_for_reopening(self, source_period_id: UUID) -> list[FiscalPeriodInfo]:
        return self._run(
            "target_periods_for_reopening",
            lambda ctx: ctx.reopening.target_periods_for_reopening(source_period_id),
        )

    def get_opening_entry(self, fiscal_period_id: UUID) -> JournalEntryDTO | None:
        return self._run(
            "get_opening_entry",
            lambda ctx: ctx.reopening.get_opening_entry(fiscal_period_id),
        )

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def create_fiscal_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        generate_months: bool = True,
    ) -> FiscalPeriodInfo:
        """Create a fiscal period and, by default, its monthly periods."""

        def _create(ctx: LedgerContext) -> FiscalPeriodInfo:
            period = ctx.periods.create_fiscal_period(name, start_date, end_date, actor_id)
            if generate_months:
                ctx.periods.generate_monthly_periods(period.id, actor_id)
            return period

        return self._run("create_fiscal_period", _create, actor_id=actor_id)

    def monthly_periods(self, fiscal_period_id: UUID) -> list[MonthlyPeriodInfo]:
        return self._run(
            "monthly_periods",
            lambda ctx: ctx.periods.monthly_periods(fiscal_period_id),
        )

    def close_monthly_period(self, monthly_period_id: UUID, actor_id: UUID) -> MonthlyPeriodInfo:
        return self._run(
            "close_monthly_period",
            lambda ctx: ctx.periods.close_monthly_period(monthly_period_id, actor_id),
            actor_id=actor_id,
            period_id=monthly_period_id,
        )

    def close_fiscal_period(self, fiscal_period_id: UUID, actor_id: UUID) -> FiscalPeriodInfo:
        return self._run(
            "close_fiscal_period",
            lambda ctx: ctx.periods.close_fiscal_period(fiscal_period_id, actor_id),
            actor_id=actor_id,
            period_id=fiscal_period_id,
        )

    def is_monthly_period_closed(self, monthly_period_id: UUID) -> bool:
        return self._run(
            "is_monthly_period_closed",
            lambda ctx: ctx.periods.is_monthly_period_closed(monthly_period_id),
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        code: str,
        name: str,
        account_class: AccountClass | str,
        actor_id: UUID,
        parent_id: UUID | None = None,
        natural_side: LineSide | str | None = None,
    ) -> AccountInfo:
        return self._run(
            "create_account",
            lambda ctx: ctx.accounts.create_account(
                code, name, account_class, actor_id, parent_id, natural_side
            ),
            actor_id=actor_id,
        )

    def postable_accounts(self) -> list[AccountInfo]:
        return self._run(
            "postable_accounts",
            lambda ctx: ctx.account_selector.postable_accounts(),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        return self._run("get_entry", lambda ctx: ctx.journal_selector.get_entry(entry_id))

    def list_entries(self, entry_filter: EntryFilter | None = None) -> list[JournalEntryDTO]:
        """List entries; without a filter the configured list limit applies."""
        entry_filter = entry_filter or EntryFilter(limit=self._settings.journal.list_limit)
        return self._run(
            "list_entries",
            lambda ctx: ctx.journal_selector.list_entries(entry_filter),
        )
