"""
ledger_services.ledger_context -- DI container for kernel services.

Responsibility:
    Creates every kernel service for one unit of work exactly once and wires
    them together, so that JournalService, PeriodService and
    ReopeningService share one Session, one Clock, one EntryNumberService
    and one ActivityLogService.

Architecture position:
    Services -- orchestration over the kernel.  Constructed by LedgerApi
    inside ``session_scope()``; the only place kernel services are composed.

Invariants enforced:
    - Single-instance lifecycle: no duplicate EntryNumberService or
      ActivityLogService within one context.
    - Settings reach the kernel only through constructor arguments here.

Usage:
    with session_scope(factory) as session:
        ctx = LedgerContext(session, settings, clock)
        ctx.journal.create(header, lines, actor_id)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.activity_log_service import ActivityLogService
from ledger_kernel.services.entry_number_service import EntryNumberService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.reopening_service import ReopeningService


class LedgerContext:
    """Central factory for kernel services.

    Contract:
        Receives a Session, LedgerSettings and an optional Clock.  Exposes
        the services and selectors as public attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
    """

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or LedgerSettings()
        self.clock = clock or SystemClock()

        # Foundational services
        self.activity = ActivityLogService(session, self.clock)
        self.numbering = EntryNumberService(
            session,
            sequence_name=self.settings.numbering.sequence_name,
            allow_max_fallback=self.settings.numbering.allow_max_fallback,
        )
        self.periods = PeriodService(session, self.clock, self.activity)
        self.accounts = AccountService(session, self.clock)

        # Lifecycle services
        self.journal = JournalService(
            session,
            self.clock,
            numbering=self.numbering,
            periods=self.periods,
            activity=self.activity,
            void_annotation=self.settings.journal.void_annotation,
        )
        self.reopening = ReopeningService(
            session,
            self.clock,
            numbering=self.numbering,
            periods=self.periods,
            activity=self.activity,
        )

        # Read side
        self.account_selector = AccountSelector(session)
        self.journal_selector = JournalSelector(session)
