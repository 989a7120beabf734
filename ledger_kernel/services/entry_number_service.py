"""
EntryNumberService -- sequential journal entry numbers.

Responsibility:
    Issues the ``entry_number`` for every new journal entry: plain
    increasing integers rendered as strings ("1", "2", ...).  Gaps are
    acceptable (a rolled-back transaction may consume nothing or, on
    PostgreSQL, leave a gap); duplicates are not.

Architecture position:
    Kernel > Services.  Called by JournalService and ReopeningService inside
    the same transaction that inserts the entry, so number issuance and
    entry persistence share one failure domain.

Strategies:
    Primary -- the ``journal_entry`` row of ``sequence_counters``, read and
        incremented under a row lock by SequenceService.  When the row does
        not exist yet it is created, seeded from the highest entry number
        already stored.
    Fallback (DEGRADED, race-prone) -- highest stored entry number plus one.
        Used only when the counter table itself cannot be used AND the
        fallback is enabled (``numbering.allow_max_fallback``).  Two
        concurrent callers on this path can compute the same number; the
        unique constraint on entry_number then rejects the second insert.

Failure modes:
    - SequenceUnavailableError when the counter cannot be used and the
      fallback is disabled (the default).
"""

from sqlalchemy import Integer, cast, func, select
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import SequenceUnavailableError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.entry_number")


class EntryNumberService:
    """
    Contract:
        ``next_number()`` returns a string whose integer value is strictly
        greater than every number previously issued through the counter.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - The fallback path does NOT guarantee uniqueness under concurrency.
    """

    def __init__(
        self,
        session: Session,
        sequence_name: str = SequenceService.JOURNAL_ENTRY,
        allow_max_fallback: bool = False,
    ):
        self._session = session
        self._sequence_name = sequence_name
        self._allow_max_fallback = allow_max_fallback
        self._sequences = SequenceService(session)

    def max_entry_number(self) -> int:
        """Highest numeric entry number stored, or 0."""
        value = self._session.execute(
            select(func.max(cast(JournalEntry.entry_number, Integer)))
        ).scalar_one_or_none()
        return int(value or 0)

    def next_number(self) -> str:
        """
        Allocate the next entry number.

        Preconditions: caller is inside the transaction that will insert
            the entry.
        Returns: the number as a string.
        Raises: SequenceUnavailableError (counter unusable, fallback off).
        """
        try:
            with self._session.begin_nested():
                value = self._sequences.next_value(
                    self._sequence_name,
                    seed=self.max_entry_number,
                )
        except (OperationalError, ProgrammingError) as exc:
            if not self._allow_max_fallback:
                logger.error(
                    "entry_number_counter_unavailable",
                    extra={"sequence_name": self._sequence_name},
                    exc_info=True,
                )
                raise SequenceUnavailableError(self._sequence_name, exc) from exc
            value = self.max_entry_number() + 1
            logger.warning(
                "entry_number_fallback",
                extra={
                    "sequence_name": self._sequence_name,
                    "entry_number": value,
                    "error": type(exc).__name__,
                },
            )
            return str(value)

        logger.debug(
            "entry_number_allocated",
            extra={"sequence_name": self._sequence_name, "entry_number": value},
        )
        return str(value)
