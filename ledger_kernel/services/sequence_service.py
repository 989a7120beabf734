"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing values for named sequences.  Uses the
    ``sequence_counters`` table with row-level locking
    (``SELECT ... FOR UPDATE``) so concurrent allocations serialize on the
    counter row.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by EntryNumberService.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next value.
    - The increment is part of the caller's transaction: if the caller
      rolls back, the value is not consumed.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
    - OperationalError / ProgrammingError: counter table missing or
      unreadable.  Propagated; EntryNumberService decides what to do.

Audit relevance:
    Allocations are logged at DEBUG with sequence_name and value.
"""

from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-increasing
        integer value.  The increment is only committed when the caller's
        transaction commits.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for
          the same sequence (PostgreSQL).  On SQLite the whole write
          transaction is serialized by BEGIN IMMEDIATE.
        - A counter created on first use starts after ``seed()``.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    JOURNAL_ENTRY = "journal_entry"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(
        self,
        sequence_name: str,
        seed: Callable[[], int] | None = None,
    ) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for this sequence name.
            - The counter row stays locked until the transaction completes.

        Args:
            sequence_name: Name of the sequence.
            seed: Called once when the counter row does not exist yet; its
                result is the value the new counter starts after.

        Returns:
            The next sequence value.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            start = seed() if seed is not None else 0
            # Savepoint: another transaction may create the row concurrently
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=start + 1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.info(
                    "sequence_counter_created",
                    extra={"sequence_name": sequence_name, "seed": start},
                )
                return counter.current_value
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Set a sequence to a specific value.

        Only for tests and data migrations; lowering a live counter below
        an issued value makes the next insert collide.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
