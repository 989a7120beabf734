"""
Tests for EntryNumberService.

Primary strategy: the locked ``journal_entry`` counter, seeded from the
highest stored number.  Fallback: max + 1, only when enabled and only when
the counter table cannot be used.
"""

import pytest
from sqlalchemy import delete, text

from ledger_kernel.exceptions import SequenceUnavailableError, StoreError
from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.services.entry_number_service import EntryNumberService


def _drop_counter_table(session):
    session.execute(text("DROP TABLE sequence_counters"))


class TestCounterAllocation:

    def test_numbers_start_at_one(self, entry_number_service):
        assert entry_number_service.next_number() == "1"
        assert entry_number_service.next_number() == "2"

    def test_numbers_are_strings_of_increasing_integers(self, entry_number_service):
        numbers = [int(entry_number_service.next_number()) for _ in range(10)]
        assert numbers == sorted(set(numbers))

    def test_configured_sequence_name(self, session):
        service = EntryNumberService(session, sequence_name="other_journal")
        assert service.next_number() == "1"
        count = session.execute(
            text("SELECT count(*) FROM sequence_counters WHERE name = 'other_journal'")
        ).scalar_one()
        assert count == 1

    def test_counter_seeded_from_existing_entries(
        self, session, journal_service, standard_accounts, january,
        header_for, make_lines, test_actor_id,
    ):
        """A missing counter row starts after the highest stored number."""
        for _ in range(3):
            journal_service.create(header_for(january), make_lines("1000", "4000", "10"), test_actor_id)
        session.execute(delete(SequenceCounter))
        session.expire_all()

        assert EntryNumberService(session).max_entry_number() == 3
        assert EntryNumberService(session).next_number() == "4"

    def test_max_entry_number_empty(self, entry_number_service):
        assert entry_number_service.max_entry_number() == 0


class TestCounterUnavailable:
    """Behavior when the counter table cannot be used."""

    def test_fallback_disabled_raises(self, session):
        _drop_counter_table(session)

        with pytest.raises(SequenceUnavailableError) as exc_info:
            EntryNumberService(session).next_number()

        assert exc_info.value.code == "SEQUENCE_UNAVAILABLE"
        assert exc_info.value.sequence_name == "journal_entry"
        assert exc_info.value.cause is not None
        assert isinstance(exc_info.value, StoreError)

    def test_fallback_enabled_uses_max_plus_one(
        self, session, journal_service, standard_accounts, january,
        header_for, make_lines, test_actor_id,
    ):
        journal_service.create(header_for(january), make_lines("1000", "4000", "10"), test_actor_id)
        journal_service.create(header_for(january), make_lines("1000", "4000", "20"), test_actor_id)
        _drop_counter_table(session)

        service = EntryNumberService(session, allow_max_fallback=True)

        assert service.next_number() == "3"

    def test_fallback_is_logged_as_degraded(self, session, captured_logs):
        _drop_counter_table(session)

        EntryNumberService(session, allow_max_fallback=True).next_number()

        records = captured_logs()
        fallback = [r for r in records if r["message"] == "entry_number_fallback"]
        assert len(fallback) == 1
        assert fallback[0]["level"] == "WARNING"
        assert fallback[0]["entry_number"] == 1
