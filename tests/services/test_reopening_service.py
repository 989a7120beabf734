"""
Tests for ReopeningService (period transition / opening balances).

The base scenario: FY2023 holds one approved entry
    Cash 500.00 Dr / Loan 200.00 Cr / Owner Equity 300.00 Cr
and is closed; FY2024 is open and empty.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import EntryLine, EntryStatus, LineSide
from ledger_kernel.exceptions import (
    AlreadyReopenedError,
    OpeningEntryUnbalancedError,
    PeriodNotFoundError,
    PeriodNotReadyError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.activity_log import ActivityAction
from ledger_kernel.models.period import FiscalPeriod
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services import reopening_service as reopening
from ledger_kernel.services.activity_log_service import ENTITY_FISCAL_PERIOD
from ledger_kernel.services.reopening_service import ReopeningService


@pytest.fixture
def book(journal_service, header_for, test_actor_id):
    """Create and approve an entry in the given month."""

    def _book(month, lines):
        entry_id = journal_service.create(header_for(month), lines, test_actor_id)
        journal_service.approve(entry_id, test_actor_id)
        return entry_id

    return _book


@pytest.fixture
def fy2023(create_fiscal_year, standard_accounts):
    return create_fiscal_year(2023)


@pytest.fixture
def opening_balances(fy2023, book):
    """The 500 / 200 / 300 entry booked in March 2023."""
    _, months = fy2023
    return book(months[2], [
        {"account": "1000", "debit": "500.00"},
        {"account": "2100", "credit": "200.00"},
        {"account": "3000", "credit": "300.00"},
    ])


@pytest.fixture
def ready_periods(fy2023, opening_balances, fiscal_2024, period_service, test_actor_id):
    """(source, target) with the source closed."""
    source, _ = fy2023
    period_service.close_fiscal_period(source.id, test_actor_id)
    return source, fiscal_2024[0]


@pytest.fixture
def selector(session):
    return JournalSelector(session)


# =============================================================================
# Transition
# =============================================================================


class TestReopenPeriod:
    """A successful transition."""

    def test_opening_entry_totals(self, reopening_service, ready_periods, test_actor_id, selector):
        source, target = ready_periods

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)

        assert result.total_assets == Decimal("500.00")
        assert result.total_liabilities == Decimal("200.00")
        assert result.total_equity == Decimal("300.00")
        assert result.line_count == 3

        entry = selector.get_entry(result.opening_entry_id)
        assert entry.total_debit == Decimal("500.00")
        assert entry.total_credit == Decimal("500.00")
        assert entry.is_balanced

    def test_opening_entry_shape(self, reopening_service, ready_periods, test_actor_id, selector, fiscal_2024):
        source, target = ready_periods

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id, notes="carried")

        entry = selector.get_entry(result.opening_entry_id)
        assert entry.status is EntryStatus.POSTED
        assert entry.is_opening_entry
        assert entry.opening_for_period_id == target.id
        assert entry.fiscal_period_id == target.id
        assert entry.monthly_period_id == fiscal_2024[1][0].id
        assert entry.entry_date == date(2024, 1, 1)
        assert entry.description == "Opening balances FY2024"
        assert entry.reference_number == "OPEN-FY2024"
        assert entry.notes == "carried"
        assert entry.entry_number == result.entry_number

    def test_lines_on_natural_sides(self, reopening_service, ready_periods, test_actor_id, selector):
        source, target = ready_periods

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)

        lines = {line.account_code: line for line in selector.get_entry(result.opening_entry_id).lines}
        assert set(lines) == {"1000", "2100", "3000"}
        assert lines["1000"].side is LineSide.DEBIT
        assert lines["1000"].amount == Decimal("500.00")
        assert lines["2100"].side is LineSide.CREDIT
        assert lines["3000"].side is LineSide.CREDIT

    def test_target_flagged(self, reopening_service, period_service, ready_periods, test_actor_id):
        source, target = ready_periods
        reopening_service.reopen_period(source.id, target.id, test_actor_id)

        assert period_service.get_fiscal_period(target.id).has_opening_balances

    def test_explicit_entry_date(self, reopening_service, ready_periods, test_actor_id, selector, fiscal_2024):
        source, target = ready_periods

        result = reopening_service.reopen_period(
            source.id, target.id, test_actor_id, entry_date=date(2024, 2, 10)
        )

        entry = selector.get_entry(result.opening_entry_id)
        assert entry.entry_date == date(2024, 2, 10)
        assert entry.monthly_period_id == fiscal_2024[1][1].id

    def test_target_without_months(self, reopening_service, period_service, fy2023, opening_balances,
                                   test_actor_id, selector):
        source, _ = fy2023
        period_service.close_fiscal_period(source.id, test_actor_id)
        target = period_service.create_fiscal_period(
            "FY2024", date(2024, 1, 1), date(2024, 12, 31), test_actor_id
        )

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)
        assert selector.get_entry(result.opening_entry_id).monthly_period_id is None

    def test_activity_and_log(self, reopening_service, activity_service, ready_periods, test_actor_id,
                              captured_logs):
        source, target = ready_periods

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)

        records = activity_service.for_entity(ENTITY_FISCAL_PERIOD, target.id)
        assert [r.action for r in records] == [ActivityAction.PERIOD_REOPENED.value]

        reopened = [r for r in captured_logs() if r["message"] == "period_reopened"]
        assert len(reopened) == 1
        assert reopened[0]["opening_entry_id"] == str(result.opening_entry_id)
        assert reopened[0]["total_assets"] == "500.00"
        assert reopened[0]["period_id"] == str(target.id)

    def test_as_dict(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)

        assert result.as_dict() == {
            "opening_entry_id": result.opening_entry_id,
            "total_assets": Decimal("500.00"),
            "total_liabilities": Decimal("200.00"),
            "total_equity": Decimal("300.00"),
        }


class TestCarriedBalances:
    """Which balances are carried and on which side."""

    def test_negative_balances_on_opposite_side(
        self, reopening_service, period_service, fy2023, opening_balances, book, fiscal_2024,
        test_actor_id, selector,
    ):
        source, months = fy2023
        # Bank overdrawn by paying a supplier: Bank -50, Payables -50
        book(months[5], [{"account": "2000", "debit": "50"}, {"account": "1100", "credit": "50"}])
        period_service.close_fiscal_period(source.id, test_actor_id)

        result = reopening_service.reopen_period(source.id, fiscal_2024[0].id, test_actor_id)

        assert result.total_assets == Decimal("450.00")
        assert result.total_liabilities == Decimal("150.00")
        lines = {line.account_code: line for line in selector.get_entry(result.opening_entry_id).lines}
        assert lines["1100"].side is LineSide.CREDIT
        assert lines["1100"].amount == Decimal("50.00")
        assert lines["2000"].side is LineSide.DEBIT
        assert selector.get_entry(result.opening_entry_id).total_debit == Decimal("550.00")

    def test_zero_balances_discarded(
        self, reopening_service, period_service, fy2023, opening_balances, book, fiscal_2024,
        test_actor_id, selector,
    ):
        source, months = fy2023
        book(months[6], [{"account": "1100", "debit": "80"}, {"account": "2000", "credit": "80"}])
        book(months[7], [{"account": "2000", "debit": "80"}, {"account": "1100", "credit": "80"}])
        period_service.close_fiscal_period(source.id, test_actor_id)

        result = reopening_service.reopen_period(source.id, fiscal_2024[0].id, test_actor_id)

        codes = {line.account_code for line in selector.get_entry(result.opening_entry_id).lines}
        assert codes == {"1000", "2100", "3000"}

    def test_voided_entries_not_carried(
        self, reopening_service, period_service, journal_service, fy2023, opening_balances,
        fiscal_2024, header_for, make_lines, test_actor_id,
    ):
        source, months = fy2023
        voided = journal_service.create(header_for(months[8]), make_lines("1000", "3000", "999"), test_actor_id)
        journal_service.void(voided, test_actor_id, "keyed wrong")
        period_service.close_fiscal_period(source.id, test_actor_id)

        result = reopening_service.reopen_period(source.id, fiscal_2024[0].id, test_actor_id)
        assert result.total_assets == Decimal("500.00")

    def test_closed_income_statement_accounts_allowed(
        self, reopening_service, period_service, fy2023, opening_balances, book, fiscal_2024, test_actor_id,
    ):
        source, months = fy2023
        book(months[3], [{"account": "1000", "debit": "120"}, {"account": "4000", "credit": "120"}])
        # Closing entry moves the result to equity
        book(months[11], [{"account": "4000", "debit": "120"}, {"account": "3000", "credit": "120"}])
        period_service.close_fiscal_period(source.id, test_actor_id)

        result = reopening_service.reopen_period(source.id, fiscal_2024[0].id, test_actor_id)
        assert result.total_assets == Decimal("620.00")
        assert result.total_equity == Decimal("420.00")


# =============================================================================
# Readiness
# =============================================================================


class TestVerifyReadyForReopening:
    """Each precondition has its own code and message."""

    def test_ready(self, reopening_service, ready_periods):
        source, target = ready_periods
        check = reopening_service.verify_ready_for_reopening(source.id, target.id)

        assert check.ready
        assert check.code == reopening.READY
        assert check.as_dict() == {"ready": True, "message": "The periods are ready for reopening"}

    def test_verify_does_not_write(self, reopening_service, period_service, ready_periods):
        source, target = ready_periods
        reopening_service.verify_ready_for_reopening(source.id, target.id)
        assert not period_service.get_fiscal_period(target.id).has_opening_balances
        assert reopening_service.get_opening_entry(target.id) is None

    def test_source_missing(self, reopening_service, fiscal_2024):
        check = reopening_service.verify_ready_for_reopening(uuid4(), fiscal_2024[0].id)
        assert not check.ready
        assert check.code == reopening.SOURCE_NOT_FOUND

    def test_source_not_closed(self, reopening_service, fy2023, opening_balances, fiscal_2024):
        check = reopening_service.verify_ready_for_reopening(fy2023[0].id, fiscal_2024[0].id)
        assert check.code == reopening.SOURCE_NOT_CLOSED
        assert "must be closed" in check.message

    def test_target_missing(self, reopening_service, ready_periods):
        source, _ = ready_periods
        check = reopening_service.verify_ready_for_reopening(source.id, uuid4())
        assert check.code == reopening.TARGET_NOT_FOUND

    def test_target_closed(self, reopening_service, period_service, ready_periods, test_actor_id):
        source, target = ready_periods
        period_service.close_fiscal_period(target.id, test_actor_id)

        check = reopening_service.verify_ready_for_reopening(source.id, target.id)
        assert check.code == reopening.TARGET_CLOSED

    def test_target_has_entries(self, reopening_service, ready_periods, journal_service,
                                fiscal_2024, header_for, make_lines, test_actor_id):
        source, target = ready_periods
        journal_service.create(header_for(fiscal_2024[1][0]), make_lines("1000", "3000", "1"), test_actor_id)

        check = reopening_service.verify_ready_for_reopening(source.id, target.id)
        assert check.code == reopening.TARGET_HAS_ENTRIES
        assert "already has journal entries" in check.message

    def test_date_outside_target(self, reopening_service, ready_periods):
        source, target = ready_periods
        check = reopening_service.verify_ready_for_reopening(source.id, target.id, date(2025, 1, 1))
        assert check.code == reopening.DATE_OUT_OF_RANGE

    def test_income_statement_not_closed(
        self, reopening_service, period_service, fy2023, opening_balances, book, fiscal_2024, test_actor_id,
    ):
        source, months = fy2023
        book(months[3], [{"account": "1000", "debit": "120"}, {"account": "4000", "credit": "120"}])
        period_service.close_fiscal_period(source.id, test_actor_id)

        check = reopening_service.verify_ready_for_reopening(source.id, fiscal_2024[0].id)
        assert check.code == reopening.RESULTS_NOT_CLOSED
        assert "4000" in check.message

    def test_nothing_to_carry(self, reopening_service, period_service, fy2023, fiscal_2024, test_actor_id):
        source, _ = fy2023
        period_service.close_fiscal_period(source.id, test_actor_id)

        check = reopening_service.verify_ready_for_reopening(source.id, fiscal_2024[0].id)
        assert check.code == reopening.NO_BALANCES
        assert "no balances to carry forward" in check.message

    def test_account_no_longer_postable(self, session, reopening_service, ready_periods, standard_accounts):
        source, target = ready_periods
        session.get(Account, standard_accounts["loan"].id).is_active = False
        session.flush()

        check = reopening_service.verify_ready_for_reopening(source.id, target.id)
        assert check.code == reopening.ACCOUNT_NOT_POSTABLE
        assert "2100" in check.message

    def test_already_reopened(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        reopening_service.reopen_period(source.id, target.id, test_actor_id)

        check = reopening_service.verify_ready_for_reopening(source.id, target.id)
        assert check.code == reopening.ALREADY_REOPENED


class TestReopenRejections:
    """reopen_period() raises typed errors and writes nothing."""

    def test_second_call_rejected(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        first = reopening_service.reopen_period(source.id, target.id, test_actor_id)

        with pytest.raises(AlreadyReopenedError) as exc_info:
            reopening_service.reopen_period(source.id, target.id, test_actor_id)

        assert exc_info.value.opening_entry_id == str(first.opening_entry_id)
        assert exc_info.value.code == "ALREADY_REOPENED"

    def test_flag_alone_blocks(self, session, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        session.get(FiscalPeriod, target.id).has_opening_balances = True
        session.flush()

        with pytest.raises(AlreadyReopenedError):
            reopening_service.reopen_period(source.id, target.id, test_actor_id)

    def test_unknown_target(self, reopening_service, ready_periods, test_actor_id):
        source, _ = ready_periods
        with pytest.raises(PeriodNotFoundError):
            reopening_service.reopen_period(source.id, uuid4(), test_actor_id)

    def test_unknown_source(self, reopening_service, fiscal_2024, test_actor_id):
        with pytest.raises(PeriodNotFoundError):
            reopening_service.reopen_period(uuid4(), fiscal_2024[0].id, test_actor_id)

    def test_source_open(self, reopening_service, period_service, fy2023, opening_balances, fiscal_2024,
                         test_actor_id):
        target = fiscal_2024[0]
        with pytest.raises(PeriodNotReadyError, match="must be closed"):
            reopening_service.reopen_period(fy2023[0].id, target.id, test_actor_id)
        assert not period_service.get_fiscal_period(target.id).has_opening_balances

    def test_date_outside_target(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        with pytest.raises(PeriodNotReadyError):
            reopening_service.reopen_period(source.id, target.id, test_actor_id, entry_date=date(2023, 12, 31))

    def test_unbalanced_opening_entry_is_fatal(
        self, monkeypatch, reopening_service, period_service, ready_periods, test_actor_id, captured_logs,
    ):
        source, target = ready_periods

        def _broken(self, balances):
            return [
                EntryLine(str(b.account_id), b.natural_side, Decimal("1.00")) for b in balances
            ]

        monkeypatch.setattr(ReopeningService, "_opening_lines", _broken)

        with pytest.raises(OpeningEntryUnbalancedError):
            reopening_service.reopen_period(source.id, target.id, test_actor_id)

        assert any(
            r["message"] == "opening_entry_invariant_violated" and r["level"] == "CRITICAL"
            for r in captured_logs()
        )
        assert not period_service.get_fiscal_period(target.id).has_opening_balances


# =============================================================================
# Queries
# =============================================================================


class TestQueries:

    def test_get_opening_entry(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        assert reopening_service.get_opening_entry(target.id) is None

        result = reopening_service.reopen_period(source.id, target.id, test_actor_id)
        assert reopening_service.get_opening_entry(target.id).id == result.opening_entry_id

    def test_periods_ready_for_reopening(self, reopening_service, ready_periods):
        source, _ = ready_periods
        assert [p.id for p in reopening_service.periods_ready_for_reopening()] == [source.id]

    def test_target_periods_exclude_reopened(self, reopening_service, ready_periods, test_actor_id):
        source, target = ready_periods
        assert [p.id for p in reopening_service.target_periods_for_reopening(source.id)] == [target.id]

        reopening_service.reopen_period(source.id, target.id, test_actor_id)
        assert reopening_service.target_periods_for_reopening(source.id) == []
