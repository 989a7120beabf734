"""
Journal and ledger selector tests.

Verifies:
- list_entries() filters (period, status, type, search, voided) and sort
  whitelist with entry number as tie-breaker.
- account_balances() counts only approved and posted lines, within the
  date range, per account.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import AdjustmentType, EntryStatus
from ledger_kernel.selectors.journal_selector import EntryFilter, JournalSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def selector(session):
    return JournalSelector(session)


@pytest.fixture
def ledger(session):
    return LedgerSelector(session)


@pytest.fixture
def entries(journal_service, standard_accounts, fiscal_2024, header_for, make_lines, test_actor_id):
    """Four January/February entries in assorted states."""
    _, months = fiscal_2024
    january, february = months[0], months[1]

    rent = journal_service.create(
        header_for(january, entry_date=date(2024, 1, 5), description="Office rent", reference_number="INV-77"),
        make_lines("5000", "1000", "900"),
        test_actor_id,
    )
    sale = journal_service.create(
        header_for(january, entry_date=date(2024, 1, 20), description="Counter sale"),
        make_lines("1000", "4000", "250"),
        test_actor_id,
    )
    loan = journal_service.create(
        header_for(february, entry_date=date(2024, 2, 2), description="Loan drawdown"),
        make_lines("1100", "2100", "5000"),
        test_actor_id,
    )
    typo = journal_service.create(
        header_for(february, entry_date=date(2024, 2, 2), description="Typo"),
        make_lines("1100", "4000", "1"),
        test_actor_id,
    )

    journal_service.approve(rent, test_actor_id)
    journal_service.approve(loan, test_actor_id)
    journal_service.post(loan, test_actor_id)
    journal_service.void(typo, test_actor_id, "typo")
    journal_service.mark_as_adjustment(sale, AdjustmentType.CORRECTION, test_actor_id)

    return {"rent": rent, "sale": sale, "loan": loan, "typo": typo, "january": january}


# ---------------------------------------------------------------------------
# JournalSelector
# ---------------------------------------------------------------------------


class TestListEntries:

    def test_default_newest_first(self, selector, entries):
        ids = [e.id for e in selector.list_entries()]
        # Same date on loan and typo: higher entry number first
        assert ids == [entries["typo"], entries["loan"], entries["sale"], entries["rent"]]

    def test_ascending(self, selector, entries):
        ids = [e.id for e in selector.list_entries(EntryFilter(descending=False))]
        assert ids == [entries["rent"], entries["sale"], entries["loan"], entries["typo"]]

    def test_filter_by_month(self, selector, entries):
        result = selector.list_entries(EntryFilter(monthly_period_id=entries["january"].id))
        assert {e.id for e in result} == {entries["rent"], entries["sale"]}

    def test_filter_by_status(self, selector, entries):
        result = selector.list_entries(EntryFilter(status=EntryStatus.POSTED))
        assert [e.id for e in result] == [entries["loan"]]

    def test_exclude_voided(self, selector, entries):
        result = selector.list_entries(EntryFilter(exclude_voided=True))
        assert entries["typo"] not in {e.id for e in result}
        assert len(result) == 3

    def test_entry_type(self, selector, entries):
        adjustments = selector.list_entries(EntryFilter(entry_type="adjustment"))
        regular = selector.list_entries(EntryFilter(entry_type="regular"))

        assert [e.id for e in adjustments] == [entries["sale"]]
        assert len(regular) == 3

    @pytest.mark.parametrize("term", ["RENT", "inv-77", "counter"])
    def test_search_is_case_insensitive(self, selector, entries, term):
        result = selector.list_entries(EntryFilter(search=term))
        assert len(result) == 1

    def test_sort_by_amount(self, selector, entries):
        result = selector.list_entries(EntryFilter(sort_by="total_debit"))
        assert result[0].id == entries["loan"]

    def test_unknown_sort_falls_back_to_date(self, selector, entries):
        assert selector.list_entries(EntryFilter(sort_by="description; DROP TABLE")) == selector.list_entries()

    def test_limit(self, selector, entries):
        assert len(selector.list_entries(EntryFilter(limit=2))) == 2


class TestGetEntry:

    def test_get_by_number(self, selector, entries):
        entry = selector.get_entry(entries["rent"])
        assert selector.get_by_number(entry.entry_number).id == entries["rent"]

    def test_missing(self, selector):
        assert selector.get_by_number("424242") is None

    def test_count_for_fiscal_period(self, selector, entries, fiscal_2024):
        assert selector.count_for_fiscal_period(fiscal_2024[0].id) == 4


# ---------------------------------------------------------------------------
# LedgerSelector
# ---------------------------------------------------------------------------


class TestAccountBalances:

    def test_only_approved_and_posted(self, ledger, entries):
        balances = {b.code: b for b in ledger.account_balances()}

        # sale is a draft, typo is voided
        assert set(balances) == {"1000", "1100", "2100", "5000"}
        assert balances["1000"].total_credit == Decimal("900.00")
        assert balances["1000"].balance == Decimal("-900.00")
        assert balances["2100"].balance == Decimal("5000.00")

    def test_date_range(self, ledger, entries):
        january = {b.code for b in ledger.account_balances(date(2024, 1, 1), date(2024, 1, 31))}
        assert january == {"1000", "5000"}

    def test_ordered_by_code(self, ledger, entries):
        codes = [b.code for b in ledger.account_balances()]
        assert codes == sorted(codes)

    def test_empty_ledger(self, ledger):
        assert ledger.account_balances() == []
