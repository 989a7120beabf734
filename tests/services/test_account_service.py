"""Tests for AccountService and AccountSelector."""

from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import AccountClass, LineSide
from ledger_kernel.exceptions import AccountNotFoundError, InvalidAccountError
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.account_service import AccountService


@pytest.fixture
def account_service(session, deterministic_clock):
    return AccountService(session, deterministic_clock)


@pytest.fixture
def account_selector(session):
    return AccountSelector(session)


class TestCreateAccount:

    def test_natural_side_from_class(self, account_service, test_actor_id):
        cash = account_service.create_account("1000", "Cash", AccountClass.ASSET, test_actor_id)
        loan = account_service.create_account("2100", "Loan", "liability", test_actor_id)

        assert cash.natural_side is LineSide.DEBIT
        assert loan.natural_side is LineSide.CREDIT
        assert loan.account_class is AccountClass.LIABILITY
        assert cash.is_postable

    def test_explicit_natural_side(self, account_service, test_actor_id):
        contra = account_service.create_account(
            "1590", "Accumulated Depreciation", AccountClass.ASSET, test_actor_id, natural_side="credit"
        )
        assert contra.natural_side is LineSide.CREDIT

    def test_duplicate_code_rejected(self, account_service, test_actor_id):
        account_service.create_account("1000", "Cash", AccountClass.ASSET, test_actor_id)
        with pytest.raises(InvalidAccountError, match="already exists"):
            account_service.create_account("1000", "Cash again", AccountClass.ASSET, test_actor_id)

    def test_unknown_class_rejected(self, account_service, test_actor_id):
        with pytest.raises(ValueError):
            account_service.create_account("9000", "Odd", "goodwill-ish", test_actor_id)


class TestHierarchy:

    def test_child_turns_parent_into_group(self, account_service, account_selector, test_actor_id):
        parent = account_service.create_account("1", "Assets", AccountClass.ASSET, test_actor_id)
        child = account_service.create_account(
            "1000", "Cash", AccountClass.ASSET, test_actor_id, parent_id=parent.id
        )

        assert child.parent_id == parent.id
        refreshed = account_selector.get(parent.id)
        assert refreshed.is_parent
        assert not refreshed.is_postable

    def test_unknown_parent(self, account_service, test_actor_id):
        with pytest.raises(InvalidAccountError, match="does not exist"):
            account_service.create_account("1000", "Cash", AccountClass.ASSET, test_actor_id, parent_id=uuid4())

    def test_parent_class_mismatch(self, account_service, test_actor_id):
        parent = account_service.create_account("2", "Liabilities", AccountClass.LIABILITY, test_actor_id)
        with pytest.raises(InvalidAccountError, match="differs from parent"):
            account_service.create_account(
                "1000", "Cash", AccountClass.ASSET, test_actor_id, parent_id=parent.id
            )


class TestDeactivate:

    def test_deactivate(self, account_service, test_actor_id):
        cash = account_service.create_account("1000", "Cash", AccountClass.ASSET, test_actor_id)
        assert not account_service.deactivate(cash.id, test_actor_id).is_active

    def test_unknown(self, account_service, test_actor_id):
        with pytest.raises(AccountNotFoundError):
            account_service.deactivate(uuid4(), test_actor_id)


class TestAccountSelector:

    def test_postable_accounts_exclude_parents_and_inactive(self, account_selector, standard_accounts):
        codes = [a.code for a in account_selector.postable_accounts()]
        assert codes == ["1000", "1100", "2000", "2100", "3000", "4000", "5000"]

    def test_resolve_by_code_and_id(self, account_selector, standard_accounts):
        cash_id = standard_accounts["cash"].id
        resolved = account_selector.resolve_refs(["4000", str(cash_id), "nope", "", None])

        assert set(resolved) == {"4000", str(cash_id)}
        assert resolved[str(cash_id)].code == "1000"

    def test_get_by_code(self, account_selector, standard_accounts):
        assert account_selector.get_by_code("2100").name == "Loan"
        assert account_selector.get_by_code("0000") is None
