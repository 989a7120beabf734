"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only access to the chart of accounts: lookups by id or
    code, resolution of line account references, postable account lists.
Architecture position: Kernel > Selectors.

Account references on incoming lines may be either the account id (UUID or
its string form) or the account code.  resolve_refs() maps each distinct
reference to an AccountInfo; unknown references are simply absent from the
result so the Balance Validator can report them in rule order.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import or_, select

from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.models.account import Account
from ledger_kernel.selectors.base import BaseSelector


def _as_uuid(ref: object) -> UUID | None:
    if isinstance(ref, UUID):
        return ref
    try:
        return UUID(str(ref))
    except ValueError:
        return None


class AccountSelector(BaseSelector[Account]):
    """Chart of accounts queries."""

    def get(self, account_id: UUID) -> AccountInfo | None:
        account = self.session.get(Account, account_id)
        return AccountInfo.from_model(account) if account else None

    def get_by_code(self, code: str) -> AccountInfo | None:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        return AccountInfo.from_model(account) if account else None

    def resolve_refs(self, refs: Iterable[object]) -> dict[str, AccountInfo]:
        """
        Resolve line account references.

        Returns:
            Mapping of ``str(ref)`` to AccountInfo for every reference that
            matched an account id or code.  Empty references are skipped.
        """
        wanted = {str(ref).strip() for ref in refs if ref is not None and str(ref).strip()}
        if not wanted:
            return {}

        ids = {ref: uid for ref in wanted if (uid := _as_uuid(ref)) is not None}
        conditions = [Account.code.in_(wanted)]
        if ids:
            conditions.append(Account.id.in_(set(ids.values())))

        accounts = self.session.execute(select(Account).where(or_(*conditions))).scalars().all()
        by_id = {account.id: account for account in accounts}
        by_code = {account.code: account for account in accounts}

        resolved: dict[str, AccountInfo] = {}
        for ref in wanted:
            account = by_id.get(ids[ref]) if ref in ids else None
            if account is None:
                account = by_code.get(ref)
            if account is not None:
                resolved[ref] = AccountInfo.from_model(account)
        return resolved

    def postable_accounts(self) -> list[AccountInfo]:
        """Active leaf accounts ordered by code."""
        accounts = self.session.execute(
            select(Account)
            .where(Account.is_active.is_(True), Account.is_parent.is_(False))
            .order_by(Account.code)
        ).scalars()
        return [AccountInfo.from_model(account) for account in accounts]
