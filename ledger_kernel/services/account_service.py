"""
AccountService -- chart of accounts maintenance.

Responsibility:
    Creates accounts and keeps the hierarchy consistent: a child account
    shares its parent's classification, and attaching a child turns the
    parent into a group account that no longer accepts journal lines.

Architecture position:
    Kernel > Services.

Failure modes:
    - InvalidAccountError: duplicate code, unknown parent, or a parent of a
      different classification.
    - AccountNotFoundError: deactivate() on an unknown id.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountClass, AccountInfo, LineSide
from ledger_kernel.exceptions import AccountNotFoundError, InvalidAccountError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountService(BaseService[Account]):
    """
    Contract:
        Flushes new and changed accounts into the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT delete accounts.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def create_account(
        self,
        code: str,
        name: str,
        account_class: AccountClass | str,
        actor_id: UUID,
        parent_id: UUID | None = None,
        natural_side: LineSide | str | None = None,
        description: str | None = None,
    ) -> AccountInfo:
        """
        Create an account.

        The natural side defaults from the classification.  When parent_id
        is given the parent must exist and share the classification; it is
        marked as a parent account.

        Raises:
            InvalidAccountError: Duplicate code or inconsistent parent.
        """
        account_class = AccountClass(account_class)
        side = LineSide(natural_side) if natural_side is not None else account_class.natural_side

        existing = self.session.execute(
            select(Account.id).where(Account.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise InvalidAccountError(code, "an account with this code already exists")

        if parent_id is not None:
            parent = self.session.get(Account, parent_id)
            if parent is None:
                raise InvalidAccountError(code, f"parent account {parent_id} does not exist")
            if AccountClass(parent.account_class) is not account_class:
                raise InvalidAccountError(
                    code,
                    f"classification {account_class.value} differs from parent "
                    f"{parent.code} ({parent.account_class})",
                )
            if not parent.is_parent:
                parent.is_parent = True
                parent.updated_by_id = actor_id

        account = Account(
            code=code,
            name=name,
            account_class=account_class.value,
            natural_side=side.value,
            parent_id=parent_id,
            description=description,
            is_active=True,
            is_parent=False,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "code": code,
                "account_class": account_class.value,
                "parent_id": str(parent_id) if parent_id else None,
            },
        )
        return AccountInfo.from_model(account)

    def deactivate(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        """Stop an account from receiving new lines."""
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
        return AccountInfo.from_model(account)
