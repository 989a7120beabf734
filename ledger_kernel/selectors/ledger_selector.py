"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Per-account balance aggregation over approved journal lines.
    Balances are never stored; they are computed at query time.
Architecture position: Kernel > Selectors.  Used by ReopeningService to
    compute the closing balances of a source period.

Invariants enforced:
    - Only APPROVED and POSTED entries contribute; drafts, pending and voided
      entries never do.
    - Totals are Decimal, rounded half-up to two places.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.amounts import round_amount, to_amount
from ledger_kernel.domain.dtos import (
    APPROVED_STATUSES,
    AccountBalance,
    AccountClass,
    LineSide,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Contract:
        account_balances() returns one AccountBalance per account that has
        approved lines in the range, ordered by account code.

    Non-goals:
        - Does NOT discard zero balances; the caller decides.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def account_balances(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AccountBalance]:
        """
        Debit and credit totals per account over an inclusive date range.

        Args:
            start_date: First entry date included, or None for no lower bound.
            end_date: Last entry date included, or None for no upper bound.
        """
        debit_sum = func.sum(
            case(
                (JournalLine.side == LineSide.DEBIT.value, JournalLine.amount),
                else_=Decimal("0"),
            )
        ).label("debit_total")

        credit_sum = func.sum(
            case(
                (JournalLine.side == LineSide.CREDIT.value, JournalLine.amount),
                else_=Decimal("0"),
            )
        ).label("credit_total")

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_class,
                Account.natural_side,
                debit_sum,
                credit_sum,
            )
            .join(JournalLine, JournalLine.account_id == Account.id)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status.in_([status.value for status in APPROVED_STATUSES]))
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_class,
                Account.natural_side,
            )
            .order_by(Account.code)
        )

        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)

        if end_date is not None:
            query = query.where(JournalEntry.entry_date <= end_date)

        return [
            AccountBalance(
                account_id=row.id,
                code=row.code,
                name=row.name,
                account_class=AccountClass(row.account_class),
                natural_side=LineSide(row.natural_side),
                total_debit=round_amount(to_amount(row.debit_total)),
                total_credit=round_amount(to_amount(row.credit_total)),
            )
            for row in self.session.execute(query).all()
        ]
