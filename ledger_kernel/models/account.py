"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/ and the
    enumerations in domain/dtos.py only.

Invariants enforced:
    - code is unique.
    - Every account has a classification and a natural side.
    - is_parent marks group accounts; they never receive journal lines
      (checked by the Balance Validator, maintained by AccountService).

Audit relevance:
    Account rows define the structure of the general ledger.  The
    classification decides whether a balance is carried into the next
    period by the Period Transition Engine.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import AccountClass, LineSide

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        Account.code is globally unique (uq_account_code).  A parent account
        groups children of the same classification and is never posted to.

    Guarantees:
        - account_class is one of AccountClass.
        - natural_side is DEBIT or CREDIT.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_class", "account_class"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_class: Mapped[AccountClass] = mapped_column(String(20), nullable=False)

    # Side that increases the account
    natural_side: Mapped[LineSide] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Group account with children; excluded from postable selections
    is_parent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_postable(self) -> bool:
        """Active leaf account."""
        return self.is_active and not self.is_parent

    @property
    def is_debit_natured(self) -> bool:
        return self.natural_side == LineSide.DEBIT
