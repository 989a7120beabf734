"""
Module: ledger_kernel.models.activity_log
Responsibility: ORM persistence for the activity log -- one append-only row
    per lifecycle action on entries and periods.
Architecture position: Kernel > Models.  May import from db/base.py only.

Audit relevance:
    Rows are written in the same transaction as the change they describe,
    so a rolled-back operation leaves no activity behind.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class ActivityAction(str, Enum):
    """Recorded actions."""

    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_SUBMITTED = "entry_submitted"
    ENTRY_APPROVED = "entry_approved"
    ENTRY_POSTED = "entry_posted"
    ENTRY_VOIDED = "entry_voided"
    ENTRY_DELETED = "entry_deleted"
    ENTRY_MARKED_ADJUSTMENT = "entry_marked_adjustment"
    PERIOD_CLOSED = "period_closed"
    PERIOD_REOPENED = "period_reopened"


class ActivityLog(Base):
    """Append-only activity record."""

    __tablename__ = "activity_logs"

    __table_args__ = (
        Index("idx_activity_entity", "entity_type", "entity_id"),
        Index("idx_activity_occurred", "occurred_at"),
    )

    action: Mapped[ActivityAction] = mapped_column(String(50), nullable=False)

    # e.g. "journal_entry", "fiscal_period", "monthly_period"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} {self.entity_type}:{self.entity_id}>"
