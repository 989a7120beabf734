"""
ActivityLogService -- append-only record of lifecycle actions.

Responsibility:
    Writes one ActivityLog row per entry or period action, inside the
    caller's transaction, and reads them back for an entity.

Architecture position:
    Kernel > Services.  Called by JournalService, PeriodService and
    ReopeningService.

Non-goals:
    - Does NOT call ``session.commit()``.
    - Does NOT update or delete rows.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import ActivityRecord
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.activity_log import ActivityAction, ActivityLog
from ledger_kernel.services.base import BaseService

logger = get_logger("services.activity_log")

ENTITY_JOURNAL_ENTRY = "journal_entry"
ENTITY_FISCAL_PERIOD = "fiscal_period"
ENTITY_MONTHLY_PERIOD = "monthly_period"


class ActivityLogService(BaseService[ActivityLog]):
    """Records and lists activity for entries and periods."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record(
        self,
        action: ActivityAction,
        entity_type: str,
        entity_id: UUID,
        actor_id: UUID,
        description: str,
        payload: dict[str, Any] | None = None,
    ) -> ActivityLog:
        row = ActivityLog(
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            description=description,
            occurred_at=self.clock.now(),
            payload=payload,
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(
            "activity_recorded",
            extra={
                "action": action.value,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        return row

    def for_entity(self, entity_type: str, entity_id: UUID) -> list[ActivityRecord]:
        """Activity for one entity, oldest first."""
        rows = self.session.execute(
            select(ActivityLog)
            .where(
                ActivityLog.entity_type == entity_type,
                ActivityLog.entity_id == entity_id,
            )
            .order_by(ActivityLog.occurred_at, ActivityLog.id)
        ).scalars()
        return [
            ActivityRecord(
                action=row.action,
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                actor_id=row.actor_id,
                description=row.description,
                occurred_at=row.occurred_at,
            )
            for row in rows
        ]
