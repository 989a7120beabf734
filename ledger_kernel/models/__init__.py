"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.activity_log import ActivityAction, ActivityLog
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.models.period import FiscalPeriod, MonthlyPeriod
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "ActivityAction",
    "ActivityLog",
    "FiscalPeriod",
    "JournalEntry",
    "JournalLine",
    "MonthlyPeriod",
    "SequenceCounter",
]
