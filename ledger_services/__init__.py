"""Orchestration layer: LedgerApi and the per-transaction LedgerContext."""

from ledger_services.ledger_api import LedgerApi
from ledger_services.ledger_context import LedgerContext

__all__ = ["LedgerApi", "LedgerContext"]
