"""
LedgerSettings schema.

Frozen dataclasses the YAML settings document is parsed into.  Defaults here
match ``defaults/ledger.yaml``; a document only needs to list the keys it
changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///ledger.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class NumberingSettings:
    """Entry number allocation."""

    sequence_name: str = "journal_entry"
    # Max-plus-one fallback when the counter table is unusable; race-prone
    allow_max_fallback: bool = False


@dataclass(frozen=True)
class JournalSettings:
    list_limit: int = 100
    void_annotation: str = "VOIDED"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime settings."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    numbering: NumberingSettings = field(default_factory=NumberingSettings)
    journal: JournalSettings = field(default_factory=JournalSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
