"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  This package sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; ``ledger_services`` passes the relevant values into
    kernel services explicitly.

Sources (later overrides earlier):
    1. Packaged defaults (``ledger_config/defaults/ledger.yaml``).
    2. The file named by the ``path`` argument, or else by the
       ``LEDGER_CONFIG`` environment variable.
    3. ``DATABASE_URL`` environment variable for ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ConfigurationError`` (a ``ValueError``) -- unknown key or bad value.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    settings checksum and source file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import (
    ConfigurationError,
    load_settings,
    load_yaml_file,
    parse_settings,
)
from ledger_config.schema import (
    DatabaseSettings,
    JournalSettings,
    LedgerSettings,
    LoggingSettings,
    NumberingSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULTS_FILE = Path(__file__).parent / "defaults" / "ledger.yaml"

CONFIG_ENV_VAR = "LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_settings(path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Args:
        path: Settings file overlaid on the packaged defaults.  Falls back
            to ``$LEDGER_CONFIG`` when omitted.

    Returns:
        Frozen LedgerSettings.
    """
    settings = load_settings(DEFAULTS_FILE)
    source = str(DEFAULTS_FILE)

    override = path or os.environ.get(CONFIG_ENV_VAR)
    if override:
        settings = parse_settings(load_yaml_file(Path(override)), settings)
        source = str(override)

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        settings = replace(settings, database=replace(settings.database, url=database_url))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": source,
            "checksum": settings.checksum,
            "allow_max_fallback": settings.numbering.allow_max_fallback,
        },
    )
    return settings


__all__ = [
    "get_active_settings",
    "ConfigurationError",
    "DatabaseSettings",
    "JournalSettings",
    "LedgerSettings",
    "LoggingSettings",
    "NumberingSettings",
]
