"""
Settings Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings document and parses it into the frozen
``ledger_config.schema`` dataclasses.  Runtime code does not call this
directly; it goes through ``ledger_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown sections and unknown keys raise ``ConfigurationError`` naming
  the offending key; typos never fall back to defaults silently.
* Values are type-checked against the dataclass defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for the config trace log.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or wrong value type  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    DatabaseSettings,
    JournalSettings,
    LedgerSettings,
    LoggingSettings,
    NumberingSettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "numbering": NumberingSettings,
    "journal": JournalSettings,
    "logging": LoggingSettings,
}


class ConfigurationError(ValueError):
    """The settings document is not valid."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    return data


def _check_type(section: str, key: str, value: Any, default: Any) -> Any:
    expected = type(default)
    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigurationError(f"{section}.{key} must be true or false, got {value!r}")
        return value
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}")
        if value < 0:
            raise ConfigurationError(f"{section}.{key} must not be negative, got {value}")
        return value
    if not isinstance(value, str):
        raise ConfigurationError(f"{section}.{key} must be a string, got {value!r}")
    return value


def parse_section(name: str, data: Any, base: Any) -> Any:
    """Overlay one section mapping onto ``base`` (a section dataclass)."""
    if data is None:
        return base
    if not isinstance(data, dict):
        raise ConfigurationError(f"section {name!r} must be a mapping")

    known = {f.name for f in fields(base)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown key(s) in {name!r}: {', '.join(unknown)}")

    changes = {
        key: _check_type(name, key, value, getattr(base, key))
        for key, value in data.items()
    }
    return replace(base, **changes)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a settings mapping."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_settings(data: dict[str, Any], base: LedgerSettings | None = None) -> LedgerSettings:
    """
    Parse a settings mapping, overlaying it onto ``base``.

    Raises:
        ConfigurationError: unknown section or key, or a wrong value type.
    """
    base = base or LedgerSettings()
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"unknown section(s): {', '.join(unknown)}")

    sections = {
        name: parse_section(name, data.get(name), getattr(base, name))
        for name in _SECTIONS
    }
    settings = LedgerSettings(**sections)
    snapshot = {
        name: {f.name: getattr(getattr(settings, name), f.name) for f in fields(cls)}
        for name, cls in _SECTIONS.items()
    }
    # The database URL may carry credentials; only its scheme is fingerprinted
    snapshot["database"]["url"] = settings.database.url.split(":", 1)[0]
    return replace(settings, checksum=compute_checksum(snapshot))


def load_settings(path: Path, base: LedgerSettings | None = None) -> LedgerSettings:
    """Load and parse one YAML settings file."""
    return parse_settings(load_yaml_file(path), base)
