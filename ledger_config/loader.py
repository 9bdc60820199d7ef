"""
Settings loader (``ledger_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into a ``LedgerSettings``.  Only
``ledger_config.get_active_settings()`` calls this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages.  Sections that are absent fall back to the schema defaults;
  sections that are present must be mappings.
* Monetary values are parsed as ``Decimal`` from their string form, never
  through float.
* ``compute_checksum`` is deterministic for identical settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong type or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import LedgerSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping, got {type(section).__name__}")
    return section


def parse_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field}: cannot parse decimal from {value!r}") from exc


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{field}: expected an integer, got {value!r}")
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{field}: expected an integer, got {value!r}") from exc


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Build LedgerSettings from a parsed YAML mapping.

    Expected layout::

        closing:  {reconciliation_tolerance}
        ledger:   {default_entry_prefix, sequence_width, currency_places}
        database: {url}
        logging:  {level}
    """
    defaults = LedgerSettings()
    closing = _section(data, "closing")
    ledger = _section(data, "ledger")
    database = _section(data, "database")
    logging_section = _section(data, "logging")

    return LedgerSettings(
        reconciliation_tolerance=parse_decimal(
            closing.get("reconciliation_tolerance", defaults.reconciliation_tolerance),
            "closing.reconciliation_tolerance",
        ),
        default_entry_prefix=str(
            ledger.get("default_entry_prefix", defaults.default_entry_prefix)
        ),
        sequence_width=parse_int(
            ledger.get("sequence_width", defaults.sequence_width),
            "ledger.sequence_width",
        ),
        currency_places=parse_int(
            ledger.get("currency_places", defaults.currency_places),
            "ledger.currency_places",
        ),
        database_url=str(database.get("url", defaults.database_url)),
        log_level=str(logging_section.get("level", defaults.log_level)).upper(),
    )


def compute_checksum(settings: LedgerSettings) -> str:
    """SHA-256 of the settings' canonical form, truncated to 16 hex chars."""
    canonical = "|".join(f"{k}={v}" for k, v in sorted(asdict(settings).items()))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
