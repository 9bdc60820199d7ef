"""
ledger_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration -- sits beside ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; services read settings and pass plain values
    (tolerance, prefix, sequence width) into kernel constructors.

Invariants enforced:
    - Resolution order: explicit ``config_path``, then the
      ``LEDGER_CONFIG_PATH`` environment variable, then the packaged
      ``defaults.yaml``.  ``DATABASE_URL`` overrides the database url.
    - The returned settings object is frozen and validated.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ValueError`` / ``KeyError`` -- invalid values or layout.

Audit relevance:
    Every call emits a ``LEDGER_CONFIG_TRACE`` log entry carrying the
    source path and the settings checksum.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, parse_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"
DATABASE_URL_ENV = "DATABASE_URL"


def resolve_config_path(config_path: Path | str | None = None) -> Path:
    """Which settings file ``get_active_settings`` would read."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULTS_PATH


def get_active_settings(config_path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Guarantees:
        - The returned ``LedgerSettings`` passed validation.
        - A ``LEDGER_CONFIG_TRACE`` log entry is emitted.

    Raises:
        FileNotFoundError: the resolved file does not exist.
        ValueError: a value is malformed or out of range.
    """
    path = resolve_config_path(config_path)
    settings = parse_settings(load_yaml_file(path))

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = replace(settings, database_url=database_url)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "source": str(path),
            "checksum": compute_checksum(settings),
            "database_url_from_env": bool(database_url),
        },
    )
    return settings


__all__ = [
    "LedgerSettings",
    "get_active_settings",
    "resolve_config_path",
]
