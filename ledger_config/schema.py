"""
LedgerSettings schema.

The runtime settings of the ledger kernel, parsed from YAML by the loader
and handed out by ``ledger_config.get_active_settings()``.  Frozen: a
settings object never changes after it is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerSettings:
    """Validated runtime settings."""

    reconciliation_tolerance: Decimal = Decimal("0.01")
    default_entry_prefix: str = "AS"
    sequence_width: int = 6
    currency_places: int = 2
    database_url: str = "sqlite:///ledger.db"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.reconciliation_tolerance < 0:
            raise ValueError(
                f"reconciliation_tolerance must be >= 0, got {self.reconciliation_tolerance}"
            )
        if not self.default_entry_prefix or len(self.default_entry_prefix) > 10:
            raise ValueError(
                f"default_entry_prefix must be 1-10 characters, got {self.default_entry_prefix!r}"
            )
        if not 1 <= self.sequence_width <= 12:
            raise ValueError(f"sequence_width must be 1-12, got {self.sequence_width}")
        if not 0 <= self.currency_places <= 9:
            raise ValueError(f"currency_places must be 0-9, got {self.currency_places}")
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}"
            )
