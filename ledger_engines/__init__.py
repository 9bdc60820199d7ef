"""
Module: ledger_engines
Responsibility:
    Pure calculation engines used by the closing workflow.  This package is
    the import surface for ledger_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.db.types and
    sibling engine modules.
    MUST NOT import ledger_services.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Dates and
      tolerances are passed in by the calling service.
    - Decimal-only arithmetic for monetary amounts.
    - Determinism: identical inputs always produce identical outputs.
"""

from ledger_engines.reconciliation import TreasuryReconciliationEngine

__all__ = [
    "TreasuryReconciliationEngine",
]
