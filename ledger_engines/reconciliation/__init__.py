"""Treasury reconciliation -- pure comparison of ledger and recorded balances."""

from ledger_engines.reconciliation.treasury_checker import TreasuryReconciliationEngine

__all__ = [
    "TreasuryReconciliationEngine",
]
