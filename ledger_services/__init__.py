"""
ledger_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the kernel (ledger_kernel/) and the pure
    engines (ledger_engines/).  This is the only layer that commits or
    rolls back a database transaction and the only one that reads
    ``ledger_config``.

Architecture position:
    Services -- top of the stack.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_services/ -> ledger_config/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_config/   (FORBIDDEN)

Audit relevance:
    This package is the import surface for callers.  Changes to __all__
    must be reviewed for backwards-compatibility.
"""

from ledger_services.closing_validator import ClosingValidator
from ledger_services.document_posting_registry import DocumentPostingRegistry
from ledger_services.journal_service import JournalService
from ledger_services.period_close_service import PeriodCloseService
from ledger_services.treasury_reconciliation import TreasuryReconciliationChecker

__all__ = [
    "ClosingValidator",
    "DocumentPostingRegistry",
    "JournalService",
    "PeriodCloseService",
    "TreasuryReconciliationChecker",
]
