"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.closing import (
    BalanceSnapshot,
    ClosureAction,
    ClosureRecord,
    ClosureScope,
)
from ledger_kernel.models.documents import (
    CommissionRecord,
    CommissionStatus,
    DocumentKind,
    PostingStatus,
    SourceDocument,
)
from ledger_kernel.models.fiscal_period import AccountingPeriod, FiscalYear, PeriodState
from ledger_kernel.models.ledger import LedgerEntry, LedgerEntryStatus, Posting
from ledger_kernel.models.treasury import BankAccount, MovementKind, TreasuryMovement


def import_all_models() -> None:
    """Ensure every mapped table, including the sequence counter, is on Base.metadata."""
    import ledger_kernel.services.sequence_service  # noqa: F401


__all__ = [
    "Account",
    "AccountType",
    "AccountingPeriod",
    "BalanceSnapshot",
    "BankAccount",
    "ClosureAction",
    "ClosureRecord",
    "ClosureScope",
    "CommissionRecord",
    "CommissionStatus",
    "DocumentKind",
    "FiscalYear",
    "LedgerEntry",
    "LedgerEntryStatus",
    "MovementKind",
    "PeriodState",
    "Posting",
    "PostingStatus",
    "SourceDocument",
    "TreasuryMovement",
    "import_all_models",
]
