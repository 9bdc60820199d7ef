"""
ledger_services.treasury_reconciliation -- ledger vs recorded bank balances.

Responsibility:
    Gathers, for every active bank/cash account, its opening and recorded
    balances (BankAccountProvider), the natural-sign balance of its ledger
    account through the end of the range (LedgerSelector) and its treasury
    movements in range (TreasuryMovementProvider), then hands everything to
    the pure TreasuryReconciliationEngine.

Architecture position:
    Services -- I/O shell around ledger_engines.reconciliation.

Invariants enforced:
    - Only CONFIRMED postings contribute to the computed balance.
    - A movement counts as linked only when its linked entry is CONFIRMED
      in the ledger, whatever the movement provider is.
    - The tolerance comes from settings (0.01 by default) and applies to
      bank balances only.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_engines.reconciliation import TreasuryReconciliationEngine
from ledger_kernel.domain.collaborators import BankAccountProvider, TreasuryMovementProvider
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.domain.treasury import ReconciliationResult
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.document_selector import (
    SqlBankAccountProvider,
    SqlTreasuryMovementProvider,
)
from ledger_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.treasury_reconciliation")


class TreasuryReconciliationChecker:
    """Reconciles every active bank account of a company over a date range."""

    def __init__(
        self,
        session: Session,
        tolerance: Decimal = Decimal("0.01"),
        bank_account_provider: BankAccountProvider | None = None,
        movement_provider: TreasuryMovementProvider | None = None,
        ledger_selector: LedgerSelector | None = None,
        engine: TreasuryReconciliationEngine | None = None,
    ):
        self._tolerance = tolerance
        self._bank_accounts = bank_account_provider or SqlBankAccountProvider(session)
        self._movements = movement_provider or SqlTreasuryMovementProvider(session)
        self._ledger = ledger_selector or LedgerSelector(session)
        self._engine = engine or TreasuryReconciliationEngine()

    def reconcile(self, company_id: UUID, date_range: DateRange) -> ReconciliationResult:
        accounts = self._bank_accounts.active_accounts(company_id)

        ledger_movements = {
            account.id: self._ledger.account_balance_as_of(
                account.ledger_account_id, date_range.end,
            )
            for account in accounts
        }
        movements = [
            movement
            for account in accounts
            for movement in self._movements.movements(account.id, date_range)
        ]
        # Link status comes from the ledger, not from the provider.
        confirmed_entry_ids = self._ledger.confirmed_entry_ids(
            m.linked_entry_id for m in movements if m.linked_entry_id is not None
        )

        result = self._engine.reconcile(
            date_range=date_range,
            accounts=accounts,
            ledger_movements=ledger_movements,
            movements=movements,
            confirmed_entry_ids=confirmed_entry_ids,
            tolerance=self._tolerance,
        )

        logger.info(
            "treasury_reconciled",
            extra={
                "account_count": len(result.balances),
                "mismatched_count": len(result.mismatched_balances),
                "unlinked_count": len(result.unlinked_movements),
            },
        )
        return result
