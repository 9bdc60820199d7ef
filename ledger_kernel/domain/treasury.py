"""
Treasury value objects shared by the reconciliation engine and the closing
validator.

Architecture position:
    Kernel > Domain -- frozen dataclasses only, zero I/O.  Populated by the
    service layer from collaborator providers and consumed by
    ``ledger_engines.reconciliation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.models.treasury import MovementKind


@dataclass(frozen=True)
class BankAccountInfo:
    """Active bank/cash account as reported by a BankAccountProvider."""

    id: UUID
    name: str
    ledger_account_id: UUID
    opening_balance: Decimal
    recorded_balance: Decimal


@dataclass(frozen=True)
class TreasuryMovementInfo:
    """Treasury movement as reported by a TreasuryMovementProvider."""

    id: UUID
    bank_account_id: UUID
    movement_date: date
    kind: MovementKind
    amount: Decimal
    linked_entry_id: UUID | None = None
    description: str | None = None


@dataclass(frozen=True)
class BankBalanceCheck:
    """
    Ledger-derived vs recorded balance for one bank account.

    ``difference`` is recorded - computed, signed.
    """

    bank_account_id: UUID
    bank_account_name: str
    ledger_account_id: UUID
    opening_balance: Decimal
    ledger_movement: Decimal
    computed_balance: Decimal
    recorded_balance: Decimal
    difference: Decimal
    tolerance: Decimal

    @property
    def is_matched(self) -> bool:
        return abs(self.difference) <= self.tolerance


@dataclass(frozen=True)
class UnlinkedMovement:
    """Treasury movement in range without a linked, confirmed ledger entry."""

    movement_id: UUID
    bank_account_id: UUID
    movement_date: date
    amount: Decimal
    linked_entry_id: UUID | None

    @property
    def reason(self) -> str:
        if self.linked_entry_id is None:
            return "no linked ledger entry"
        return f"linked ledger entry {self.linked_entry_id} is not confirmed"


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of reconciling every active bank account over a date range."""

    date_range: DateRange
    balances: tuple[BankBalanceCheck, ...]
    unlinked_movements: tuple[UnlinkedMovement, ...]

    @property
    def mismatched_balances(self) -> tuple[BankBalanceCheck, ...]:
        return tuple(b for b in self.balances if not b.is_matched)

    @property
    def is_reconciled(self) -> bool:
        return not self.mismatched_balances and not self.unlinked_movements
