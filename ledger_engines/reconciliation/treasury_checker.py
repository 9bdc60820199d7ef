"""
TreasuryReconciliationEngine -- pure bank balance and movement-link checks.

Compares, for every active bank/cash account, the balance derived from the
ledger (opening balance plus confirmed net movement on the linked ledger
account) with the balance recorded on the bank account, and lists treasury
movements that lack a linked, confirmed ledger entry.

Architecture: ledger_engines -- pure calculation, zero I/O, zero DB access.
All inputs are frozen dataclasses populated by TreasuryReconciliationChecker.

Invariants enforced:
    - difference = recorded - computed, signed, at currency precision.
    - A balance matches iff |difference| <= tolerance.  The tolerance is the
      only non-exact comparison in the closing workflow.
    - Output order follows input order (accounts, then movements by date).
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.db.types import round_money
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.domain.treasury import (
    BankAccountInfo,
    BankBalanceCheck,
    ReconciliationResult,
    TreasuryMovementInfo,
    UnlinkedMovement,
)

DEFAULT_TOLERANCE = Decimal("0.01")


class TreasuryReconciliationEngine:
    """Pure engine for treasury reconciliation.

    Usage:
        engine = TreasuryReconciliationEngine()
        result = engine.reconcile(
            date_range=period_range,
            accounts=accounts,
            ledger_movements={account.id: Decimal("118.00")},
            movements=movements,
            confirmed_entry_ids={confirmed_entry.id},
            tolerance=Decimal("0.01"),
        )
    """

    @staticmethod
    def check_balance(
        account: BankAccountInfo,
        ledger_movement: Decimal,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> BankBalanceCheck:
        """Compare one account's ledger-derived and recorded balances."""
        opening = round_money(account.opening_balance)
        movement = round_money(ledger_movement)
        computed = opening + movement
        recorded = round_money(account.recorded_balance)
        return BankBalanceCheck(
            bank_account_id=account.id,
            bank_account_name=account.name,
            ledger_account_id=account.ledger_account_id,
            opening_balance=opening,
            ledger_movement=movement,
            computed_balance=computed,
            recorded_balance=recorded,
            difference=recorded - computed,
            tolerance=tolerance,
        )

    @staticmethod
    def unlinked(
        movements: Sequence[TreasuryMovementInfo],
        confirmed_entry_ids: Collection[UUID] = frozenset(),
    ) -> tuple[UnlinkedMovement, ...]:
        """Movements without a linked entry, or linked to a non-confirmed one."""
        return tuple(
            UnlinkedMovement(
                movement_id=m.id,
                bank_account_id=m.bank_account_id,
                movement_date=m.movement_date,
                amount=round_money(m.amount),
                linked_entry_id=m.linked_entry_id,
            )
            for m in sorted(movements, key=lambda m: m.movement_date)
            if m.linked_entry_id is None or m.linked_entry_id not in confirmed_entry_ids
        )

    @traced_engine(
        "treasury_reconciliation", "1.0",
        fingerprint_fields=("date_range", "tolerance"),
    )
    def reconcile(
        self,
        *,
        date_range: DateRange,
        accounts: Sequence[BankAccountInfo],
        ledger_movements: Mapping[UUID, Decimal],
        movements: Sequence[TreasuryMovementInfo],
        confirmed_entry_ids: Collection[UUID] = frozenset(),
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> ReconciliationResult:
        """
        Reconcile every account.

        ``ledger_movements`` maps bank account id to the natural-sign sum of
        confirmed postings on its ledger account up to ``date_range.end``;
        a missing key counts as zero.  ``confirmed_entry_ids`` holds the
        linked entries known to be CONFIRMED; any other link counts as
        unlinked.
        """
        balances = tuple(
            self.check_balance(
                account,
                ledger_movements.get(account.id, Decimal("0")),
                tolerance,
            )
            for account in accounts
        )
        return ReconciliationResult(
            date_range=date_range,
            balances=balances,
            unlinked_movements=self.unlinked(movements, confirmed_entry_ids),
        )
