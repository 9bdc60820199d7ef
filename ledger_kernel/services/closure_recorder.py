"""
ClosureRecorder -- append-only audit trail of the period lifecycle.

Responsibility:
    Writes one ClosureRecord per close / reopen / finalize action (period or
    fiscal year scope) and, for a period close, one BalanceSnapshot per
    reconciled bank account, linked to that record.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by PeriodCloseService inside the same transaction as the
    compare-and-set state flip.

Invariants enforced:
    - Append-only: this service only INSERTs.  Updates and deletes are
      rejected by the ORM listeners in db/immutability.py.
    - record_seq is allocated from SequenceService, one sequence per company.
    - Snapshot values are copied from the ReconciliationResult that the
      closing validator produced; nothing is recomputed here.
    - Flush-only.

Audit relevance:
    ClosureRecord rows answer who changed a period, when, why, from which
    state to which, and what the ledger totals were at that moment.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountingPeriodInfo,
    ClosureRecordInfo,
    FiscalYearInfo,
    PeriodTotals,
)
from ledger_kernel.domain.treasury import BankBalanceCheck
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.closing import (
    BalanceSnapshot,
    ClosureAction,
    ClosureRecord,
    ClosureScope,
)
from ledger_kernel.models.fiscal_period import PeriodState
from ledger_kernel.selectors.period_selector import closure_record_to_info
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.closure_recorder")


class ClosureRecorder(BaseService):
    """
    Writes closure records and balance snapshots.

    Guarantees:
        - Exactly one ClosureRecord per call.
        - Exactly one BalanceSnapshot per BankBalanceCheck passed to
          ``record_period_action``; earlier snapshots are never removed.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = sequence_service or SequenceService(session)

    def _append(
        self,
        *,
        company_id: UUID,
        scope: ClosureScope,
        fiscal_year_id: UUID,
        period_id: UUID | None,
        action: ClosureAction,
        actor_id: UUID,
        prior_state: PeriodState,
        new_state: PeriodState,
        totals: PeriodTotals,
        reason: str | None,
        notes: str | None,
    ) -> ClosureRecord:
        record_seq = self._sequences.next_value(
            SequenceService.closure_record_sequence(company_id)
        )
        record = ClosureRecord(
            company_id=company_id,
            record_seq=record_seq,
            scope=scope.value,
            period_id=period_id,
            fiscal_year_id=fiscal_year_id,
            action=action.value,
            actor_id=actor_id,
            recorded_at=self._clock.now(),
            reason=reason,
            notes=notes,
            prior_state=prior_state.value,
            new_state=new_state.value,
            total_debits=round_money(totals.total_debits),
            total_credits=round_money(totals.total_credits),
            entry_count=totals.entry_count,
            created_by_id=actor_id,
        )
        self.session.add(record)
        return record

    def record_period_action(
        self,
        period: AccountingPeriodInfo,
        action: ClosureAction,
        actor_id: UUID,
        prior_state: PeriodState,
        totals: PeriodTotals,
        balances: tuple[BankBalanceCheck, ...] = (),
        reason: str | None = None,
        notes: str | None = None,
    ) -> ClosureRecordInfo:
        """
        Append a period-scoped record, plus snapshots when ``balances`` is
        given (close only).

        ``period`` must reflect the state after the transition.
        """
        record = self._append(
            company_id=period.company_id,
            scope=ClosureScope.PERIOD,
            fiscal_year_id=period.fiscal_year_id,
            period_id=period.id,
            action=action,
            actor_id=actor_id,
            prior_state=prior_state,
            new_state=period.state,
            totals=totals,
            reason=reason,
            notes=notes,
        )

        captured_at = self._clock.now()
        for check in balances:
            self.session.add(BalanceSnapshot(
                closure_record=record,
                period_id=period.id,
                bank_account_id=check.bank_account_id,
                computed_balance=round_money(check.computed_balance),
                recorded_balance=round_money(check.recorded_balance),
                difference=round_money(check.difference),
                captured_at=captured_at,
                created_by_id=actor_id,
            ))

        self.session.flush()

        logger.info(
            "closure_record_appended",
            extra={
                "record_seq": record.record_seq,
                "scope": ClosureScope.PERIOD.value,
                "action": action.value,
                "prior_state": prior_state.value,
                "new_state": period.state.value,
                "snapshot_count": len(balances),
            },
        )
        return closure_record_to_info(record)

    def record_fiscal_year_action(
        self,
        fiscal_year: FiscalYearInfo,
        action: ClosureAction,
        actor_id: UUID,
        prior_state: PeriodState,
        totals: PeriodTotals,
        reason: str | None = None,
        notes: str | None = None,
    ) -> ClosureRecordInfo:
        """Append a fiscal-year scoped record.  ``fiscal_year`` is post-transition."""
        record = self._append(
            company_id=fiscal_year.company_id,
            scope=ClosureScope.FISCAL_YEAR,
            fiscal_year_id=fiscal_year.id,
            period_id=None,
            action=action,
            actor_id=actor_id,
            prior_state=prior_state,
            new_state=fiscal_year.state,
            totals=totals,
            reason=reason,
            notes=notes,
        )
        self.session.flush()

        logger.info(
            "closure_record_appended",
            extra={
                "record_seq": record.record_seq,
                "scope": ClosureScope.FISCAL_YEAR.value,
                "action": action.value,
                "prior_state": prior_state.value,
                "new_state": fiscal_year.state.value,
            },
        )
        return closure_record_to_info(record)
