"""
Period and fiscal-year state transitions.

Verifies:
- OPEN -> CLOSED -> CLOSED_FINAL, CLOSED -> OPEN, nothing else
- Every transition bumps the version and is recorded
- Reopen needs a reason and an OPEN fiscal year
- Fiscal-year close requires all periods closed; finalize cascades
"""

import pytest

from ledger_kernel.domain.dtos import PeriodTotals
from ledger_kernel.exceptions import (
    CannotReopenFinalizedError,
    ConcurrentStateChangeError,
    FiscalYearNotReadyError,
    InvalidStateTransitionError,
    PeriodAlreadyClosedError,
    ReasonRequiredError,
)
from ledger_kernel.models.closing import ClosureAction, ClosureScope
from ledger_kernel.models.fiscal_period import PeriodState


@pytest.fixture
def closed_january(close_service, clean_january, january, test_actor_id):
    result = close_service.close_period(january.id, test_actor_id)
    assert result.is_success
    return result.summary.period


def _close_all(close_service, fiscal_year, actor_id):
    for period in fiscal_year.periods:
        close_service.close_period(period.id, actor_id).raise_for_failure()


class TestPeriodTransitions:

    def test_close_bumps_version_and_blocks_entries(self, closed_january, january):
        assert closed_january.state == PeriodState.CLOSED
        assert closed_january.version == january.version + 1
        assert not closed_january.allows_entries
        assert closed_january.closed_at is not None

    def test_close_twice_raises_already_closed(self, close_service, closed_january, test_actor_id):
        with pytest.raises(PeriodAlreadyClosedError):
            close_service.close_period(closed_january.id, test_actor_id)

    def test_reopen_records_reason(self, close_service, closed_january, test_actor_id):
        reopened = close_service.reopen_period(
            closed_january.id, test_actor_id, "  Missing supplier invoice  ",
        )

        assert reopened.state == PeriodState.OPEN
        assert reopened.allows_entries
        assert reopened.reopen_reason == "Missing supplier invoice"
        assert reopened.reopened_by_id == test_actor_id
        assert reopened.version == closed_january.version + 1

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reopen_requires_reason(self, close_service, closed_january, test_actor_id, reason):
        with pytest.raises(ReasonRequiredError):
            close_service.reopen_period(closed_january.id, test_actor_id, reason)
        assert close_service.get_period_state(closed_january.id) == PeriodState.CLOSED

    def test_finalize_then_reopen_fails(self, close_service, closed_january, test_actor_id):
        final = close_service.finalize_period(closed_january.id, test_actor_id)
        assert final.state == PeriodState.CLOSED_FINAL

        with pytest.raises(CannotReopenFinalizedError):
            close_service.reopen_period(closed_january.id, test_actor_id, "Audit adjustment")
        with pytest.raises(PeriodAlreadyClosedError):
            close_service.close_period(closed_january.id, test_actor_id)

    def test_finalize_open_period_rejected(self, close_service, january, fiscal_year, test_actor_id):
        with pytest.raises(InvalidStateTransitionError):
            close_service.finalize_period(january.id, test_actor_id)

    def test_finalize_writes_record(self, close_service, closed_january, company_id, test_actor_id):
        close_service.finalize_period(closed_january.id, test_actor_id, notes="Year-end audit")

        latest = close_service.get_closure_history(company_id, closed_january.id)[0]
        assert latest.action == ClosureAction.FINALIZE
        assert latest.prior_state == PeriodState.CLOSED
        assert latest.new_state == PeriodState.CLOSED_FINAL
        assert latest.notes == "Year-end audit"
        assert latest.totals == closed_january.totals

    def test_stale_version_is_a_lost_race(
        self, period_service, closed_january, january, test_actor_id,
    ):
        # Another close committed since this caller read the period.
        with pytest.raises(ConcurrentStateChangeError) as exc_info:
            period_service.close(
                january.id, test_actor_id, PeriodTotals.zero(), expected_version=january.version,
            )
        assert exc_info.value.expected_version == january.version
        assert exc_info.value.expected_state == PeriodState.OPEN.value

    def test_stale_reopen_after_close_and_reopen(
        self, close_service, period_service, closed_january, test_actor_id,
    ):
        close_service.reopen_period(closed_january.id, test_actor_id, "Late invoice")
        close_service.close_period(closed_january.id, test_actor_id).raise_for_failure()

        with pytest.raises(ConcurrentStateChangeError):
            period_service.reopen(
                closed_january.id, test_actor_id, "Late invoice",
                expected_version=closed_january.version,
            )


class TestFiscalYearTransitions:

    def test_close_requires_every_period_closed(
        self, close_service, closed_january, fiscal_year, test_actor_id,
    ):
        with pytest.raises(FiscalYearNotReadyError) as exc_info:
            close_service.close_fiscal_year(fiscal_year.id, test_actor_id)
        assert len(exc_info.value.open_periods) == 11
        assert "February 2025" in exc_info.value.open_periods

    def test_close_fiscal_year(
        self, close_service, clean_january, fiscal_year, company_id, test_actor_id,
    ):
        _close_all(close_service, fiscal_year, test_actor_id)

        closed = close_service.close_fiscal_year(
            fiscal_year.id, test_actor_id, reason="Year end", notes="Audited",
        )

        assert closed.state == PeriodState.CLOSED
        record = close_service.get_closure_history(company_id)[0]
        assert record.scope == ClosureScope.FISCAL_YEAR
        assert record.period_id is None
        assert record.action == ClosureAction.CLOSE
        assert record.totals.entry_count == 1
        assert record.reason == "Year end"
        assert record.notes == "Audited"

    def test_reopen_period_blocked_while_year_closed(
        self, close_service, clean_january, fiscal_year, january, test_actor_id,
    ):
        _close_all(close_service, fiscal_year, test_actor_id)
        close_service.close_fiscal_year(fiscal_year.id, test_actor_id)

        with pytest.raises(InvalidStateTransitionError):
            close_service.reopen_period(january.id, test_actor_id, "Late correction")

        close_service.reopen_fiscal_year(fiscal_year.id, test_actor_id, "Late correction")
        reopened = close_service.reopen_period(january.id, test_actor_id, "Late correction")
        assert reopened.state == PeriodState.OPEN

    def test_reopen_fiscal_year_keeps_period_states(
        self, close_service, clean_january, fiscal_year, january, test_actor_id,
    ):
        _close_all(close_service, fiscal_year, test_actor_id)
        close_service.close_fiscal_year(fiscal_year.id, test_actor_id)

        year = close_service.reopen_fiscal_year(fiscal_year.id, test_actor_id, "Restatement")

        assert year.state == PeriodState.OPEN
        assert all(p.state == PeriodState.CLOSED for p in year.periods)
        assert year.reopened_by_id == test_actor_id
        assert year.reopen_reason == "Restatement"
        assert year.reopened_at is not None

    def test_reopen_fiscal_year_requires_reason(self, close_service, fiscal_year, test_actor_id):
        with pytest.raises(ReasonRequiredError):
            close_service.reopen_fiscal_year(fiscal_year.id, test_actor_id, " ")

    def test_finalize_cascades_to_closed_periods(
        self, close_service, clean_january, fiscal_year, company_id, test_actor_id,
    ):
        _close_all(close_service, fiscal_year, test_actor_id)
        close_service.close_fiscal_year(fiscal_year.id, test_actor_id)

        final = close_service.finalize_fiscal_year(fiscal_year.id, test_actor_id)

        assert final.state == PeriodState.CLOSED_FINAL
        assert all(p.state == PeriodState.CLOSED_FINAL for p in final.periods)

        history = close_service.get_closure_history(company_id)
        finalize_records = [r for r in history if r.action == ClosureAction.FINALIZE]
        assert len(finalize_records) == 13
        assert finalize_records[0].scope == ClosureScope.FISCAL_YEAR

    def test_finalize_open_year_rejected(self, close_service, fiscal_year, test_actor_id):
        with pytest.raises(InvalidStateTransitionError):
            close_service.finalize_fiscal_year(fiscal_year.id, test_actor_id)
