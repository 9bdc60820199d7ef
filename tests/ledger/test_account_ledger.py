"""Account balances and the general-ledger book (natural sign convention)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.exceptions import AccountNotFoundError

JANUARY = DateRange(date(2025, 1, 1), date(2025, 1, 31))
FEBRUARY = DateRange(date(2025, 2, 1), date(2025, 2, 28))


@pytest.fixture
def booked(scenario):
    """Two invoices in January, a collection and a draft in February."""
    scenario.entry(
        [("ar", "118.00", "0"), ("sales", "0", "100.00"), ("tax", "0", "18.00")],
        entry_date=date(2025, 1, 5),
    )
    scenario.entry(
        [("ar", "59.00", "0"), ("sales", "0", "50.00"), ("tax", "0", "9.00")],
        entry_date=date(2025, 1, 20),
    )
    scenario.entry(
        [("bank", "118.00", "0"), ("ar", "0", "118.00")],
        entry_date=date(2025, 2, 3),
    )
    scenario.entry(
        [("bank", "59.00", "0"), ("ar", "0", "59.00")],
        entry_date=date(2025, 2, 10),
        confirm=False,
    )
    return scenario


class TestAccountSums:

    def test_debit_positive_account(self, booked, ledger_selector, chart):
        assert ledger_selector.sum_postings_for_account_in_range(
            chart["ar"].id, JANUARY,
        ) == Decimal("177.00")
        assert ledger_selector.sum_postings_for_account_in_range(
            chart["ar"].id, FEBRUARY,
        ) == Decimal("-118.00")

    def test_credit_positive_account(self, booked, ledger_selector, chart):
        assert ledger_selector.sum_postings_for_account_in_range(
            chart["sales"].id, JANUARY,
        ) == Decimal("150.00")
        assert ledger_selector.sum_postings_for_account_in_range(
            chart["tax"].id, JANUARY,
        ) == Decimal("27.00")

    def test_drafts_are_ignored(self, booked, ledger_selector, chart):
        assert ledger_selector.account_balance_as_of(
            chart["bank"].id, date(2025, 2, 28),
        ) == Decimal("118.00")

    def test_unknown_account(self, booked, ledger_selector):
        with pytest.raises(AccountNotFoundError):
            ledger_selector.account_balance_as_of(uuid4(), date(2025, 1, 31))


class TestAccountLedger:

    def test_running_balance(self, booked, journal_service, chart):
        book = journal_service.account_ledger(
            chart["ar"].id, DateRange(date(2025, 1, 1), date(2025, 2, 28)),
        )

        assert book.account_code == "1100"
        assert book.opening_balance == Decimal("0.00")
        assert [line.balance for line in book.lines] == [
            Decimal("118.00"), Decimal("177.00"), Decimal("59.00"),
        ]
        assert book.total_debits == Decimal("177.00")
        assert book.total_credits == Decimal("118.00")
        assert book.closing_balance == Decimal("59.00")

    def test_opening_balance_carries_prior_activity(self, booked, journal_service, chart):
        book = journal_service.account_ledger(chart["ar"].id, FEBRUARY)

        assert book.opening_balance == Decimal("177.00")
        assert len(book.lines) == 1
        assert book.lines[0].credit == Decimal("118.00")
        assert book.closing_balance == Decimal("59.00")

    def test_period_totals_count_confirmed_entries(self, booked, ledger_selector, company_id):
        totals = ledger_selector.period_totals(company_id, JANUARY)

        assert totals.entry_count == 2
        assert totals.total_debits == Decimal("177.00")
        assert totals.is_balanced
