"""Hidden-by-period tag: default listings skip documents of closed periods."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.models.documents import DocumentKind
from ledger_kernel.selectors.document_selector import DocumentSelector
from ledger_kernel.services.document_visibility_service import DocumentVisibilityService


@pytest.fixture
def selector(session):
    return DocumentSelector(session)


@pytest.fixture
def visibility(session):
    return DocumentVisibilityService(session)


class TestDefaultListings:

    def test_closed_period_documents_hidden(
        self, selector, close_service, clean_january, company_id, january, test_actor_id,
    ):
        clean_january.sales_invoice(number="F-002", issue_date=date(2025, 2, 4))
        clean_january.commission(commission_date=date(2025, 2, 4))

        close_service.close_period(january.id, test_actor_id).raise_for_failure()

        assert [d.number for d in selector.list_documents(company_id)] == ["F-002"]
        assert len(selector.list_commissions(company_id)) == 1

        everything = selector.list_documents(company_id, include_hidden=True)
        assert [(d.number, d.hidden_by_period_id) for d in everything] == [
            ("F-001", january.id), ("F-002", None),
        ]

    def test_reopen_restores_listing(
        self, selector, close_service, clean_january, company_id, january, test_actor_id,
    ):
        close_service.close_period(january.id, test_actor_id).raise_for_failure()
        close_service.reopen_period(january.id, test_actor_id, "Late credit note")

        assert [d.number for d in selector.list_documents(company_id)] == ["F-001"]

    def test_filter_by_kind(self, selector, scenario, company_id, january):
        scenario.sales_invoice()
        scenario.document(
            DocumentKind.PURCHASE_INVOICE, "P-1", date(2025, 1, 3), Decimal("9.00"),
        )

        purchases = selector.list_documents(
            company_id, january.date_range, kind=DocumentKind.PURCHASE_INVOICE,
        )
        assert [d.number for d in purchases] == ["P-1"]


class TestVisibilityService:

    def test_hide_never_overwrites_existing_tag(
        self, visibility, scenario, company_id, january, february,
    ):
        scenario.sales_invoice()

        visibility.hide_in_range(company_id, january.date_range, january.id)
        second = visibility.hide_in_range(company_id, january.date_range, february.id)

        assert second.documents == 0

    def test_reveal_counts_rows(self, visibility, scenario, company_id, january):
        scenario.sales_invoice()
        scenario.commission()

        hidden = visibility.hide_in_range(company_id, january.date_range, january.id)
        revealed = visibility.reveal_for_period(company_id, january.date_range, january.id)

        assert (hidden.documents, hidden.commissions) == (1, 1)
        assert (revealed.documents, revealed.commissions) == (1, 1)

    def test_other_company_untouched(self, visibility, scenario, january):
        scenario.sales_invoice()

        change = visibility.hide_in_range(uuid4(), january.date_range, january.id)

        assert change.documents == 0
