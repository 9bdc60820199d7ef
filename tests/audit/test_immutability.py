"""
ORM-level write protection.

Verifies the flush listeners, independent of the services:
- Closure records and balance snapshots are append-only
- Period state cannot be changed through the ORM
- Dated records cannot be written into, or moved out of, a closed period
- Confirmed ledger entries and their postings are frozen
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError

from ledger_kernel.db.engine import create_tables
from ledger_kernel.db.immutability import unregister_immutability_listeners
from ledger_kernel.db.triggers import triggers_installed
from ledger_kernel.exceptions import ImmutabilityViolationError, PeriodClosedError
from ledger_kernel.models.closing import BalanceSnapshot, ClosureRecord
from ledger_kernel.models.documents import CommissionRecord, SourceDocument
from ledger_kernel.models.fiscal_period import AccountingPeriod, PeriodState
from ledger_kernel.models.ledger import LedgerEntry


@pytest.fixture
def closed(close_service, clean_january, january, test_actor_id):
    return close_service.close_period(january.id, test_actor_id).raise_for_failure()


class TestAuditTrail:

    def test_closure_record_cannot_be_modified(self, session, closed):
        record = session.get(ClosureRecord, closed.closure_record.id)
        record.notes = "Edited after the fact"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ClosureRecord"
        session.rollback()

    def test_closure_record_cannot_be_deleted(self, session, closed):
        session.delete(session.get(ClosureRecord, closed.closure_record.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_balance_snapshot_cannot_be_modified(self, session, closed):
        snapshot = session.scalars(select(BalanceSnapshot)).one()
        snapshot.recorded_balance = Decimal("1.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "BalanceSnapshot"
        session.rollback()

    def test_balance_snapshot_cannot_be_deleted(self, session, closed):
        session.delete(session.scalars(select(BalanceSnapshot)).one())

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestPeriodProtection:

    def test_orm_state_change_blocked(self, session, january):
        period = session.get(AccountingPeriod, january.id)
        period.state = PeriodState.CLOSED.value

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert "PeriodService" in exc_info.value.reason
        session.rollback()

    def test_closed_period_fields_frozen(self, session, closed, january):
        period = session.get(AccountingPeriod, january.id)
        period.name = "Renamed"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_open_period_metadata_editable(self, session, january):
        period = session.get(AccountingPeriod, january.id)
        period.name = "Jan 2025"
        session.flush()
        session.rollback()


class TestClosedPeriodGuard:

    def test_document_amount_frozen(self, session, closed):
        doc = session.scalars(select(SourceDocument)).one()
        doc.total = Decimal("120.00")

        with pytest.raises(PeriodClosedError) as exc_info:
            session.flush()
        assert exc_info.value.period_name == "January 2025"
        session.rollback()

    def test_document_cannot_move_out_of_closed_period(self, session, closed):
        doc = session.scalars(select(SourceDocument)).one()
        doc.issue_date = date(2025, 2, 1)

        with pytest.raises(PeriodClosedError):
            session.flush()
        session.rollback()

    def test_visibility_tag_may_change(self, session, closed):
        doc = session.scalars(select(SourceDocument)).one()
        doc.hidden_by_period_id = None
        session.flush()
        session.rollback()

    def test_commission_insert_into_closed_period(self, session, closed, company_id, test_actor_id):
        session.add(
            CommissionRecord(
                company_id=company_id,
                partner_id=uuid4(),
                commission_date=date(2025, 1, 31),
                amount=Decimal("10.00"),
                status="pending",
                created_by_id=test_actor_id,
            )
        )

        with pytest.raises(PeriodClosedError):
            session.flush()
        session.rollback()

    def test_insert_into_open_period_allowed(self, session, closed, scenario):
        scenario.commission(commission_date=date(2025, 2, 1))


class TestLedgerEntryProtection:

    @pytest.fixture
    def confirmed(self, scenario):
        return scenario.entry([("ar", "10.00", "0"), ("sales", "0", "10.00")])

    def test_confirmed_entry_frozen(self, session, confirmed):
        entry = session.get(LedgerEntry, confirmed.id)
        entry.description = "Rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LedgerEntry"
        session.rollback()

    def test_confirmed_postings_frozen(self, session, confirmed):
        entry = session.get(LedgerEntry, confirmed.id)
        entry.postings[0].debit = Decimal("11.00")

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Posting"
        session.rollback()

    def test_confirmed_entry_cannot_be_deleted(self, session, confirmed):
        session.delete(session.get(LedgerEntry, confirmed.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_void_may_only_touch_void_fields(self, session, confirmed):
        entry = session.get(LedgerEntry, confirmed.id)
        entry.status = "voided"
        entry.reference = "sneaky"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestProtectionInstalledByEngine:
    """The package wires its own protection; callers do not register anything."""

    def test_create_tables_registers_listeners(self, session, closed):
        unregister_immutability_listeners()
        create_tables()

        record = session.get(ClosureRecord, closed.closure_record.id)
        record.notes = "Edited after the fact"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    @pytest.mark.postgres
    def test_triggers_installed(self, db_engine):
        assert triggers_installed(db_engine)

    @pytest.mark.postgres
    def test_core_update_blocked_by_trigger(self, session, closed):
        with pytest.raises(DBAPIError, match="append-only"):
            session.execute(
                update(ClosureRecord)
                .where(ClosureRecord.id == closed.closure_record.id)
                .values(notes="Edited after the fact")
            )
        session.rollback()

    @pytest.mark.postgres
    def test_raw_delete_blocked_by_trigger(self, session, closed):
        with pytest.raises(DBAPIError, match="append-only"):
            session.execute(text("DELETE FROM balance_snapshots"))
        session.rollback()
