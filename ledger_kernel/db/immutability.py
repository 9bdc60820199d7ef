"""
ORM-level write protection for the ledger kernel.

===============================================================================
WHY THIS EXISTS
===============================================================================

The services refuse illegal writes with typed errors before touching the
session.  These listeners are the second line: they fire on every flush,
whatever code path produced the change, so a bug or a hand-written script
cannot slip an edit past the period lifecycle or rewrite the audit trail.

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |        \
         |         +--> PeriodClosedError / ImmutabilityViolationError
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|------------------------------------------------------------
ClosureRecord     | ALWAYS immutable, never deleted (audit trail)
BalanceSnapshot   | ALWAYS immutable, never deleted (audit trail)
LedgerEntry       | DRAFT mutable; CONFIRMED may only become VOIDED; VOIDED frozen;
                  | only DRAFT may be deleted
Posting           | Frozen once the parent entry has left DRAFT
AccountingPeriod  | State changes only through compare-and-set (Core UPDATE);
                  | non-open periods are frozen for ORM writes
LedgerEntry,      | Cannot be created, edited, or have the date moved into or out
SourceDocument,   | of a CLOSED / CLOSED_FINAL period.  Only the visibility tag
CommissionRecord  | (hidden_by_period_id) may change there.

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by_id are audit metadata and may always change.

2. "Committed" state is read from attribute history: the value before this
   flush, not the value being written.  DRAFT -> CONFIRMED is therefore
   allowed, CONFIRMED -> anything-but-VOIDED is not.

3. Model imports are inline to avoid import cycles (models import db).

4. The closed-period guard queries accounting_periods through the flush
   connection, so it sees the same transaction the write is part of.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once, at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from datetime import date

from sqlalchemy import and_, event, inspect, select
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError, PeriodClosedError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields that may change on a document dated inside a closed period
VISIBILITY_FIELDS = AUDIT_METADATA_FIELDS | {"hidden_by_period_id"}

VOID_FIELDS = AUDIT_METADATA_FIELDS | {"status", "voided_at", "voided_by_id"}


def _changed_fields(target, ignore: frozenset[str]) -> list[str]:
    """Names of mapped attributes with pending changes, minus ``ignore``."""
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in ignore:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


def _committed_value(target, key: str):
    """Value of ``key`` before the pending flush."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    return getattr(target, key)


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# Append-only audit trail
# =============================================================================


def _check_closure_record_update(mapper, connection, target):
    _block("ClosureRecord", target, "UPDATE", "Closure records are append-only")


def _check_closure_record_delete(mapper, connection, target):
    _block("ClosureRecord", target, "DELETE", "Closure records cannot be deleted")


def _check_balance_snapshot_update(mapper, connection, target):
    _block("BalanceSnapshot", target, "UPDATE", "Balance snapshots are append-only")


def _check_balance_snapshot_delete(mapper, connection, target):
    _block("BalanceSnapshot", target, "DELETE", "Balance snapshots cannot be deleted")


# =============================================================================
# Ledger entries and postings
# =============================================================================


def _check_ledger_entry_immutability(mapper, connection, target):
    """
    DRAFT -> anything: allowed.
    CONFIRMED -> VOIDED touching only the void fields: allowed.
    Everything else on a CONFIRMED or VOIDED entry: blocked.
    """
    from ledger_kernel.models.ledger import LedgerEntryStatus

    old_status = LedgerEntryStatus(_committed_value(target, "status"))
    if old_status == LedgerEntryStatus.DRAFT:
        return

    if old_status == LedgerEntryStatus.CONFIRMED:
        new_status = LedgerEntryStatus(target.status)
        if new_status == LedgerEntryStatus.VOIDED:
            illegal = _changed_fields(target, VOID_FIELDS)
            if not illegal:
                return
            _block(
                "LedgerEntry", target, "UPDATE",
                f"Cannot modify field '{illegal[0]}' while voiding a confirmed entry",
                illegal[0],
            )

    changed = _changed_fields(target, AUDIT_METADATA_FIELDS)
    if changed:
        _block(
            "LedgerEntry", target, "UPDATE",
            f"Cannot modify field '{changed[0]}' on {old_status.value} ledger entry",
            changed[0],
        )


def _check_ledger_entry_delete(mapper, connection, target):
    from ledger_kernel.models.ledger import LedgerEntryStatus

    old_status = LedgerEntryStatus(_committed_value(target, "status"))
    if old_status != LedgerEntryStatus.DRAFT:
        _block(
            "LedgerEntry", target, "DELETE",
            f"{old_status.value.capitalize()} ledger entries cannot be deleted",
        )


def _posting_parent_is_frozen(target) -> bool:
    from ledger_kernel.models.ledger import LedgerEntryStatus

    entry = target.entry
    if entry is None:
        return False
    return LedgerEntryStatus(_committed_value(entry, "status")) != LedgerEntryStatus.DRAFT


def _check_posting_immutability(mapper, connection, target):
    if _posting_parent_is_frozen(target):
        _block(
            "Posting", target, "UPDATE",
            "Postings cannot be modified after the entry leaves draft",
        )


def _check_posting_delete(mapper, connection, target):
    if _posting_parent_is_frozen(target):
        _block(
            "Posting", target, "DELETE",
            "Postings cannot be deleted after the entry leaves draft",
        )


# =============================================================================
# Accounting periods
# =============================================================================


def _check_accounting_period_update(mapper, connection, target):
    """
    Period state only moves through PeriodService's compare-and-set UPDATE,
    which bypasses the ORM.  An ORM-level state change, or any edit of a
    non-open period, is a bypass attempt.
    """
    from ledger_kernel.models.fiscal_period import PeriodState

    if get_history(target, "state").has_changes():
        _block(
            "AccountingPeriod", target, "UPDATE",
            "Period state changes must go through PeriodService transitions",
            "state",
        )

    if PeriodState(target.state) != PeriodState.OPEN:
        changed = _changed_fields(target, AUDIT_METADATA_FIELDS)
        if changed:
            _block(
                "AccountingPeriod", target, "UPDATE",
                f"Cannot modify field '{changed[0]}' on {target.state} period",
                changed[0],
            )


def _check_accounting_period_delete(mapper, connection, target):
    _block("AccountingPeriod", target, "DELETE", "Accounting periods cannot be deleted")


# =============================================================================
# Closed-period guard for dated records
# =============================================================================

# Entity class name -> (date attribute, fields exempt from the guard)
_DATED_ENTITIES: dict[str, tuple[str, frozenset[str]]] = {
    "LedgerEntry": ("entry_date", AUDIT_METADATA_FIELDS),
    "SourceDocument": ("issue_date", VISIBILITY_FIELDS),
    "CommissionRecord": ("commission_date", VISIBILITY_FIELDS),
}


def _closed_period_for(connection, company_id, check_date: date):
    """Return (name, state) of the non-open period covering the date, if any."""
    from ledger_kernel.models.fiscal_period import AccountingPeriod, PeriodState

    periods = AccountingPeriod.__table__
    return connection.execute(
        select(periods.c.name, periods.c.state).where(
            and_(
                periods.c.company_id == str(company_id),
                periods.c.start_date <= check_date,
                periods.c.end_date >= check_date,
                periods.c.state != PeriodState.OPEN.value,
            )
        )
    ).first()


def _guard_dates(connection, target, entity_type: str, dates: list[date], operation: str):
    for check_date in dates:
        row = _closed_period_for(connection, target.company_id, check_date)
        if row is not None:
            logger.error(
                "closed_period_write_blocked",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(target.id),
                    "operation": operation,
                    "date": check_date,
                    "period_name": row.name,
                },
            )
            raise PeriodClosedError(row.name, row.state, check_date.isoformat())


def _check_closed_period_insert(mapper, connection, target):
    entity_type = type(target).__name__
    date_attr, _ = _DATED_ENTITIES[entity_type]
    _guard_dates(connection, target, entity_type, [getattr(target, date_attr)], "INSERT")


def _check_closed_period_update(mapper, connection, target):
    entity_type = type(target).__name__
    date_attr, exempt = _DATED_ENTITIES[entity_type]
    if not _changed_fields(target, exempt):
        return

    hist = get_history(target, date_attr)
    dates = list(hist.deleted) + [getattr(target, date_attr)]
    _guard_dates(connection, target, entity_type, dates, "UPDATE")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ledger_kernel.models.closing import BalanceSnapshot, ClosureRecord
    from ledger_kernel.models.documents import CommissionRecord, SourceDocument
    from ledger_kernel.models.fiscal_period import AccountingPeriod
    from ledger_kernel.models.ledger import LedgerEntry, Posting

    return [
        (ClosureRecord, "before_update", _check_closure_record_update),
        (ClosureRecord, "before_delete", _check_closure_record_delete),
        (BalanceSnapshot, "before_update", _check_balance_snapshot_update),
        (BalanceSnapshot, "before_delete", _check_balance_snapshot_delete),
        (LedgerEntry, "before_update", _check_ledger_entry_immutability),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (Posting, "before_update", _check_posting_immutability),
        (Posting, "before_delete", _check_posting_delete),
        (AccountingPeriod, "before_update", _check_accounting_period_update),
        (AccountingPeriod, "before_delete", _check_accounting_period_delete),
        (LedgerEntry, "before_insert", _check_closed_period_insert),
        (LedgerEntry, "before_update", _check_closed_period_update),
        (SourceDocument, "before_insert", _check_closed_period_insert),
        (SourceDocument, "before_update", _check_closed_period_update),
        (CommissionRecord, "before_insert", _check_closed_period_insert),
        (CommissionRecord, "before_update", _check_closed_period_update),
    ]


def register_immutability_listeners():
    """
    Register all write-protection listeners (idempotent).

    Call after models are importable and before any database writes.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove all write-protection listeners.

    WARNING: Only use this in tests that must violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
