"""
ledger_services.journal_service -- transactional surface for ledger entries.

Responsibility:
    Wraps LedgerService (flush-only) with the transaction boundary and the
    per-call log context.  Entry numbering prefix and width come from
    ``ledger_config``.

Architecture position:
    Services -- the only layer that commits ledger entry writes.

Invariants enforced:
    - All or nothing: a failed write is rolled back before the error
      propagates (``auto_commit=True``).
    - Every call runs under a fresh correlation_id.

Failure modes:
    - Every LedgerService error propagates unchanged after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountLedger,
    DateRange,
    EntryPatch,
    LedgerEntryInfo,
    PostingSpec,
)
from ledger_kernel.exceptions import EntryNotFoundError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.ledger_service import LedgerService

logger = get_logger("services.journal")

T = TypeVar("T")


class JournalService:
    """
    Post, edit, confirm and void ledger entries.

    Contract:
        Each write method commits on success and returns the entry DTO.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        settings = settings or get_active_settings()
        self._auto_commit = auto_commit
        self._ledger = LedgerService(
            session,
            self._clock,
            default_prefix=settings.default_entry_prefix,
            sequence_width=settings.sequence_width,
        )
        self._selector = LedgerSelector(session)

    def _run(self, operation: str, actor_id: UUID, work: Callable[[], T]) -> T:
        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id):
            t0 = time.monotonic()
            try:
                result = work()
                if self._auto_commit:
                    self._session.commit()
                return result
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    f"{operation}_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

    def post_ledger_entry(
        self,
        company_id: UUID,
        entry_date: date,
        description: str,
        postings: Sequence[PostingSpec],
        actor_id: UUID,
        prefix: str | None = None,
        reference: str | None = None,
        support_document_id: UUID | None = None,
        confirm: bool = False,
    ) -> LedgerEntryInfo:
        """
        Create a draft entry, optionally confirming it in the same
        transaction.
        """

        def work() -> LedgerEntryInfo:
            entry = self._ledger.create_entry(
                company_id,
                entry_date,
                description,
                postings,
                actor_id,
                prefix=prefix,
                reference=reference,
                support_document_id=support_document_id,
            )
            if confirm:
                entry = self._ledger.confirm_entry(entry.id, actor_id)
            return entry

        return self._run("post_ledger_entry", actor_id, work)

    def update_ledger_entry(
        self, entry_id: UUID, patch: EntryPatch, actor_id: UUID,
    ) -> LedgerEntryInfo:
        return self._run(
            "update_ledger_entry",
            actor_id,
            lambda: self._ledger.update_entry(entry_id, patch, actor_id),
        )

    def confirm_ledger_entry(self, entry_id: UUID, actor_id: UUID) -> LedgerEntryInfo:
        return self._run(
            "confirm_ledger_entry",
            actor_id,
            lambda: self._ledger.confirm_entry(entry_id, actor_id),
        )

    def void_ledger_entry(self, entry_id: UUID, actor_id: UUID) -> LedgerEntryInfo:
        return self._run(
            "void_ledger_entry",
            actor_id,
            lambda: self._ledger.void_entry(entry_id, actor_id),
        )

    # Reads

    def get_ledger_entry(self, entry_id: UUID) -> LedgerEntryInfo:
        entry = self._selector.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def account_ledger(self, account_id: UUID, date_range: DateRange) -> AccountLedger:
        """Running-balance ledger for one account over a date range."""
        return self._selector.account_ledger(account_id, date_range)
