"""
LedgerService -- ledger entry lifecycle (draft, confirm, void, update).

Responsibility:
    Creates balanced draft entries with gap-free numbers, confirms them,
    voids confirmed entries and edits drafts.  Every write checks that the
    entry's date falls in an OPEN period.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalService (ledger_services/) and by document-posting
    collaborators.  Uses PeriodService for period checks and SequenceService
    for numbering.

Invariants enforced:
    - Double-entry: sum(debit) == sum(credit) at currency precision, checked
      on create, on posting replacement and again on confirm.
    - Each posting carries exactly one non-zero, non-negative side.
    - Only active leaf accounts of the entry's company receive postings.
    - Entries are mutable only while DRAFT; CONFIRMED entries may only be
      voided; voiding never touches postings.
    - No write into a CLOSED / CLOSED_FINAL period.
    - Flush-only.

Failure modes:
    - PeriodNotFoundError, PeriodClosedError (period checks).
    - InvalidPostingError, AccountNotFoundError, AccountNotPostableError,
      UnbalancedEntryError (posting validation).
    - EntryNotFoundError, AlreadyConfirmedError, InvalidEntryStateError
      (lifecycle).

Audit relevance:
    Entry creation, confirmation and void are logged with entry number and
    actor.  created_by_id / updated_by_id are stamped on every row.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryPatch, LedgerEntryInfo, PostingSpec
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountNotPostableError,
    AlreadyConfirmedError,
    EntryNotFoundError,
    InvalidEntryStateError,
    InvalidPostingError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerEntry, LedgerEntryStatus, Posting
from ledger_kernel.selectors.ledger_selector import ledger_entry_to_info
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger")

_ZERO = Decimal("0")


class LedgerService(BaseService):
    """
    Service for ledger entries.

    Contract:
        Accepts PostingSpec lines and returns frozen LedgerEntryInfo DTOs.
        Validation order on create: period exists, period open, posting
        shape, accounts, balance.

    Guarantees:
        - A returned entry is balanced.
        - Sequence numbers are allocated only after every check passed, so
          a rejected entry never consumes a number.

    Non-goals:
        - Does NOT commit (JournalService owns the transaction).
        - Does NOT compute balances (LedgerSelector).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
        sequence_service: SequenceService | None = None,
        default_prefix: str = "AS",
        sequence_width: int = 6,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._periods = period_service or PeriodService(session, self._clock)
        self._sequences = sequence_service or SequenceService(session)
        self._default_prefix = default_prefix
        self._sequence_width = sequence_width

    # =========================================================================
    # Validation helpers
    # =========================================================================

    @staticmethod
    def _validate_shape(postings: Sequence[PostingSpec]) -> tuple[Decimal, Decimal]:
        """Check each line's sides; return rounded (debits, credits)."""
        if len(postings) < 2:
            raise InvalidPostingError(None, "an entry needs at least two postings")

        total_debits = _ZERO
        total_credits = _ZERO
        for line_seq, spec in enumerate(postings, start=1):
            debit = round_money(spec.debit)
            credit = round_money(spec.credit)
            if debit < 0 or credit < 0:
                raise InvalidPostingError(line_seq, "amounts cannot be negative")
            if debit != 0 and credit != 0:
                raise InvalidPostingError(line_seq, "debit and credit are both set")
            if debit == 0 and credit == 0:
                raise InvalidPostingError(line_seq, "debit or credit must be non-zero")
            total_debits += debit
            total_credits += credit
        return total_debits, total_credits

    def _validate_accounts(self, company_id: UUID, postings: Sequence[PostingSpec]) -> None:
        account_ids = {spec.account_id for spec in postings}
        accounts = {
            account.id: account
            for account in self.session.scalars(
                select(Account).where(
                    Account.id.in_(account_ids),
                    Account.company_id == company_id,
                )
            )
        }
        parent_ids = set(
            self.session.scalars(
                select(Account.parent_id).where(Account.parent_id.in_(account_ids))
            )
        )

        for spec in postings:
            account = accounts.get(spec.account_id)
            if account is None:
                raise AccountNotFoundError(str(spec.account_id))
            if not account.is_active:
                raise AccountNotPostableError(str(account.id), account.code, "account is inactive")
            if account.id in parent_ids:
                raise AccountNotPostableError(
                    str(account.id), account.code, "only leaf accounts receive postings",
                )

    def _validate_postings(
        self,
        company_id: UUID,
        postings: Sequence[PostingSpec],
        entry_id: UUID | None = None,
    ) -> None:
        total_debits, total_credits = self._validate_shape(postings)
        self._validate_accounts(company_id, postings)
        if total_debits != total_credits:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={"debits": total_debits, "credits": total_credits},
            )
            raise UnbalancedEntryError(
                str(total_debits),
                str(total_credits),
                str(entry_id) if entry_id else None,
            )

    @staticmethod
    def _build_postings(
        postings: Sequence[PostingSpec], actor_id: UUID,
    ) -> list[Posting]:
        return [
            Posting(
                account_id=spec.account_id,
                debit=round_money(spec.debit),
                credit=round_money(spec.credit),
                description=spec.description,
                counterparty_id=spec.counterparty_id,
                cost_center=spec.cost_center,
                line_seq=line_seq,
                created_by_id=actor_id,
            )
            for line_seq, spec in enumerate(postings, start=1)
        ]

    def _load(self, entry_id: UUID) -> LedgerEntry:
        entry = self.session.get(LedgerEntry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_entry(
        self,
        company_id: UUID,
        entry_date: date,
        description: str,
        postings: Sequence[PostingSpec],
        actor_id: UUID,
        prefix: str | None = None,
        reference: str | None = None,
        support_document_id: UUID | None = None,
    ) -> LedgerEntryInfo:
        """
        Create a DRAFT entry.

        Preconditions:
            - A period covers ``entry_date`` and it is OPEN.
            - ``postings`` are well formed and balanced.

        Postconditions:
            - The entry holds the next number for (company, prefix).
        """
        self._periods.require_open_period(company_id, entry_date)
        self._validate_postings(company_id, postings)

        prefix = prefix or self._default_prefix
        sequence_number = self._sequences.next_value(
            SequenceService.ledger_entry_sequence(company_id, prefix)
        )

        entry = LedgerEntry(
            company_id=company_id,
            entry_date=entry_date,
            prefix=prefix,
            sequence_number=sequence_number,
            number=f"{prefix}-{sequence_number:0{self._sequence_width}d}",
            description=description,
            reference=reference,
            support_document_id=support_document_id,
            status=LedgerEntryStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        entry.postings = self._build_postings(postings, actor_id)
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "entry_created",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.number,
                "entry_date": entry_date,
                "line_count": len(postings),
            },
        )
        return ledger_entry_to_info(entry)

    def confirm_entry(self, entry_id: UUID, actor_id: UUID) -> LedgerEntryInfo:
        """
        DRAFT -> CONFIRMED.

        Re-checks the period (it may have closed since the draft was made)
        and the balance of the stored postings.
        """
        entry = self._load(entry_id)
        status = LedgerEntryStatus(entry.status)
        if status == LedgerEntryStatus.CONFIRMED:
            raise AlreadyConfirmedError(str(entry.id), entry.number)
        if status != LedgerEntryStatus.DRAFT:
            raise InvalidEntryStateError(str(entry.id), status.value, "confirm")

        self._periods.require_open_period(entry.company_id, entry.entry_date)

        debits = round_money(entry.total_debits)
        credits = round_money(entry.total_credits)
        if debits != credits:
            raise UnbalancedEntryError(str(debits), str(credits), str(entry.id))

        entry.status = LedgerEntryStatus.CONFIRMED.value
        entry.confirmed_at = self._clock.now()
        entry.confirmed_by_id = actor_id
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "entry_confirmed",
            extra={"entry_id": str(entry.id), "entry_number": entry.number},
        )
        return ledger_entry_to_info(entry)

    def void_entry(self, entry_id: UUID, actor_id: UUID) -> LedgerEntryInfo:
        """CONFIRMED -> VOIDED.  Postings stay as they are."""
        entry = self._load(entry_id)
        status = LedgerEntryStatus(entry.status)
        if status != LedgerEntryStatus.CONFIRMED:
            raise InvalidEntryStateError(str(entry.id), status.value, "void")

        self._periods.require_open_period(entry.company_id, entry.entry_date)

        entry.status = LedgerEntryStatus.VOIDED.value
        entry.voided_at = self._clock.now()
        entry.voided_by_id = actor_id
        entry.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "entry_voided",
            extra={"entry_id": str(entry.id), "entry_number": entry.number},
        )
        return ledger_entry_to_info(entry)

    def update_entry(
        self, entry_id: UUID, patch: EntryPatch, actor_id: UUID,
    ) -> LedgerEntryInfo:
        """
        Edit a DRAFT entry.

        A date change requires both the current and the target period to be
        OPEN.  Replacing postings re-runs the full posting validation.
        """
        entry = self._load(entry_id)
        status = LedgerEntryStatus(entry.status)
        if status != LedgerEntryStatus.DRAFT:
            raise InvalidEntryStateError(str(entry.id), status.value, "update")

        self._periods.require_open_period(entry.company_id, entry.entry_date)
        if patch.entry_date is not None and patch.entry_date != entry.entry_date:
            self._periods.require_open_period(entry.company_id, patch.entry_date)

        if patch.postings is not None:
            self._validate_postings(entry.company_id, patch.postings, entry.id)

        if patch.entry_date is not None:
            entry.entry_date = patch.entry_date
        if patch.description is not None:
            entry.description = patch.description
        if patch.reference is not None:
            entry.reference = patch.reference
        entry.updated_by_id = actor_id

        if patch.postings is not None:
            entry.postings.clear()
            self.session.flush()
            entry.postings.extend(self._build_postings(patch.postings, actor_id))

        self.session.flush()

        logger.info(
            "entry_updated",
            extra={
                "entry_id": str(entry.id),
                "entry_number": entry.number,
                "postings_replaced": patch.postings is not None,
            },
        )
        return ledger_entry_to_info(entry)

    def get_entry(self, entry_id: UUID) -> LedgerEntryInfo:
        return ledger_entry_to_info(self._load(entry_id))
