"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries -- account sums under the natural sign
    convention, the general-ledger book (libro mayor) of an account, period
    totals and draft entries.  Balances are always derived from confirmed
    postings at query time; nothing is stored.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Only CONFIRMED entries contribute to balances and totals.  DRAFT and
      VOIDED entries are excluded.
    - Natural sign: ASSET/EXPENSE balances are debits - credits;
      LIABILITY/EQUITY/INCOME balances are credits - debits.
    - Every returned amount passes through round_money(), so equality
      checks are exact at currency precision.

Failure modes:
    - AccountNotFoundError when the account id is unknown.
    - Zero balances (not errors) when no confirmed postings exist.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.dtos import (
    AccountLedger,
    AccountLedgerLine,
    DateRange,
    LedgerEntryInfo,
    PeriodTotals,
    PostingInfo,
)
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerEntry, LedgerEntryStatus, Posting
from ledger_kernel.selectors.base import BaseSelector

_CONFIRMED = LedgerEntryStatus.CONFIRMED.value


def ledger_entry_to_info(entry: LedgerEntry) -> LedgerEntryInfo:
    """Convert an ORM LedgerEntry (with postings loaded) to its DTO."""
    return LedgerEntryInfo(
        id=entry.id,
        company_id=entry.company_id,
        number=entry.number,
        prefix=entry.prefix,
        sequence_number=entry.sequence_number,
        entry_date=entry.entry_date,
        description=entry.description,
        status=LedgerEntryStatus(entry.status),
        postings=tuple(
            PostingInfo(
                id=p.id,
                account_id=p.account_id,
                debit=round_money(p.debit),
                credit=round_money(p.credit),
                line_seq=p.line_seq,
                description=p.description,
                counterparty_id=p.counterparty_id,
                cost_center=p.cost_center,
            )
            for p in sorted(entry.postings, key=lambda p: p.line_seq)
        ),
        reference=entry.reference,
        support_document_id=entry.support_document_id,
        confirmed_at=entry.confirmed_at,
        confirmed_by_id=entry.confirmed_by_id,
        voided_at=entry.voided_at,
        voided_by_id=entry.voided_by_id,
    )


@dataclass(frozen=True)
class AccountSums:
    """Raw confirmed debit/credit totals for one account."""

    debits: Decimal
    credits: Decimal

    def natural(self, debit_positive: bool) -> Decimal:
        if debit_positive:
            return self.debits - self.credits
        return self.credits - self.debits


class LedgerSelector(BaseSelector):
    """
    Selector for ledger queries.

    Contract:
        All sums filter on status=CONFIRMED.  Date bounds are inclusive.

    Non-goals:
        - No currency conversion; amounts are in the company currency.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def account_sums(
        self,
        account_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> AccountSums:
        """Confirmed debit and credit totals for an account, optionally bounded."""
        stmt = (
            select(
                func.coalesce(func.sum(Posting.debit), 0),
                func.coalesce(func.sum(Posting.credit), 0),
            )
            .select_from(Posting)
            .join(LedgerEntry, Posting.entry_id == LedgerEntry.id)
            .where(
                Posting.account_id == account_id,
                LedgerEntry.status == _CONFIRMED,
            )
        )
        if start is not None:
            stmt = stmt.where(LedgerEntry.entry_date >= start)
        if end is not None:
            stmt = stmt.where(LedgerEntry.entry_date <= end)

        debits, credits = self.session.execute(stmt).one()
        return AccountSums(debits=round_money(debits), credits=round_money(credits))

    def sum_postings_for_account_in_range(
        self,
        account_id: UUID,
        date_range: DateRange,
    ) -> Decimal:
        """
        Net confirmed movement on an account within a date range, signed by
        the account's natural balance side.
        """
        account = self._get_account(account_id)
        sums = self.account_sums(account_id, date_range.start, date_range.end)
        return sums.natural(account.is_debit_positive)

    def account_balance_as_of(self, account_id: UUID, as_of: date) -> Decimal:
        """Natural-sign balance of all confirmed postings dated on or before ``as_of``."""
        account = self._get_account(account_id)
        return self.account_sums(account_id, end=as_of).natural(account.is_debit_positive)

    def account_ledger(self, account_id: UUID, date_range: DateRange) -> AccountLedger:
        """
        General-ledger book for one account: opening balance, each confirmed
        posting in range with its running balance, totals and closing balance.
        """
        account = self._get_account(account_id)
        debit_positive = account.is_debit_positive

        opening = self.account_sums(
            account_id, end=date_range.start - timedelta(days=1)
        ).natural(debit_positive)

        rows = self.session.execute(
            select(
                LedgerEntry.id,
                LedgerEntry.number,
                LedgerEntry.entry_date,
                LedgerEntry.description,
                Posting.description,
                Posting.debit,
                Posting.credit,
            )
            .select_from(Posting)
            .join(LedgerEntry, Posting.entry_id == LedgerEntry.id)
            .where(
                Posting.account_id == account_id,
                LedgerEntry.status == _CONFIRMED,
                LedgerEntry.entry_date >= date_range.start,
                LedgerEntry.entry_date <= date_range.end,
            )
            .order_by(
                LedgerEntry.entry_date,
                LedgerEntry.sequence_number,
                Posting.line_seq,
            )
        ).all()

        balance = opening
        total_debits = Decimal("0.00")
        total_credits = Decimal("0.00")
        lines: list[AccountLedgerLine] = []
        for entry_id, number, entry_date, entry_desc, line_desc, debit, credit in rows:
            debit = round_money(debit)
            credit = round_money(credit)
            balance += (debit - credit) if debit_positive else (credit - debit)
            total_debits += debit
            total_credits += credit
            lines.append(
                AccountLedgerLine(
                    entry_id=entry_id,
                    entry_number=number,
                    entry_date=entry_date,
                    description=line_desc or entry_desc,
                    debit=debit,
                    credit=credit,
                    balance=balance,
                )
            )

        return AccountLedger(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            date_range=date_range,
            opening_balance=opening,
            lines=tuple(lines),
            total_debits=total_debits,
            total_credits=total_credits,
            closing_balance=balance,
        )

    def period_totals(self, company_id: UUID, date_range: DateRange) -> PeriodTotals:
        """Debit/credit totals and entry count over confirmed entries in range."""
        in_range = (
            LedgerEntry.company_id == company_id,
            LedgerEntry.status == _CONFIRMED,
            LedgerEntry.entry_date >= date_range.start,
            LedgerEntry.entry_date <= date_range.end,
        )

        debits, credits = self.session.execute(
            select(
                func.coalesce(func.sum(Posting.debit), 0),
                func.coalesce(func.sum(Posting.credit), 0),
            )
            .select_from(Posting)
            .join(LedgerEntry, Posting.entry_id == LedgerEntry.id)
            .where(*in_range)
        ).one()

        entry_count = self.session.execute(
            select(func.count(LedgerEntry.id)).where(*in_range)
        ).scalar_one()

        return PeriodTotals(
            total_debits=round_money(debits),
            total_credits=round_money(credits),
            entry_count=entry_count,
        )

    def entries_in_range(
        self,
        company_id: UUID,
        date_range: DateRange,
        status: LedgerEntryStatus | None = None,
    ) -> list[LedgerEntryInfo]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.company_id == company_id,
                LedgerEntry.entry_date >= date_range.start,
                LedgerEntry.entry_date <= date_range.end,
            )
            .order_by(LedgerEntry.entry_date, LedgerEntry.prefix, LedgerEntry.sequence_number)
        )
        if status is not None:
            stmt = stmt.where(LedgerEntry.status == status.value)
        return [ledger_entry_to_info(e) for e in self.session.scalars(stmt)]

    def draft_entries(self, company_id: UUID, date_range: DateRange) -> list[LedgerEntryInfo]:
        return self.entries_in_range(company_id, date_range, LedgerEntryStatus.DRAFT)

    def get_entry(self, entry_id: UUID) -> LedgerEntryInfo | None:
        entry = self.session.get(LedgerEntry, entry_id)
        return ledger_entry_to_info(entry) if entry is not None else None

    def confirmed_entry_ids(self, entry_ids: Iterable[UUID]) -> frozenset[UUID]:
        """The subset of ``entry_ids`` whose entries are CONFIRMED."""
        wanted = set(entry_ids)
        if not wanted:
            return frozenset()
        found = self.session.scalars(
            select(LedgerEntry.id).where(
                LedgerEntry.id.in_(wanted),
                LedgerEntry.status == _CONFIRMED,
            )
        )
        return frozenset(found)
