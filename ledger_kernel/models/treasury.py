"""
Module: ledger_kernel.models.treasury
Responsibility: ORM persistence for bank/cash accounts and their treasury
    movements, as read by the treasury reconciliation check.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Each bank account maps to exactly one ledger account
      (ledger_account_id); the ledger-derived balance is
      opening_balance + natural-sign postings on that account.
    - A movement counts as reconciled only when linked_entry_id points to a
      CONFIRMED ledger entry.

Audit relevance:
    recorded_balance is maintained by the treasury collaborator; this kernel
    compares against it and snapshots it on close, never writes it.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class MovementKind(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"
    TRANSFER = "transfer"


class BankAccount(TrackedBase):
    """Bank or cash account."""

    __tablename__ = "bank_accounts"

    __table_args__ = (
        Index("idx_bank_account_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    ledger_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        default="USD",
        nullable=False,
    )

    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    recorded_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BankAccount {self.name}: {self.recorded_balance}>"


class TreasuryMovement(TrackedBase):
    """Deposit, withdrawal or transfer on a bank/cash account."""

    __tablename__ = "treasury_movements"

    __table_args__ = (
        Index("idx_movement_account_date", "bank_account_id", "movement_date"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bank_accounts.id"),
        nullable=False,
    )

    movement_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    kind: Mapped[MovementKind] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    linked_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=True,
    )

    is_cancelled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TreasuryMovement {self.kind} {self.amount} on {self.movement_date}>"
