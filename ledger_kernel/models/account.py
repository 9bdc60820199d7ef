"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of every
    posting.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique per company.
    - Only active leaf accounts (no children) receive postings (checked by
      LedgerService at entry creation/update).
    - Natural sign: ASSET/EXPENSE are debit-positive, LIABILITY/EQUITY/INCOME
      are credit-positive.

Failure modes:
    - AccountNotFoundError when a posting references an unknown account.
    - AccountNotPostableError when a posting targets an inactive or parent account.

Audit relevance:
    Accounts are master data owned outside this kernel; they are read-only here.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.ledger import Posting


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def is_debit_positive(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(TrackedBase):
    """
    Ledger account in a company's chart of accounts.

    Contract:
        Codes are hierarchical strings (e.g. "1", "1.1", "1.1.05").  The
        hierarchy itself is carried by parent_id.

    Non-goals:
        - Account CRUD is external; this kernel never writes accounts
          except in test fixtures.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company", "company_id"),
        Index("idx_account_parent", "parent_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    postings: Mapped[list["Posting"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_positive(self) -> bool:
        """True for ASSET/EXPENSE accounts."""
        return AccountType(self.account_type).is_debit_positive
