"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the hierarchy of
    header (grouping) and postable accounts targeted by journal lines.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is unique.
    - level = parent level + 1 (roots are level 1); maintained by
      ChartOfAccountsService on create and reparent.
    - account_type and normal_balance are frozen once any journal line
      references the account (enforced by ChartOfAccountsService).

Failure modes:
    - AccountNotFoundError when a line references a non-existent code.
    - AccountInactiveError / HeaderAccountError when a line targets an
      account that cannot take postings.

Audit relevance:
    Changing the type or side of a used account would silently change the
    meaning of historical lines, so referenced accounts are deactivated
    rather than deleted or retyped.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Financial statement classification of an account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    COGS = "cogs"
    EXPENSE = "expense"
    OTHER_INCOME = "other_income"
    OTHER_EXPENSE = "other_expense"

    @property
    def natural_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.COGS, AccountType.EXPENSE, AccountType.OTHER_EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def opposite(self) -> "NormalBalance":
        return NormalBalance.CREDIT if self is NormalBalance.DEBIT else NormalBalance.DEBIT


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        Header accounts group children and never take postings.  Postable
        accounts are leaves from the journal's point of view.

    Guarantees:
        - normal_balance agrees with account_type unless is_contra is set,
          in which case it is the opposite side (e.g. accumulated
          depreciation under assets carries a credit balance).

    Non-goals:
        - Does not enforce any of the above itself; ChartOfAccountsService
          is the only writer.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_parent", "parent_id"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    # Depth in the hierarchy, 1-based
    level: Mapped[int] = mapped_column(default=1, nullable=False)

    is_header: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Seeded accounts the system relies on; never deletable
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_bank_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_contra: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # null = base currency
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_postable(self) -> bool:
        return self.is_active and not self.is_header

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT
