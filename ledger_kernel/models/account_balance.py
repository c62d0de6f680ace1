"""
Module: ledger_kernel.models.account_balance
Responsibility: ORM persistence for per-(account, fiscal period) balance
    aggregates maintained by posting and voiding.
Architecture position: Kernel > Models.  May import from db/ and domain/amounts.

Invariants enforced:
    - One row per (account, fiscal period).
    - closing_debit = opening_debit + period_debit, same for credit.
    - net_balance = closing_debit - closing_credit.

Failure modes:
    - IntegrityError when two transactions race to create the same row;
      BalanceService retries through a savepoint.

Audit relevance:
    Rows are a cache of posted journal lines.  BalanceSelector.verify_period()
    recomputes period totals from the lines and reports any drift.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.amounts import add, money, subtract


class AccountBalance(TrackedBase):
    __tablename__ = "account_balances"

    __table_args__ = (
        UniqueConstraint("account_id", "fiscal_period_id", name="uq_balance_account_period"),
        Index("idx_balance_period", "fiscal_period_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_periods.id"),
        nullable=False,
    )

    opening_debit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    opening_credit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    period_debit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    period_credit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    closing_debit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    closing_credit: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    net_balance: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)

    def __repr__(self) -> str:
        return f"<AccountBalance account={self.account_id} period={self.fiscal_period_id} net={self.net_balance}>"

    def apply(self, debit_delta: Decimal, credit_delta: Decimal) -> None:
        """Add signed deltas to the period columns and recompute closing."""
        self.period_debit = add(self.period_debit, debit_delta)
        self.period_credit = add(self.period_credit, credit_delta)
        self.recalculate_closing()

    def set_opening(self, opening_debit: Decimal, opening_credit: Decimal) -> None:
        self.opening_debit = money(opening_debit)
        self.opening_credit = money(opening_credit)
        self.recalculate_closing()

    def recalculate_closing(self) -> None:
        self.closing_debit = add(self.opening_debit, self.period_debit)
        self.closing_credit = add(self.opening_credit, self.period_credit)
        self.net_balance = subtract(self.closing_debit, self.closing_credit)
