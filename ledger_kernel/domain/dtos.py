"""
DTOs -- immutable data carried across the service and selector boundary.

Responsibility:
    Defines the frozen dataclasses that services accept (JournalLineSpec)
    and that selectors return (AccountInfo, JournalEntryInfo,
    TrialBalance, StockInfo, ...).  Callers never receive ORM instances,
    so nothing outside a service can mutate ledger rows by accident.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Enum types are imported for typing
    only; ORM-to-DTO conversion happens in selectors.

Invariants enforced:
    - Every DTO is frozen.  Collections are tuples.
    - Monetary fields are Decimal at money scale; quantities at quantity
      scale.  Conversion happens before construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.amounts import divide
from ledger_kernel.domain.references import DocumentRef

if TYPE_CHECKING:
    from ledger_kernel.models.account import AccountType, NormalBalance
    from ledger_kernel.models.fiscal_calendar import FiscalYearStatus, PeriodStatus
    from ledger_kernel.models.inventory import MovementType
    from ledger_kernel.models.journal import EntryType, JournalEntryStatus


# =============================================================================
# Chart of accounts
# =============================================================================


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    parent_id: UUID | None
    level: int
    is_header: bool
    is_system: bool
    is_active: bool
    is_bank_account: bool = False
    is_contra: bool = False
    description: str | None = None
    currency: str | None = None

    @property
    def is_postable(self) -> bool:
        return self.is_active and not self.is_header


@dataclass(frozen=True)
class AccountNode:
    """One node of a chart-of-accounts tree; children sorted by code."""

    account: AccountInfo
    children: tuple[AccountNode, ...] = ()

    @property
    def code(self) -> str:
        return self.account.code

    def walk(self):
        """Yield this node and its descendants depth-first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


# =============================================================================
# Fiscal calendar
# =============================================================================


@dataclass(frozen=True)
class FiscalYearInfo:
    id: UUID
    name: str
    start_date: date
    end_date: date
    status: FiscalYearStatus
    is_current: bool
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None


@dataclass(frozen=True)
class FiscalPeriodInfo:
    id: UUID
    fiscal_year_id: UUID
    period_number: int
    name: str
    start_date: date
    end_date: date
    status: PeriodStatus
    is_adjusting_period: bool = False
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None

    def contains(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date


# =============================================================================
# Journal
# =============================================================================


@dataclass(frozen=True)
class JournalLineSpec:
    """
    Input for one journal line.

    Exactly one of debit_amount / credit_amount must be positive; the other
    zero.  That rule is checked by JournalService so the failing line number
    can be reported.
    """

    account_code: str
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: str | None = None
    customer_id: UUID | None = None
    supplier_id: UUID | None = None
    product_id: UUID | None = None
    expense_id: UUID | None = None

    @classmethod
    def debit(cls, account_code: str, amount: Decimal, description: str | None = None, **dims) -> JournalLineSpec:
        return cls(account_code, debit_amount=amount, description=description, **dims)

    @classmethod
    def credit(cls, account_code: str, amount: Decimal, description: str | None = None, **dims) -> JournalLineSpec:
        return cls(account_code, credit_amount=amount, description=description, **dims)


@dataclass(frozen=True)
class JournalLineInfo:
    id: UUID
    line_number: int
    account_id: UUID
    account_code: str
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    debit_amount_base: Decimal
    credit_amount_base: Decimal
    customer_id: UUID | None = None
    supplier_id: UUID | None = None
    product_id: UUID | None = None
    expense_id: UUID | None = None


@dataclass(frozen=True)
class JournalEntryInfo:
    id: UUID
    entry_number: str
    entry_date: date
    fiscal_period_id: UUID
    entry_type: EntryType
    status: JournalEntryStatus
    memo: str | None
    currency: str
    exchange_rate: Decimal
    total_debit: Decimal
    total_credit: Decimal
    reference: DocumentRef | None = None
    reverses_id: UUID | None = None
    reversed_by_id: UUID | None = None
    posted_at: datetime | None = None
    posted_by_id: UUID | None = None
    voided_at: datetime | None = None
    voided_by_id: UUID | None = None
    void_reason: str | None = None
    lines: tuple[JournalLineInfo, ...] = ()

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


# =============================================================================
# Balances
# =============================================================================


@dataclass(frozen=True)
class AccountBalanceInfo:
    account_id: UUID
    account_code: str
    fiscal_period_id: UUID
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    closing_debit: Decimal
    closing_credit: Decimal
    net_balance: Decimal


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    closing_debit: Decimal
    closing_credit: Decimal
    net_balance: Decimal


@dataclass(frozen=True)
class TrialBalance:
    fiscal_period_id: UUID
    rows: tuple[TrialBalanceRow, ...]
    total_debit: Decimal
    total_credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class BalanceDiscrepancy:
    """Stored period totals that disagree with the posted journal lines."""

    account_id: UUID
    account_code: str
    stored_debit: Decimal
    stored_credit: Decimal
    computed_debit: Decimal
    computed_credit: Decimal


# =============================================================================
# Inventory
# =============================================================================


@dataclass(frozen=True)
class StockInfo:
    product_id: UUID
    quantity_on_hand: Decimal
    quantity_reserved: Decimal
    quantity_available: Decimal
    last_cost: Decimal | None
    average_cost: Decimal | None
    reorder_level: Decimal | None
    last_movement_at: datetime | None

    @property
    def is_low(self) -> bool:
        return self.reorder_level is not None and self.quantity_available <= self.reorder_level


@dataclass(frozen=True)
class MovementInfo:
    id: UUID
    seq: int
    product_id: UUID
    movement_date: date
    movement_type: MovementType
    quantity: Decimal
    unit_cost: Decimal | None
    quantity_before: Decimal
    quantity_after: Decimal
    source: DocumentRef | None = None
    notes: str | None = None


@dataclass(frozen=True)
class FifoBatch:
    """An inbound movement as a FIFO cost layer."""

    movement_id: UUID
    movement_date: date
    quantity: Decimal
    unit_cost: Decimal | None


@dataclass(frozen=True)
class FifoLayerUse:
    movement_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    cost: Decimal


@dataclass(frozen=True)
class FifoCostResult:
    product_id: UUID
    quantity: Decimal
    total_cost: Decimal
    layers: tuple[FifoLayerUse, ...] = field(default_factory=tuple)
    shortfall: Decimal = Decimal("0.000")

    @property
    def unit_cost(self) -> Decimal | None:
        costed = self.quantity - self.shortfall
        if costed <= 0:
            return None
        return divide(self.total_cost, costed)


@dataclass(frozen=True)
class StockValuation:
    product_count: int
    total_quantity: Decimal
    total_value: Decimal
