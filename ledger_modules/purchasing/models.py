"""Purchasing Domain Models."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain import amounts


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    ORDERED = "ordered"
    RECEIVED = "received"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PurchaseOrderLine:
    """One product line; ``unit_cost`` is in the order currency."""
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal

    @property
    def subtotal(self) -> Decimal:
        return amounts.multiply(self.quantity, self.unit_cost)


@dataclass(frozen=True)
class PurchaseOrder:
    id: UUID
    order_number: str
    order_date: date
    supplier_id: UUID | None
    lines: tuple[PurchaseOrderLine, ...]
    tax_amount: Decimal = Decimal("0")
    supplier_name: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT

    @property
    def subtotal(self) -> Decimal:
        return amounts.total(line.subtotal for line in self.lines)

    @property
    def total_amount(self) -> Decimal:
        return amounts.add(self.subtotal, self.tax_amount)


@dataclass(frozen=True)
class GoodsReceiptResult:
    order: PurchaseOrder
    movement_ids: tuple[UUID, ...]
    journal_entry_id: UUID | None = None
