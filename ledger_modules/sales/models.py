"""
Sales Domain Models.

Orders, their lines and what a delivery produced.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain import amounts


class SalesOrderStatus(str, Enum):
    """Sales order lifecycle states."""
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SalesOrderLine:
    """One product line.  ``revenue_account_code`` overrides the default sales account."""
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    revenue_account_code: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return amounts.multiply(self.quantity, self.unit_price)


@dataclass(frozen=True)
class SalesOrder:
    id: UUID
    order_number: str
    order_date: date
    customer_id: UUID | None
    lines: tuple[SalesOrderLine, ...]
    tax_amount: Decimal = Decimal("0")
    customer_name: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    status: SalesOrderStatus = SalesOrderStatus.DRAFT

    @property
    def subtotal(self) -> Decimal:
        return amounts.total(line.subtotal for line in self.lines)

    @property
    def total_amount(self) -> Decimal:
        return amounts.add(self.subtotal, self.tax_amount)

    def quantities_by_product(self) -> dict[UUID, Decimal]:
        """Ordered quantity per product, summed across lines."""
        totals: dict[UUID, Decimal] = {}
        for line in self.lines:
            totals[line.product_id] = amounts.add(
                totals.get(line.product_id, amounts.quantity(0)),
                line.quantity,
                scale=amounts.QUANTITY_SCALE,
            )
        return totals


@dataclass(frozen=True)
class SalesDeliveryResult:
    """A delivered order plus the ledger rows the delivery created."""
    order: SalesOrder
    movement_ids: tuple[UUID, ...]
    cost_of_goods: Decimal
    revenue_entry_id: UUID | None = None
    cogs_entry_id: UUID | None = None
