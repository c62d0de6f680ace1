"""
Module: ledger_kernel.models.inventory
Responsibility: ORM persistence for per-product stock levels and the
    append-only movement ledger that explains them.
Architecture position: Kernel > Models.  May import from db/ and domain/amounts.

Invariants enforced:
    - quantity_available = quantity_on_hand - quantity_reserved after every
      mutation made through the model methods below.
    - average_cost is the weighted mean of inbound costs, computed from the
      on-hand quantity captured *before* the addition.
    - Movements are never updated or deleted (db/immutability.py).

Failure modes:
    - InsufficientStockError from reserve() when available stock is short.
    - ImmutabilityViolationError on any UPDATE/DELETE of a movement.

Audit relevance:
    quantity_before / quantity_after on each movement let the stock level be
    replayed from the ledger at any point in time.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Date, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain import amounts
from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import InsufficientStockError


class MovementType(str, Enum):
    PURCHASE_IN = "purchase_in"
    SALES_OUT = "sales_out"
    PURCHASE_RETURN = "purchase_return"
    SALES_RETURN = "sales_return"
    ADJUSTMENT_IN = "adjustment_in"
    ADJUSTMENT_OUT = "adjustment_out"
    OPENING_STOCK = "opening_stock"

    @property
    def is_inbound(self) -> bool:
        return self in INBOUND_MOVEMENTS


INBOUND_MOVEMENTS = (
    MovementType.PURCHASE_IN,
    MovementType.SALES_RETURN,
    MovementType.ADJUSTMENT_IN,
    MovementType.OPENING_STOCK,
)

OUTBOUND_MOVEMENTS = (
    MovementType.SALES_OUT,
    MovementType.PURCHASE_RETURN,
    MovementType.ADJUSTMENT_OUT,
)

# Movements that open a FIFO cost layer
FIFO_LAYER_MOVEMENTS = (MovementType.PURCHASE_IN, MovementType.OPENING_STOCK)


class InventoryStock(TrackedBase):
    """
    Current stock position of one product.

    Contract:
        Mutated only through add_stock / deduct_stock / reserve /
        release_reserved, while the row is locked by InventoryLedgerService.
    """

    __tablename__ = "inventory_stocks"

    __table_args__ = (UniqueConstraint("product_id", name="uq_inventory_stock_product"),)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_on_hand: Mapped[Decimal] = mapped_column(Numeric(18, 3), default=Decimal("0.000"), nullable=False)

    quantity_reserved: Mapped[Decimal] = mapped_column(Numeric(18, 3), default=Decimal("0.000"), nullable=False)

    quantity_available: Mapped[Decimal] = mapped_column(Numeric(18, 3), default=Decimal("0.000"), nullable=False)

    last_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    average_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    reorder_level: Mapped[Decimal | None] = mapped_column(Numeric(18, 3), nullable=True)

    last_movement_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryStock {self.product_id} on_hand={self.quantity_on_hand} "
            f"reserved={self.quantity_reserved}>"
        )

    def initialize(self) -> None:
        """Zero every quantity on a freshly constructed, unflushed row."""
        self.quantity_on_hand = amounts.quantity(0)
        self.quantity_reserved = amounts.quantity(0)
        self.quantity_available = amounts.quantity(0)

    def add_stock(self, quantity: Decimal, unit_cost: Decimal | None = None) -> None:
        qty = amounts.quantity(quantity)
        before = self.quantity_on_hand
        if unit_cost is not None:
            new_average = amounts.weighted_average(before, self.average_cost, qty, unit_cost)
            if new_average is not None:
                self.average_cost = new_average
            self.last_cost = amounts.money(unit_cost)
        self.quantity_on_hand = amounts.add(before, qty, scale=amounts.QUANTITY_SCALE)
        self._recompute_available()

    def deduct_stock(self, quantity: Decimal) -> None:
        """Remove stock.  Average cost is unchanged by outbound movements."""
        self.quantity_on_hand = amounts.subtract(
            self.quantity_on_hand, quantity, scale=amounts.QUANTITY_SCALE
        )
        self._recompute_available()

    def has_available(self, quantity: Decimal) -> bool:
        return amounts.compare(self.quantity_available, quantity, scale=amounts.QUANTITY_SCALE) >= 0

    def reserve(self, quantity: Decimal) -> None:
        if not self.has_available(quantity):
            raise InsufficientStockError(
                str(self.product_id), str(amounts.quantity(quantity)), str(self.quantity_available)
            )
        self.quantity_reserved = amounts.add(self.quantity_reserved, quantity, scale=amounts.QUANTITY_SCALE)
        self._recompute_available()

    def release_reserved(self, quantity: Decimal) -> None:
        """Release a reservation; the reserved quantity never drops below zero."""
        remaining = amounts.subtract(self.quantity_reserved, quantity, scale=amounts.QUANTITY_SCALE)
        self.quantity_reserved = max(remaining, amounts.quantity(0))
        self._recompute_available()

    def _recompute_available(self) -> None:
        self.quantity_available = amounts.subtract(
            self.quantity_on_hand, self.quantity_reserved, scale=amounts.QUANTITY_SCALE
        )


class InventoryMovement(TrackedBase):
    """
    One immutable stock change.

    Guarantees:
        - quantity is signed: positive for inbound, negative for outbound.
        - quantity_after = quantity_before + quantity.
        - seq is strictly increasing per product in allocation order.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "seq", name="uq_inventory_movement_product_seq"),
        Index("idx_movement_product_date", "product_id", "movement_date", "seq"),
        Index("idx_movement_source", "source_type", "source_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    movement_date: Mapped[date] = mapped_column(Date, nullable=False)

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    quantity_before: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    quantity_after: Mapped[Decimal] = mapped_column(Numeric(18, 3), nullable=False)

    source_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<InventoryMovement #{self.seq} {self.movement_type} {self.quantity}>"

    @property
    def source(self) -> DocumentRef | None:
        if self.source_type is None or self.source_id is None:
            return None
        return DocumentRef(DocumentType(self.source_type), self.source_id)
