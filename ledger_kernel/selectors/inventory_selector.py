"""
Module: ledger_kernel.selectors.inventory_selector
Responsibility: Read-only stock positions, movement history, FIFO layers,
    low-stock listing and valuation.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Movement history is newest first (movement_date desc, seq desc).
    - FIFO batches are oldest first (movement_date asc, seq asc) and only
      include purchase_in and opening_stock movements.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain import amounts, fifo
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.domain.dtos import (
    FifoBatch,
    FifoCostResult,
    MovementInfo,
    StockInfo,
    StockValuation,
)
from ledger_kernel.models.inventory import (
    FIFO_LAYER_MOVEMENTS,
    InventoryMovement,
    InventoryStock,
    MovementType,
)
from ledger_kernel.selectors.base import BaseSelector


def stock_to_dto(stock: InventoryStock) -> StockInfo:
    return StockInfo(
        product_id=stock.product_id,
        quantity_on_hand=stock.quantity_on_hand,
        quantity_reserved=stock.quantity_reserved,
        quantity_available=stock.quantity_available,
        last_cost=stock.last_cost,
        average_cost=stock.average_cost,
        reorder_level=stock.reorder_level,
        last_movement_at=stock.last_movement_at,
    )


def movement_to_dto(movement: InventoryMovement) -> MovementInfo:
    return MovementInfo(
        id=movement.id,
        seq=movement.seq,
        product_id=movement.product_id,
        movement_date=movement.movement_date,
        movement_type=MovementType(movement.movement_type),
        quantity=movement.quantity,
        unit_cost=movement.unit_cost,
        quantity_before=movement.quantity_before,
        quantity_after=movement.quantity_after,
        source=movement.source,
        notes=movement.notes,
    )


class InventorySelector(BaseSelector[InventoryStock]):
    """Inventory queries."""

    def _stock(self, product_id: UUID) -> InventoryStock | None:
        return self.session.execute(
            select(InventoryStock).where(InventoryStock.product_id == product_id)
        ).scalar_one_or_none()

    def stock(self, product_id: UUID) -> StockInfo | None:
        row = self._stock(product_id)
        return stock_to_dto(row) if row else None

    def movements_for_product(self, product_id: UUID, limit: int | None = None) -> list[MovementInfo]:
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.product_id == product_id)
            .order_by(InventoryMovement.movement_date.desc(), InventoryMovement.seq.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [movement_to_dto(m) for m in self.session.execute(stmt).scalars()]

    def movements_for_source(self, source: DocumentRef) -> list[MovementInfo]:
        """Movements recorded for one document, in allocation order per product."""
        stmt = (
            select(InventoryMovement)
            .where(
                InventoryMovement.source_type == source.document_type.value,
                InventoryMovement.source_id == source.document_id,
            )
            .order_by(InventoryMovement.product_id, InventoryMovement.seq)
        )
        return [movement_to_dto(m) for m in self.session.execute(stmt).scalars()]

    def fifo_batches(self, product_id: UUID) -> list[FifoBatch]:
        stmt = (
            select(InventoryMovement)
            .where(
                InventoryMovement.product_id == product_id,
                InventoryMovement.movement_type.in_([t.value for t in FIFO_LAYER_MOVEMENTS]),
            )
            .order_by(InventoryMovement.movement_date, InventoryMovement.seq)
        )
        return [
            FifoBatch(m.id, m.movement_date, m.quantity, m.unit_cost)
            for m in self.session.execute(stmt).scalars()
        ]

    def fifo_cost(self, product_id: UUID, quantity: amounts.AmountLike) -> FifoCostResult:
        """Price issuing ``quantity`` units against the layers still in stock."""
        row = self._stock(product_id)
        on_hand = row.quantity_on_hand if row else amounts.quantity(0)
        return fifo.price_issue(product_id, self.fifo_batches(product_id), on_hand, amounts.quantity(quantity))

    def low_stock(self) -> list[StockInfo]:
        """Products with a reorder level whose available quantity is at or below it."""
        stmt = (
            select(InventoryStock)
            .where(
                InventoryStock.reorder_level.is_not(None),
                InventoryStock.quantity_available <= InventoryStock.reorder_level,
            )
            .order_by(InventoryStock.product_id)
        )
        return [stock_to_dto(s) for s in self.session.execute(stmt).scalars()]

    def valuation(self) -> StockValuation:
        """On-hand quantity and value at average cost across every product."""
        rows = self.session.execute(select(InventoryStock)).scalars().all()
        return StockValuation(
            product_count=len(rows),
            total_quantity=amounts.total((r.quantity_on_hand for r in rows), scale=amounts.QUANTITY_SCALE),
            total_value=amounts.total(
                amounts.multiply(r.quantity_on_hand, r.average_cost or amounts.ZERO) for r in rows
            ),
        )
