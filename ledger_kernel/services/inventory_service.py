"""
InventoryLedgerService -- records stock movements and keeps stock positions.

Responsibility:
    Appends typed, signed movements to the immutable movement ledger and
    updates the product's stock row (on hand, reserved, available, costs)
    in the same savepoint.  Also manages reservations and reorder levels.

Architecture position:
    Kernel > Services -- imperative shell.  Reads go through
    InventorySelector.

Invariants enforced:
    - quantity_available == quantity_on_hand - quantity_reserved after every
      mutation.
    - The stock row is locked before its movement is appended; movement seq
      comes from the product's own counter row, locked only while the stock
      row is held, so seq order is allocation order per product.
    - Outbound movements never take available stock below zero, so they
      cannot consume quantity reserved for other orders.
    - Outbound movements without an explicit cost carry the current average
      cost as their unit_cost snapshot.
    - Average cost changes only on inbound movements that carry a cost.

Failure modes:
    - InvalidQuantityError for a zero or negative quantity.
    - InvalidAmountError for a negative or float unit cost.
    - InsufficientStockError for an outbound movement or reservation beyond
      available stock (nothing written).
    - LockConflictError on lock contention.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain import amounts
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.references import DocumentRef
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidAmountError,
    InvalidQuantityError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.inventory import (
    InventoryMovement,
    InventoryStock,
    MovementType,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.inventory")


def _positive_quantity(value: amounts.AmountLike) -> Decimal:
    try:
        qty = amounts.quantity(value)
    except InvalidAmountError as exc:
        raise InvalidQuantityError(str(value)) from exc
    if qty <= 0:
        raise InvalidQuantityError(str(value))
    return qty


class InventoryLedgerService(BaseService[InventoryMovement]):
    """
    Write side of the inventory ledger.

    Contract:
        Products are identified by id only; product master data belongs to
        the caller.  A stock row is created on first use.

    Non-goals:
        - No warehouse/location dimension.
        - Does not post journal entries; see ledger_modules.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Stock rows
    # ------------------------------------------------------------------

    def _locked_stock(self, product_id: UUID) -> InventoryStock | None:
        return self.session.execute(
            select(InventoryStock)
            .where(InventoryStock.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_or_create_locked(self, product_id: UUID, actor_id: UUID) -> InventoryStock:
        """Return the product's stock row locked for update, creating a zero row if absent."""
        stock = self._locked_stock(product_id)
        if stock is not None:
            return stock

        savepoint = self.session.begin_nested()
        try:
            stock = InventoryStock(product_id=product_id, created_by_id=actor_id)
            stock.initialize()
            self.session.add(stock)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("stock_row_race_retry", extra={"product_id": product_id})
            stock = self._locked_stock(product_id)
            if stock is None:
                raise
            return stock

        return self._locked_stock(product_id)

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def record(
        self,
        product_id: UUID,
        movement_type: MovementType | str,
        quantity: amounts.AmountLike,
        actor_id: UUID,
        *,
        unit_cost: amounts.AmountLike | None = None,
        source: DocumentRef | None = None,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> InventoryMovement:
        """
        Record one stock movement.

        ``quantity`` is always given positive; the direction comes from the
        movement type.

        Preconditions: quantity > 0; unit_cost (if given) >= 0.
        Postconditions: Stock row updated; movement appended with
            quantity_after = quantity_before + signed quantity.

        Raises:
            InvalidQuantityError, InvalidAmountError, InsufficientStockError,
            LockConflictError.
        """
        movement_type = MovementType(movement_type)
        qty = _positive_quantity(quantity)
        cost = amounts.money(unit_cost) if unit_cost is not None else None
        if cost is not None and cost < 0:
            raise InvalidAmountError(unit_cost, "unit cost must not be negative")

        with self.atomic("inventory_record"):
            stock = self.get_or_create_locked(product_id, actor_id)
            before = stock.quantity_on_hand
            available = stock.quantity_available

            if movement_type.is_inbound:
                stock.add_stock(qty, cost)
                signed = qty
            else:
                if amounts.compare(available, qty, scale=amounts.QUANTITY_SCALE) < 0:
                    raise InsufficientStockError(str(product_id), str(qty), str(available))
                if cost is None:
                    cost = stock.average_cost
                stock.deduct_stock(qty)
                signed = -qty

            stock.last_movement_at = self.clock.now()
            stock.updated_by_id = actor_id

            movement = InventoryMovement(
                seq=self._sequences.next_value(SequenceService.movement_sequence(product_id)),
                movement_date=movement_date or self.clock.today(),
                product_id=product_id,
                movement_type=movement_type.value,
                quantity=signed,
                unit_cost=cost,
                quantity_before=before,
                quantity_after=stock.quantity_on_hand,
                source_type=source.document_type.value if source else None,
                source_id=source.document_id if source else None,
                notes=notes,
                created_by_id=actor_id,
            )
            self.session.add(movement)
            self.session.flush()

        logger.info(
            "inventory_movement_recorded",
            extra={
                "product_id": product_id,
                "movement_type": movement_type.value,
                "quantity": signed,
                "quantity_after": movement.quantity_after,
                "seq": movement.seq,
                "document": str(source) if source else None,
            },
        )
        return movement

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def reserve_stock(self, product_id: UUID, quantity: amounts.AmountLike, actor_id: UUID) -> InventoryStock:
        """
        Reserve available stock for a confirmed order.

        Raises:
            InsufficientStockError: quantity exceeds quantity_available.
        """
        qty = _positive_quantity(quantity)
        with self.atomic("inventory_reserve"):
            stock = self.get_or_create_locked(product_id, actor_id)
            stock.reserve(qty)
            stock.updated_by_id = actor_id
            self.session.flush()
        logger.info(
            "stock_reserved",
            extra={"product_id": product_id, "quantity": qty, "quantity_available": stock.quantity_available},
        )
        return stock

    def release_reserved(self, product_id: UUID, quantity: amounts.AmountLike, actor_id: UUID) -> InventoryStock:
        """Release a reservation.  Releasing more than is reserved clamps at zero."""
        qty = _positive_quantity(quantity)
        with self.atomic("inventory_release"):
            stock = self.get_or_create_locked(product_id, actor_id)
            stock.release_reserved(qty)
            stock.updated_by_id = actor_id
            self.session.flush()
        logger.info(
            "stock_reservation_released",
            extra={"product_id": product_id, "quantity": qty, "quantity_reserved": stock.quantity_reserved},
        )
        return stock

    def has_available(self, product_id: UUID, quantity: amounts.AmountLike) -> bool:
        stock = self.session.execute(
            select(InventoryStock).where(InventoryStock.product_id == product_id)
        ).scalar_one_or_none()
        if stock is None:
            return amounts.quantity(quantity) <= 0
        return stock.has_available(amounts.quantity(quantity))

    def set_reorder_level(
        self,
        product_id: UUID,
        reorder_level: amounts.AmountLike | None,
        actor_id: UUID,
    ) -> InventoryStock:
        level = amounts.quantity(reorder_level) if reorder_level is not None else None
        if level is not None and level < 0:
            raise InvalidQuantityError(str(reorder_level))
        stock = self.get_or_create_locked(product_id, actor_id)
        stock.reorder_level = level
        stock.updated_by_id = actor_id
        self.session.flush()
        logger.info("reorder_level_set", extra={"product_id": product_id, "reorder_level": level})
        return stock
