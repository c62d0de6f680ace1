"""
FIFO costing over inbound cost layers.

Pure functions: the caller supplies the layers (purchase_in / opening_stock
movements, oldest first) and the current on-hand quantity.

The movement ledger does not record which layer an outbound movement drew
from, so the remaining layers are reconstructed: everything beyond the
current on-hand quantity is assumed consumed, oldest layer first.
"""

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from ledger_kernel.domain import amounts
from ledger_kernel.domain.dtos import FifoBatch, FifoCostResult, FifoLayerUse


def remaining_layers(batches: Sequence[FifoBatch], on_hand: Decimal) -> list[FifoBatch]:
    """Layers still in stock once the oldest ``sum(batches) - on_hand`` units are gone."""
    layered = amounts.total((b.quantity for b in batches), scale=amounts.QUANTITY_SCALE)
    consumed = max(amounts.subtract(layered, on_hand, scale=amounts.QUANTITY_SCALE), Decimal("0"))

    remaining: list[FifoBatch] = []
    for batch in batches:
        if consumed >= batch.quantity:
            consumed -= batch.quantity
            continue
        left = amounts.subtract(batch.quantity, consumed, scale=amounts.QUANTITY_SCALE)
        consumed = Decimal("0")
        remaining.append(
            FifoBatch(batch.movement_id, batch.movement_date, left, batch.unit_cost)
        )
    return remaining


def price_issue(
    product_id: UUID,
    batches: Sequence[FifoBatch],
    on_hand: Decimal,
    quantity: Decimal,
) -> FifoCostResult:
    """
    Cost of issuing ``quantity`` units against the remaining FIFO layers.

    A layer without a unit cost is priced at zero.  Units not covered by
    any layer are reported as ``shortfall`` and carry no cost.
    """
    wanted = amounts.quantity(quantity)
    outstanding = wanted
    uses: list[FifoLayerUse] = []

    for layer in remaining_layers(batches, amounts.quantity(on_hand)):
        if outstanding <= 0:
            break
        take = min(layer.quantity, outstanding)
        unit_cost = amounts.money(layer.unit_cost) if layer.unit_cost is not None else amounts.ZERO
        uses.append(
            FifoLayerUse(
                movement_id=layer.movement_id,
                quantity=take,
                unit_cost=unit_cost,
                cost=amounts.multiply(take, unit_cost),
            )
        )
        outstanding = amounts.subtract(outstanding, take, scale=amounts.QUANTITY_SCALE)

    return FifoCostResult(
        product_id=product_id,
        quantity=wanted,
        total_cost=amounts.total(use.cost for use in uses),
        layers=tuple(uses),
        shortfall=max(outstanding, amounts.quantity(0)),
    )
