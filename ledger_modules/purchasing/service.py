"""
Purchasing Service (``ledger_modules.purchasing.service``).

Responsibility
--------------
Places, cancels and receives purchase orders.  Receipt records stock at
cost and journals inventory (plus PPN input) against accounts payable.

Invariants enforced
-------------------
* Stock is valued in base currency: unit cost x exchange rate, plus a
  share of any tax that cannot be reclaimed as PPN input.
* The inventory account is debited with the same capitalised tax, so the
  ledger and the stock valuation agree.
* Receiving an order twice records its stock movements once.
* One journal entry per receipt, referenced as
  ``purchase_receiving:<order id>``.
* Receipt stock and journal effects share one savepoint.

Failure modes
-------------
* ``DocumentStateError`` for actions the order status does not allow.
* Missing inventory or payable account  -> journal skipped with a warning.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain import amounts
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalLineSpec
from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import DocumentStateError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.inventory import MovementType
from ledger_kernel.models.journal import EntryType, JournalEntry
from ledger_kernel.selectors.inventory_selector import InventorySelector
from ledger_kernel.services.inventory_service import InventoryLedgerService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.settings_service import SettingsService
from ledger_modules.journal_bridge.models import AutoJournalHeader, JournalSwitch
from ledger_modules.journal_bridge.service import AutoJournalService
from ledger_modules.purchasing.models import (
    GoodsReceiptResult,
    PurchaseOrder,
    PurchaseOrderStatus,
)

logger = get_logger("modules.purchasing.service")


class PurchasingService(AutoJournalService):
    """Purchase order lifecycle and goods receipt."""

    switch = JournalSwitch.PURCHASE

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        journal: JournalService | None = None,
        settings: SettingsService | None = None,
        inventory: InventoryLedgerService | None = None,
    ):
        super().__init__(session, clock, journal, settings)
        self.inventory = inventory or InventoryLedgerService(session, self.clock)

    def _require(self, order: PurchaseOrder, action: str, *allowed: PurchaseOrderStatus) -> None:
        if order.status not in allowed:
            raise DocumentStateError(order.order_number, PurchaseOrderStatus(order.status).value, action)

    def place_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self._require(order, "place", PurchaseOrderStatus.DRAFT)
        logger.info("purchase_order_placed", extra={"order_number": order.order_number})
        return replace(order, status=PurchaseOrderStatus.ORDERED)

    def cancel_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self._require(order, "cancel", PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.ORDERED)
        logger.info("purchase_order_cancelled", extra={"order_number": order.order_number})
        return replace(order, status=PurchaseOrderStatus.CANCELLED)

    def _capitalizes_tax(self, order: PurchaseOrder) -> bool:
        """True when the order's tax cannot be reclaimed as PPN input and becomes stock cost."""
        if amounts.money(order.tax_amount) <= 0:
            return False
        return self.account_code("default_ppn_input_account") is None or not self.settings.is_enabled("tax_ppn_enabled")

    def landed_unit_costs(self, order: PurchaseOrder, capitalize_tax: bool) -> list[Decimal]:
        """
        Base-currency unit cost of each line, in line order.

        Capitalised tax is shared across lines in proportion to their
        subtotals; the last line takes the rounding remainder.
        """
        shares = [amounts.ZERO] * len(order.lines)
        if capitalize_tax and order.subtotal > 0:
            tax = amounts.money(order.tax_amount)
            allocated = amounts.ZERO
            for index, line in enumerate(order.lines[:-1]):
                shares[index] = amounts.divide(amounts.multiply(tax, line.subtotal), order.subtotal)
                allocated = amounts.add(allocated, shares[index])
            shares[-1] = amounts.subtract(tax, allocated)

        costs = []
        for line, share in zip(order.lines, shares):
            unit_cost = line.unit_cost
            if share and line.quantity > 0:
                unit_cost = amounts.divide(amounts.add(line.subtotal, share), line.quantity)
            costs.append(amounts.multiply(unit_cost, order.exchange_rate))
        return costs

    def receive_goods(
        self,
        order: PurchaseOrder,
        actor_id: UUID,
        receipt_date: date | None = None,
    ) -> GoodsReceiptResult:
        """
        Receive every line of an ordered purchase.

        A receipt already recorded for the order is not repeated: the
        earlier movements and entry are returned unchanged.

        Preconditions: Order is ORDERED.
        Postconditions: One purchase_in movement per line; inventory
            journal posted when purchase journaling is enabled.

        Raises:
            DocumentStateError, plus kernel errors from stock or journal.
        """
        self._require(order, "receive", PurchaseOrderStatus.ORDERED)
        on = receipt_date or self.clock.today()
        source = DocumentRef(DocumentType.PURCHASE_RECEIVING, order.id)

        recorded = InventorySelector(self.session).movements_for_source(source)
        if recorded:
            logger.info("purchase_receipt_exists", extra={"order_number": order.order_number})
            existing = self.live_entry(source)
            return GoodsReceiptResult(
                order=replace(order, status=PurchaseOrderStatus.RECEIVED),
                movement_ids=tuple(m.id for m in recorded),
                journal_entry_id=existing.id if existing is not None else None,
            )

        capitalize_tax = self._capitalizes_tax(order)
        unit_costs = self.landed_unit_costs(order, capitalize_tax)
        receipts = sorted(zip(order.lines, unit_costs), key=lambda item: str(item[0].product_id))

        with LogContext.bind(actor_id=actor_id, operation="purchase_receive"):
            with self.atomic("purchase_receive"):
                movements = [
                    self.inventory.record(
                        line.product_id,
                        MovementType.PURCHASE_IN,
                        line.quantity,
                        actor_id,
                        unit_cost=unit_cost,
                        source=source,
                        movement_date=on,
                        notes=f"Receipt of {order.order_number}",
                    )
                    for line, unit_cost in receipts
                ]
                entry = None
                if self.is_enabled():
                    entry = self._journal_receipt(order, on, source, capitalize_tax, actor_id)

            logger.info(
                "purchase_goods_received",
                extra={"order_number": order.order_number, "line_count": len(order.lines)},
            )

        return GoodsReceiptResult(
            order=replace(order, status=PurchaseOrderStatus.RECEIVED),
            movement_ids=tuple(m.id for m in movements),
            journal_entry_id=entry.id if entry is not None else None,
        )

    def _journal_receipt(
        self,
        order: PurchaseOrder,
        on: date,
        reference: DocumentRef,
        capitalize_tax: bool,
        actor_id: UUID,
    ) -> JournalEntry | None:
        """Dr inventory per line / Dr PPN input (or capitalised tax) / Cr payable."""
        existing = self.live_entry(reference)
        if existing is not None:
            return self.journal.get_entry(existing.id)
        if order.total_amount <= 0:
            return None

        stock = self.account_code("default_inventory_account")
        payable = self.account_code("default_ap_account")
        if stock is None or payable is None:
            logger.warning("purchase_journal_missing_account", extra={"order_number": order.order_number})
            return None

        lines = [
            JournalLineSpec.debit(
                stock,
                line.subtotal,
                f"Inventory - {order.order_number}",
                product_id=line.product_id,
                supplier_id=order.supplier_id,
            )
            for line in order.lines
            if line.subtotal > 0
        ]

        tax = amounts.money(order.tax_amount)
        if capitalize_tax:
            lines.append(JournalLineSpec.debit(stock, tax, f"Non-creditable tax - {order.order_number}"))
        elif tax > 0:
            input_tax = self.account_code("default_ppn_input_account")
            lines.append(JournalLineSpec.debit(input_tax, tax, f"PPN Input - {order.order_number}"))

        lines.append(
            JournalLineSpec.credit(
                payable, order.total_amount, f"Payable - {order.order_number}", supplier_id=order.supplier_id
            )
        )

        memo = f"Purchase: {order.order_number}"
        if order.supplier_name:
            memo += f" - {order.supplier_name}"
        header = AutoJournalHeader(
            entry_date=on,
            entry_type=EntryType.AUTO_PURCHASE,
            reference=reference,
            memo=memo,
            currency=order.currency,
            exchange_rate=order.exchange_rate,
        )
        return self.create_journal_entry(header, lines, actor_id)
