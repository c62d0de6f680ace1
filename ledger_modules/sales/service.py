"""
Sales Service (``ledger_modules.sales.service``).

Responsibility
--------------
Moves sales orders through confirm -> deliver (or cancel) and records the
stock and journal effects of each step.

Architecture position
---------------------
**Modules layer** -- composes ``InventoryLedgerService`` for reservations
and issues, and the inherited ``AutoJournalService`` machinery for the two
delivery entries.

Invariants enforced
-------------------
* Confirmation reserves every line or none: all reservations run inside one
  savepoint, so an ``InsufficientStockError`` on any line undoes the rest.
* Delivery issues stock at the product's average cost at that moment.
* Revenue is journalled against ``sales_invoice:<order id>``, cost of goods
  against ``sales_delivery:<order id>``; each is created at most once.
* Stock rows are locked in product id order by every operation.
* Delivering an order twice records its stock movements once.

Failure modes
-------------
* ``DocumentStateError`` for an action the order's status does not allow.
* ``InsufficientStockError`` from confirmation or delivery.
* Missing default accounts  -> journal skipped with a warning; stock
  effects still happen.
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
from ledger_modules.sales.models import (
    SalesDeliveryResult,
    SalesOrder,
    SalesOrderStatus,
)

logger = get_logger("modules.sales.service")


def _by_product(quantities: dict[UUID, Decimal]) -> list[tuple[UUID, Decimal]]:
    """Per-product quantities in product id order, the order stock rows are locked in."""
    return sorted(quantities.items(), key=lambda item: str(item[0]))


class SalesService(AutoJournalService):
    """
    Sales order lifecycle.

    Contract:
        Every method takes the caller's current order DTO and returns the
        updated copy.  The caller persists the order's status.
    """

    switch = JournalSwitch.SALES

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

    def _require(self, order: SalesOrder, action: str, *allowed: SalesOrderStatus) -> None:
        if order.status not in allowed:
            raise DocumentStateError(order.order_number, SalesOrderStatus(order.status).value, action)

    # ------------------------------------------------------------------
    # Confirmation / cancellation
    # ------------------------------------------------------------------

    def confirm_order(self, order: SalesOrder, actor_id: UUID) -> SalesOrder:
        """
        Reserve stock for every line.

        Preconditions: Order is DRAFT (CONFIRMED is accepted as a no-op).
        Postconditions: quantity_reserved raised by the ordered quantity of
            each product; order CONFIRMED.

        Raises:
            DocumentStateError: Order delivered or cancelled.
            InsufficientStockError: Some product lacks available stock;
                nothing is reserved.
        """
        if order.status == SalesOrderStatus.CONFIRMED:
            return order
        self._require(order, "confirm", SalesOrderStatus.DRAFT)

        with LogContext.bind(actor_id=actor_id, operation="sales_confirm"):
            with self.atomic("sales_confirm"):
                for product_id, qty in _by_product(order.quantities_by_product()):
                    self.inventory.reserve_stock(product_id, qty, actor_id)

            logger.info(
                "sales_order_confirmed",
                extra={"order_number": order.order_number, "line_count": len(order.lines)},
            )
        return replace(order, status=SalesOrderStatus.CONFIRMED)

    def cancel_order(self, order: SalesOrder, actor_id: UUID) -> SalesOrder:
        """Cancel a draft or confirmed order, releasing any reservation."""
        self._require(order, "cancel", SalesOrderStatus.DRAFT, SalesOrderStatus.CONFIRMED)
        if order.status == SalesOrderStatus.CONFIRMED:
            with self.atomic("sales_cancel"):
                for product_id, qty in _by_product(order.quantities_by_product()):
                    self.inventory.release_reserved(product_id, qty, actor_id)
        logger.info("sales_order_cancelled", extra={"order_number": order.order_number})
        return replace(order, status=SalesOrderStatus.CANCELLED)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def deliver_order(
        self,
        order: SalesOrder,
        actor_id: UUID,
        delivery_date: date | None = None,
    ) -> SalesDeliveryResult:
        """
        Issue the ordered stock and journal the sale.

        A delivery already recorded for the order (the same order delivered
        again, e.g. a retried request) is not repeated: the earlier
        movements and entries are returned unchanged.

        Preconditions: Order is CONFIRMED.
        Postconditions: Reservations released; one sales_out movement per
            line at average cost; revenue and cost-of-goods entries posted
            when sales journaling is enabled.

        Raises:
            DocumentStateError, InsufficientStockError, plus kernel errors
            from journal creation.
        """
        self._require(order, "deliver", SalesOrderStatus.CONFIRMED)
        on = delivery_date or self.clock.today()
        source = DocumentRef(DocumentType.SALES_DELIVERY, order.id)

        recorded = InventorySelector(self.session).movements_for_source(source)
        if recorded:
            logger.info("sales_delivery_exists", extra={"order_number": order.order_number})
            return self._delivery_result(
                order,
                [m.id for m in recorded],
                [(m.product_id, amounts.multiply(-m.quantity, m.unit_cost or 0)) for m in recorded],
                self._existing(DocumentRef(DocumentType.SALES_INVOICE, order.id)),
                self._existing(source),
            )

        with LogContext.bind(actor_id=actor_id, operation="sales_deliver"):
            with self.atomic("sales_deliver"):
                for product_id, qty in _by_product(order.quantities_by_product()):
                    self.inventory.release_reserved(product_id, qty, actor_id)

                movements = []
                costs: list[tuple[UUID, Decimal]] = []
                for line in sorted(order.lines, key=lambda line: str(line.product_id)):
                    movement = self.inventory.record(
                        line.product_id,
                        MovementType.SALES_OUT,
                        line.quantity,
                        actor_id,
                        source=source,
                        movement_date=on,
                        notes=f"Delivery of {order.order_number}",
                    )
                    movements.append(movement)
                    costs.append((line.product_id, amounts.multiply(line.quantity, movement.unit_cost or 0)))

                revenue_entry = cogs_entry = None
                if self.is_enabled():
                    revenue_entry = self._journal_revenue(order, on, actor_id)
                    cogs_entry = self._journal_cost_of_goods(order, on, costs, actor_id)

            result = self._delivery_result(order, [m.id for m in movements], costs, revenue_entry, cogs_entry)
            logger.info(
                "sales_order_delivered",
                extra={
                    "order_number": order.order_number,
                    "total_amount": order.total_amount,
                    "cost_of_goods": result.cost_of_goods,
                },
            )
        return result

    @staticmethod
    def _delivery_result(
        order: SalesOrder,
        movement_ids: list[UUID],
        costs: list[tuple[UUID, Decimal]],
        revenue_entry,
        cogs_entry,
    ) -> SalesDeliveryResult:
        return SalesDeliveryResult(
            order=replace(order, status=SalesOrderStatus.DELIVERED),
            movement_ids=tuple(movement_ids),
            cost_of_goods=amounts.total(cost for _, cost in costs),
            revenue_entry_id=revenue_entry.id if revenue_entry is not None else None,
            cogs_entry_id=cogs_entry.id if cogs_entry is not None else None,
        )

    def _existing(self, reference: DocumentRef) -> JournalEntry | None:
        existing = self.live_entry(reference)
        return self.journal.get_entry(existing.id) if existing is not None else None

    def _journal_revenue(self, order: SalesOrder, on: date, actor_id: UUID) -> JournalEntry | None:
        """Dr receivable / Cr revenue per account / Cr PPN output."""
        reference = DocumentRef(DocumentType.SALES_INVOICE, order.id)
        if order.total_amount <= 0:
            return None
        existing = self._existing(reference)
        if existing is not None:
            return existing

        receivable = self.account_code("default_ar_account")
        default_revenue = self.account_code("default_sales_account")
        needs_default = any(line.revenue_account_code is None for line in order.lines)
        if receivable is None or (needs_default and default_revenue is None):
            logger.warning("sales_journal_missing_account", extra={"order_number": order.order_number})
            return None

        revenue: dict[str, Decimal] = {}
        for line in order.lines:
            code = line.revenue_account_code or default_revenue
            revenue[code] = amounts.add(revenue.get(code, amounts.ZERO), line.subtotal)

        output_tax = self.account_code("default_ppn_output_account")
        tax = amounts.money(order.tax_amount)
        split_tax = tax > 0 and output_tax is not None and self.settings.is_enabled("tax_ppn_enabled")
        if tax > 0 and not split_tax:
            first = next(iter(revenue))
            revenue[first] = amounts.add(revenue[first], tax)

        lines = [
            JournalLineSpec.debit(
                receivable, order.total_amount, f"Receivable - {order.order_number}", customer_id=order.customer_id
            )
        ]
        for code, amount in revenue.items():
            if amount > 0:
                lines.append(JournalLineSpec.credit(code, amount, f"Sales - {order.order_number}", customer_id=order.customer_id))
        if split_tax:
            lines.append(JournalLineSpec.credit(output_tax, tax, f"PPN Output - {order.order_number}"))

        memo = f"Sales: {order.order_number}"
        if order.customer_name:
            memo += f" - {order.customer_name}"
        header = AutoJournalHeader(
            entry_date=on,
            entry_type=EntryType.AUTO_SALES,
            reference=reference,
            memo=memo,
            currency=order.currency,
            exchange_rate=order.exchange_rate,
        )
        return self.create_journal_entry(header, lines, actor_id)

    def _journal_cost_of_goods(
        self,
        order: SalesOrder,
        on: date,
        costs: list[tuple[UUID, Decimal]],
        actor_id: UUID,
    ) -> JournalEntry | None:
        """Dr COGS / Cr inventory per line, in base currency."""
        reference = DocumentRef(DocumentType.SALES_DELIVERY, order.id)
        existing = self._existing(reference)
        if existing is not None:
            return existing

        cogs = self.account_code("default_cogs_account")
        stock = self.account_code("default_inventory_account")
        if cogs is None or stock is None:
            logger.warning("sales_cogs_missing_account", extra={"order_number": order.order_number})
            return None

        lines = []
        for product_id, cost in costs:
            if cost > 0:
                lines.append(JournalLineSpec.debit(cogs, cost, f"COGS - {order.order_number}", product_id=product_id))
                lines.append(JournalLineSpec.credit(stock, cost, f"Inventory - {order.order_number}", product_id=product_id))
        if not lines:
            return None

        header = AutoJournalHeader(
            entry_date=on,
            entry_type=EntryType.AUTO_SALES,
            reference=reference,
            memo=f"COGS: {order.order_number}",
        )
        return self.create_journal_entry(header, lines, actor_id)
