"""
Sales order tests.

Verifies:
- Confirmation reserves every line or none
- Cancelling a confirmed order releases its reservations
- Delivery issues stock at average cost and releases reservations
- Delivering the same order again records nothing new
- Stock rows are taken in product id order
- Revenue (sales_invoice) and cost of goods (sales_delivery) entries
- Output PPN split only when PPN is enabled
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import DocumentStateError, InsufficientStockError
from ledger_kernel.models.inventory import MovementType
from ledger_modules.sales import SalesOrder, SalesOrderLine, SalesOrderStatus


def _order(*lines, tax="0", status=SalesOrderStatus.DRAFT):
    return SalesOrder(
        id=uuid4(),
        order_number="SO-2026-0001",
        order_date=date(2026, 1, 20),
        customer_id=uuid4(),
        lines=tuple(lines),
        tax_amount=Decimal(tax),
        customer_name="CV Maju Jaya",
        status=status,
    )


def _line(product_id, quantity, price, revenue_account_code=None):
    return SalesOrderLine(product_id, Decimal(quantity), Decimal(price), revenue_account_code)


class TestConfirmation:
    """Tests for confirm_order() and cancel_order()."""

    def test_confirm_reserves(self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id):
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25")), test_actor_id)

        assert order.status == SalesOrderStatus.CONFIRMED
        stock = inventory_selector.stock(product)
        assert stock.quantity_reserved == Decimal("10.000")
        assert stock.quantity_available == Decimal("90.000")

    def test_lines_for_same_product_summed(
        self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id
    ):
        product = stocked_product("10")
        with pytest.raises(InsufficientStockError):
            sales_service.confirm_order(_order(_line(product, "6", "25"), _line(product, "5", "25")), test_actor_id)
        assert inventory_selector.stock(product).quantity_reserved == Decimal("0.000")

    def test_all_or_none(self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id):
        plenty = stocked_product("100")
        scarce = stocked_product("2")
        order = _order(_line(plenty, "10", "25"), _line(scarce, "3", "40"))

        with pytest.raises(InsufficientStockError):
            sales_service.confirm_order(order, test_actor_id)

        assert inventory_selector.stock(plenty).quantity_reserved == Decimal("0.000")
        assert inventory_selector.stock(scarce).quantity_reserved == Decimal("0.000")

    def test_confirm_is_idempotent(self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id):
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25")), test_actor_id)
        sales_service.confirm_order(order, test_actor_id)
        assert inventory_selector.stock(product).quantity_reserved == Decimal("10.000")

    def test_cancel_releases(self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id):
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25")), test_actor_id)

        cancelled = sales_service.cancel_order(order, test_actor_id)

        assert cancelled.status == SalesOrderStatus.CANCELLED
        assert inventory_selector.stock(product).quantity_available == Decimal("100.000")

    def test_delivered_cannot_be_cancelled(self, sales_service, test_actor_id):
        with pytest.raises(DocumentStateError):
            sales_service.cancel_order(_order(status=SalesOrderStatus.DELIVERED), test_actor_id)


class TestDelivery:
    """Tests for deliver_order()."""

    def test_requires_confirmation(self, ledger, sales_service, stocked_product, test_actor_id):
        with pytest.raises(DocumentStateError):
            sales_service.deliver_order(_order(_line(stocked_product(), "1", "25")), test_actor_id)

    def test_stock_without_journal(
        self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id
    ):
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25")), test_actor_id)

        result = sales_service.deliver_order(order, test_actor_id, delivery_date=date(2026, 1, 21))

        assert result.order.status == SalesOrderStatus.DELIVERED
        assert result.revenue_entry_id is None
        assert result.cogs_entry_id is None
        assert result.cost_of_goods == Decimal("100.00")

        stock = inventory_selector.stock(product)
        assert stock.quantity_on_hand == Decimal("90.000")
        assert stock.quantity_reserved == Decimal("0.000")
        movement = inventory_selector.movements_for_product(product, limit=1)[0]
        assert movement.movement_type == MovementType.SALES_OUT
        assert movement.unit_cost == Decimal("10.00")
        assert movement.source == DocumentRef(DocumentType.SALES_DELIVERY, order.id)

    def test_revenue_and_cost_entries(
        self, ledger, sales_service, stocked_product, enable_auto_journal, journal_selector, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_sales", "tax_ppn_enabled")
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25"), tax="27.50"), test_actor_id)

        result = sales_service.deliver_order(order, test_actor_id)

        assert entry_lines(result.revenue_entry_id) == [
            ("1131", Decimal("277.50"), Decimal("0.00")),
            ("4110", Decimal("0.00"), Decimal("250.00")),
            ("2131", Decimal("0.00"), Decimal("27.50")),
        ]
        assert entry_lines(result.cogs_entry_id) == [
            ("5110", Decimal("100.00"), Decimal("0.00")),
            ("1141", Decimal("0.00"), Decimal("100.00")),
        ]
        revenue = journal_selector.get(result.revenue_entry_id)
        assert revenue.reference == DocumentRef(DocumentType.SALES_INVOICE, order.id)
        assert revenue.memo == "Sales: SO-2026-0001 - CV Maju Jaya"
        cogs = journal_selector.get(result.cogs_entry_id)
        assert cogs.reference == DocumentRef(DocumentType.SALES_DELIVERY, order.id)

    def test_tax_folded_into_revenue_when_ppn_off(
        self, ledger, sales_service, stocked_product, enable_auto_journal, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_sales")
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25"), tax="27.50"), test_actor_id)

        result = sales_service.deliver_order(order, test_actor_id)

        assert entry_lines(result.revenue_entry_id) == [
            ("1131", Decimal("277.50"), Decimal("0.00")),
            ("4110", Decimal("0.00"), Decimal("277.50")),
        ]

    def test_revenue_account_override(
        self, ledger, sales_service, stocked_product, enable_auto_journal, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_sales")
        goods, service_item = stocked_product(), stocked_product()
        order = _order(_line(goods, "2", "100"), _line(service_item, "1", "50", revenue_account_code="4120"))
        order = sales_service.confirm_order(order, test_actor_id)

        result = sales_service.deliver_order(order, test_actor_id)

        assert entry_lines(result.revenue_entry_id) == [
            ("1131", Decimal("250.00"), Decimal("0.00")),
            ("4110", Decimal("0.00"), Decimal("200.00")),
            ("4120", Decimal("0.00"), Decimal("50.00")),
        ]
        assert result.cost_of_goods == Decimal("30.00")

    def test_repeated_delivery_records_stock_once(
        self, ledger, sales_service, stocked_product, enable_auto_journal, inventory_selector, journal_selector,
        test_actor_id,
    ):
        enable_auto_journal("auto_journal_sales")
        product = stocked_product()
        order = sales_service.confirm_order(_order(_line(product, "10", "25")), test_actor_id)

        first = sales_service.deliver_order(order, test_actor_id)
        second = sales_service.deliver_order(order, test_actor_id)

        assert second.movement_ids == first.movement_ids
        assert second.revenue_entry_id == first.revenue_entry_id
        assert second.cogs_entry_id == first.cogs_entry_id
        assert second.cost_of_goods == Decimal("100.00")
        assert second.order.status == SalesOrderStatus.DELIVERED

        stock = inventory_selector.stock(product)
        assert stock.quantity_on_hand == Decimal("90.000")
        assert stock.quantity_reserved == Decimal("0.000")
        assert len(inventory_selector.movements_for_product(product)) == 2
        assert len(journal_selector.by_reference(DocumentRef(DocumentType.SALES_DELIVERY, order.id))) == 1

    def test_delivery_locks_products_in_id_order(
        self, ledger, sales_service, stocked_product, inventory_selector, test_actor_id
    ):
        first, second = sorted((stocked_product(), stocked_product()), key=str)
        order = sales_service.confirm_order(
            _order(_line(second, "3", "25"), _line(first, "4", "25")), test_actor_id
        )

        result = sales_service.deliver_order(order, test_actor_id)

        issued = [inventory_selector.movements_for_product(p, limit=1)[0].id for p in (first, second)]
        assert list(result.movement_ids) == issued
