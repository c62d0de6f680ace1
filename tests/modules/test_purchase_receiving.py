"""
Purchase receiving tests.

Verifies:
- draft -> ordered -> received, cancel from draft or ordered only
- One purchase_in movement per line at unit cost x exchange rate
- Inventory and input PPN debited against accounts payable
- Tax without PPN enabled is capitalised into inventory, in the ledger and
  in the stock unit cost
- Receiving the same order again records nothing new
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.references import DocumentRef, DocumentType
from ledger_kernel.exceptions import DocumentStateError
from ledger_kernel.models.journal import EntryType
from ledger_modules.purchasing import PurchaseOrder, PurchaseOrderLine, PurchaseOrderStatus


def _order(*lines, tax="0", currency=None, rate="1", status=PurchaseOrderStatus.ORDERED):
    return PurchaseOrder(
        id=uuid4(),
        order_number="PO-2026-0001",
        order_date=date(2026, 1, 10),
        supplier_id=uuid4(),
        lines=tuple(lines),
        tax_amount=Decimal(tax),
        supplier_name="PT Sumber Makmur",
        currency=currency,
        exchange_rate=Decimal(rate),
        status=status,
    )


def _line(quantity, unit_cost, product_id=None):
    return PurchaseOrderLine(product_id or uuid4(), Decimal(quantity), Decimal(unit_cost))


class TestOrderLifecycle:
    def test_place_and_cancel(self, purchasing_service):
        placed = purchasing_service.place_order(_order(_line("1", "1"), status=PurchaseOrderStatus.DRAFT))
        assert placed.status == PurchaseOrderStatus.ORDERED
        assert purchasing_service.cancel_order(placed).status == PurchaseOrderStatus.CANCELLED

    def test_received_cannot_be_cancelled(self, purchasing_service):
        with pytest.raises(DocumentStateError):
            purchasing_service.cancel_order(_order(status=PurchaseOrderStatus.RECEIVED))

    def test_draft_cannot_be_received(self, ledger, purchasing_service, test_actor_id):
        with pytest.raises(DocumentStateError):
            purchasing_service.receive_goods(_order(_line("1", "1"), status=PurchaseOrderStatus.DRAFT), test_actor_id)


class TestReceiveGoods:
    """Tests for receive_goods()."""

    def test_stock_recorded(self, ledger, purchasing_service, inventory_selector, test_actor_id):
        line = _line("10", "100")
        order = _order(line)

        result = purchasing_service.receive_goods(order, test_actor_id, receipt_date=date(2026, 1, 12))

        assert result.order.status == PurchaseOrderStatus.RECEIVED
        assert len(result.movement_ids) == 1
        assert result.journal_entry_id is None
        stock = inventory_selector.stock(line.product_id)
        assert stock.quantity_on_hand == Decimal("10.000")
        assert stock.average_cost == Decimal("100.00")
        movement = inventory_selector.movements_for_product(line.product_id)[0]
        assert movement.source == DocumentRef(DocumentType.PURCHASE_RECEIVING, order.id)
        assert movement.movement_date == date(2026, 1, 12)

    def test_inventory_and_input_tax(
        self, ledger, purchasing_service, enable_auto_journal, journal_selector, entry_lines, test_actor_id
    ):
        enable_auto_journal("auto_journal_purchase", "tax_ppn_enabled")
        order = _order(_line("10", "100"), _line("5", "20"), tax="121")

        result = purchasing_service.receive_goods(order, test_actor_id)

        assert entry_lines(result.journal_entry_id) == [
            ("1141", Decimal("1000.00"), Decimal("0.00")),
            ("1141", Decimal("100.00"), Decimal("0.00")),
            ("1161", Decimal("121.00"), Decimal("0.00")),
            ("2111", Decimal("0.00"), Decimal("1221.00")),
        ]
        info = journal_selector.get(result.journal_entry_id)
        assert info.entry_type == EntryType.AUTO_PURCHASE
        assert info.memo == "Purchase: PO-2026-0001 - PT Sumber Makmur"

    def test_non_creditable_tax(
        self, ledger, purchasing_service, enable_auto_journal, entry_lines, inventory_selector, test_actor_id
    ):
        enable_auto_journal("auto_journal_purchase")
        line = _line("10", "100")
        result = purchasing_service.receive_goods(_order(line, tax="110"), test_actor_id)

        assert inventory_selector.stock(line.product_id).average_cost == Decimal("111.00")
        assert inventory_selector.valuation().total_value == Decimal("1110.00")

        assert entry_lines(result.journal_entry_id) == [
            ("1141", Decimal("1000.00"), Decimal("0.00")),
            ("1141", Decimal("110.00"), Decimal("0.00")),
            ("2111", Decimal("0.00"), Decimal("1110.00")),
        ]

    def test_foreign_currency(
        self, ledger, purchasing_service, enable_auto_journal, inventory_selector, journal_selector, test_actor_id
    ):
        enable_auto_journal("auto_journal_purchase")
        line = _line("2", "10")
        order = _order(line, currency="USD", rate="15000")

        result = purchasing_service.receive_goods(order, test_actor_id)

        assert inventory_selector.stock(line.product_id).average_cost == Decimal("150000.00")
        info = journal_selector.get(result.journal_entry_id)
        assert info.currency == "USD"
        assert info.exchange_rate == Decimal("15000")
        assert [l.debit_amount_base for l in info.lines] == [Decimal("300000.00"), Decimal("0.00")]
        assert [l.credit_amount_base for l in info.lines] == [Decimal("0.00"), Decimal("300000.00")]

    def test_capitalised_tax_shared_by_subtotal(
        self, ledger, purchasing_service, inventory_selector, test_actor_id
    ):
        large, small = _line("10", "100"), _line("4", "50")
        purchasing_service.receive_goods(_order(large, small, tax="120"), test_actor_id)

        assert inventory_selector.stock(large.product_id).average_cost == Decimal("110.00")
        assert inventory_selector.stock(small.product_id).average_cost == Decimal("55.00")

    def test_creditable_tax_not_in_stock_cost(
        self, ledger, purchasing_service, enable_auto_journal, inventory_selector, test_actor_id
    ):
        enable_auto_journal("tax_ppn_enabled")
        line = _line("10", "100")
        purchasing_service.receive_goods(_order(line, tax="110"), test_actor_id)

        assert inventory_selector.stock(line.product_id).average_cost == Decimal("100.00")

    def test_repeated_receipt_records_stock_once(
        self, ledger, purchasing_service, enable_auto_journal, inventory_selector, journal_selector, test_actor_id
    ):
        enable_auto_journal("auto_journal_purchase")
        line = _line("10", "100")
        order = _order(line)

        first = purchasing_service.receive_goods(order, test_actor_id)
        second = purchasing_service.receive_goods(order, test_actor_id)

        assert second.movement_ids == first.movement_ids
        assert second.journal_entry_id == first.journal_entry_id
        assert second.order.status == PurchaseOrderStatus.RECEIVED
        assert inventory_selector.stock(line.product_id).quantity_on_hand == Decimal("10.000")
        reference = DocumentRef(DocumentType.PURCHASE_RECEIVING, order.id)
        assert len(journal_selector.by_reference(reference)) == 1
