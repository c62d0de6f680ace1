"""
Unit tests for FIFO layer reconstruction and issue pricing.

Verifies:
- Units beyond on-hand are consumed oldest layer first
- Issues are priced layer by layer
- Uncovered units are reported as shortfall at zero cost
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledger_kernel.domain import fifo
from ledger_kernel.domain.dtos import FifoBatch


def _batch(qty: str, cost: str | None, day: int) -> FifoBatch:
    return FifoBatch(uuid4(), date(2026, 1, day), Decimal(qty), Decimal(cost) if cost else None)


class TestRemainingLayers:
    """Tests for remaining_layers()."""

    def test_nothing_consumed(self):
        batches = [_batch("10", "5", 1), _batch("5", "6", 2)]
        remaining = fifo.remaining_layers(batches, Decimal("15"))
        assert [b.quantity for b in remaining] == [Decimal("10"), Decimal("5")]

    def test_oldest_consumed_first(self):
        batches = [_batch("10", "5", 1), _batch("5", "6", 2)]
        remaining = fifo.remaining_layers(batches, Decimal("8"))
        assert [b.quantity for b in remaining] == [Decimal("3.000"), Decimal("5")]
        assert remaining[0].movement_id == batches[0].movement_id

    def test_whole_first_layer_consumed(self):
        batches = [_batch("10", "5", 1), _batch("5", "6", 2)]
        remaining = fifo.remaining_layers(batches, Decimal("5"))
        assert len(remaining) == 1
        assert remaining[0].movement_id == batches[1].movement_id

    def test_on_hand_above_layers_keeps_all(self):
        """Adjustments can push on-hand above the layered quantity."""
        batches = [_batch("10", "5", 1)]
        remaining = fifo.remaining_layers(batches, Decimal("12"))
        assert remaining[0].quantity == Decimal("10")


class TestPriceIssue:
    """Tests for price_issue()."""

    def test_issue_spans_layers(self):
        product_id = uuid4()
        batches = [_batch("10", "5.00", 1), _batch("10", "6.00", 2)]
        result = fifo.price_issue(product_id, batches, Decimal("20"), Decimal("12"))

        assert result.product_id == product_id
        assert [use.quantity for use in result.layers] == [Decimal("10"), Decimal("2.000")]
        assert result.total_cost == Decimal("62.00")
        assert result.shortfall == Decimal("0.000")
        assert result.unit_cost == Decimal("5.17")

    def test_shortfall_when_layers_run_out(self):
        batches = [_batch("3", "4.00", 1)]
        result = fifo.price_issue(uuid4(), batches, Decimal("3"), Decimal("5"))

        assert result.total_cost == Decimal("12.00")
        assert result.shortfall == Decimal("2.000")
        assert result.unit_cost == Decimal("4.00")

    def test_layer_without_cost_priced_at_zero(self):
        batches = [_batch("5", None, 1)]
        result = fifo.price_issue(uuid4(), batches, Decimal("5"), Decimal("2"))
        assert result.total_cost == Decimal("0.00")

    def test_no_layers(self):
        result = fifo.price_issue(uuid4(), [], Decimal("0"), Decimal("1"))
        assert result.layers == ()
        assert result.unit_cost is None
