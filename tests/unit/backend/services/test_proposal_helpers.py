"""Unit tests for proposal pricing helpers."""

from datetime import datetime, timedelta
from decimal import Decimal

from portal.backend.schemas.proposal import LineItem
from portal.backend.services.proposal import compute_total, elapsed_ms, serialize_line_items


class TestComputeTotal:
    def test_sums_quantity_times_price(self):
        items = [
            {"description": "Design", "quantity": 2, "unit_price": 1500},
            {"description": "Hosting", "quantity": 12, "unit_price": "29.99"},
        ]
        assert compute_total(items) == Decimal("3359.88")

    def test_accepts_line_item_models(self):
        items = [LineItem(description="Audit", quantity=1, unit_price=Decimal("499.50"))]
        assert compute_total(items) == Decimal("499.50")

    def test_empty(self):
        assert compute_total([]) == Decimal("0.00")

    def test_missing_values_count_as_zero(self):
        assert compute_total([{"description": "TBD", "quantity": None, "unit_price": 10}]) == Decimal("0.00")


class TestSerializeLineItems:
    def test_json_safe(self):
        items = [LineItem(description="SEO", quantity=3, unit_price=Decimal("250.00"))]
        assert serialize_line_items(items) == [
            {"description": "SEO", "quantity": 3.0, "unit_price": 250.0},
        ]


class TestElapsedMs:
    def test_difference_in_ms(self):
        start = datetime(2026, 1, 1, 12, 0, 0)
        assert elapsed_ms(start, start + timedelta(seconds=90, milliseconds=250)) == 90250

    def test_none_when_missing(self):
        assert elapsed_ms(None, datetime(2026, 1, 1)) is None
        assert elapsed_ms(datetime(2026, 1, 1), None) is None
