"""Unit tests for invoice numbering, tax and recurrence helpers."""

from datetime import datetime
from decimal import Decimal

import pytest

from portal.backend.core.exceptions import ValidationError
from portal.backend.services.invoice import (
    compute_tax,
    format_invoice_number,
    next_recurring_date,
)


class TestComputeTax:
    def test_zero_rate(self):
        assert compute_tax(Decimal("1500"), 0) == (Decimal("0.00"), Decimal("1500.00"))

    def test_rate_is_percentage(self):
        tax, total = compute_tax(Decimal("200.00"), Decimal("8.25"))
        assert tax == Decimal("16.50")
        assert total == Decimal("216.50")

    def test_tax_rounded_half_up(self):
        tax, total = compute_tax(Decimal("10.10"), 7.5)
        assert tax == Decimal("0.76")
        assert total == Decimal("10.86")


class TestFormatInvoiceNumber:
    def test_zero_padded(self):
        assert format_invoice_number("INV-", 1084, 5) == "INV-01084"

    def test_wider_sequence_not_truncated(self):
        assert format_invoice_number("INV-", 123456, 5) == "INV-123456"


class TestNextRecurringDate:
    @pytest.mark.parametrize(
        ("interval", "expected"),
        [
            ("weekly", datetime(2026, 1, 22)),
            ("bi-weekly", datetime(2026, 1, 29)),
            ("monthly", datetime(2026, 2, 15)),
            ("quarterly", datetime(2026, 4, 15)),
            ("semi-annual", datetime(2026, 7, 15)),
            ("annual", datetime(2027, 1, 15)),
        ],
    )
    def test_intervals(self, interval, expected):
        assert next_recurring_date(datetime(2026, 1, 15), interval) == expected

    def test_month_end_is_clamped(self):
        """An invoice on Jan 31 recurs on the last day of February."""
        assert next_recurring_date(datetime(2026, 1, 31), "monthly") == datetime(2026, 2, 28)

    def test_day_of_month_override(self):
        assert next_recurring_date(datetime(2026, 1, 15), "monthly", day_of_month=1) == datetime(2026, 2, 1)
        assert next_recurring_date(datetime(2026, 3, 15), "monthly", day_of_month=31) == datetime(2026, 4, 30)

    def test_day_of_month_ignored_for_weekly(self):
        assert next_recurring_date(datetime(2026, 1, 15), "weekly", day_of_month=1) == datetime(2026, 1, 22)

    def test_unknown_interval(self):
        with pytest.raises(ValidationError):
            next_recurring_date(datetime(2026, 1, 15), "fortnightly-ish")
