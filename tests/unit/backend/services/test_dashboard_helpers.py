"""Unit tests for dashboard period parsing and month bucketing."""

from datetime import datetime

import pytest

from portal.backend.core.exceptions import ValidationError
from portal.backend.services.dashboard import month_keys, parse_period


class TestParsePeriod:
    def test_default_is_thirty_days(self):
        assert parse_period(None) == 30
        assert parse_period("") == 30

    @pytest.mark.parametrize(("period", "days"), [("7d", 7), ("90d", 90), (" 365d ", 365)])
    def test_days(self, period, days):
        assert parse_period(period) == days

    @pytest.mark.parametrize("period", ["0d", "30", "d", "1w", "-5d", "thirty"])
    def test_invalid(self, period):
        with pytest.raises(ValidationError):
            parse_period(period)


class TestMonthKeys:
    def test_oldest_first_ending_now(self):
        assert month_keys(datetime(2026, 3, 31, 15, 0), 3) == ["2026-01", "2026-02", "2026-03"]

    def test_crosses_year(self):
        assert month_keys(datetime(2026, 2, 10), 4) == ["2025-11", "2025-12", "2026-01", "2026-02"]

    def test_single_month(self):
        assert month_keys(datetime(2026, 7, 1), 1) == ["2026-07"]
