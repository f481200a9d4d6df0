"""Unit tests for period arithmetic."""

from datetime import datetime

import pytest

from taxdesk.domain.models import (
    AccountingPeriod,
    CurrentPeriodStatus,
    PeriodKey,
    PeriodStatus,
)
from taxdesk.domain.periods import (
    current_period,
    label,
    latest_period_status,
    next_period,
    parse_period,
    period_range,
    previous_period,
    quarter_of,
    quarter_range,
    tax_deadline,
)


class TestPeriodRange:
    """Tests for period_range."""

    def test_first_and_last_instant(self) -> None:
        period = period_range(PeriodKey(2024, 6))
        assert period.start == datetime(2024, 6, 1, 0, 0, 0)
        assert period.end == datetime(2024, 6, 30, 23, 59, 59, 999000)

    def test_leap_february(self) -> None:
        assert period_range(PeriodKey(2024, 2)).end.day == 29
        assert period_range(PeriodKey(2023, 2)).end.day == 28

    def test_december(self) -> None:
        period = period_range(PeriodKey(2024, 12))
        assert period.end == datetime(2024, 12, 31, 23, 59, 59, 999000)


class TestNavigation:
    """Tests for next_period / previous_period."""

    def test_next_within_year(self) -> None:
        assert next_period(PeriodKey(2024, 5)) == PeriodKey(2024, 6)

    def test_next_wraps_december(self) -> None:
        assert next_period(PeriodKey(2024, 12)) == PeriodKey(2025, 1)

    def test_previous_wraps_january(self) -> None:
        assert previous_period(PeriodKey(2024, 1)) == PeriodKey(2023, 12)

    def test_round_trip(self) -> None:
        key = PeriodKey(2024, 12)
        assert previous_period(next_period(key)) == key


class TestLabel:
    """Tests for label."""

    def test_polish_default(self) -> None:
        assert label(PeriodKey(2024, 6)) == "czerwiec 2024"
        assert label(PeriodKey(2024, 10)) == "październik 2024"

    def test_english(self) -> None:
        assert label(PeriodKey(2024, 1), "en") == "January 2024"

    def test_unknown_locale(self) -> None:
        with pytest.raises(ValueError, match="locale"):
            label(PeriodKey(2024, 1), "de")


class TestQuarters:
    def test_quarter_of(self) -> None:
        assert [quarter_of(PeriodKey(2024, m)) for m in (1, 3, 4, 9, 10, 12)] == [
            1,
            1,
            2,
            3,
            4,
            4,
        ]

    def test_quarter_range(self) -> None:
        period = quarter_range(2024, 2)
        assert period.start == datetime(2024, 4, 1)
        assert period.end == datetime(2024, 6, 30, 23, 59, 59, 999000)

    def test_invalid_quarter(self) -> None:
        with pytest.raises(ValueError):
            quarter_range(2024, 5)


class TestMisc:
    def test_tax_deadline_is_20th_of_next_month(self) -> None:
        assert tax_deadline(PeriodKey(2024, 12)) == datetime(
            2025, 1, 20, 23, 59, 59, 999000
        )

    def test_current_period(self) -> None:
        assert current_period(datetime(2024, 6, 15, 8, 30)) == PeriodKey(2024, 6)

    def test_parse_period(self) -> None:
        assert parse_period("2024-06") == PeriodKey(2024, 6)
        assert parse_period(" 2024-12 ") == PeriodKey(2024, 12)

    @pytest.mark.parametrize("value", ["2024-6", "24-06", "2024/06", "2024-13", ""])
    def test_parse_period_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_period(value)


class TestLatestPeriodStatus:
    """Tests for latest_period_status."""

    def test_no_periods(self) -> None:
        assert latest_period_status([]) is CurrentPeriodStatus.NONE

    def test_any_unlocked_is_open(self) -> None:
        periods = [
            AccountingPeriod(2024, 5, PeriodStatus.LOCKED),
            AccountingPeriod(2024, 6, PeriodStatus.CLOSING),
        ]
        assert latest_period_status(periods) is CurrentPeriodStatus.OPEN

    def test_all_locked(self) -> None:
        periods = [AccountingPeriod(2024, 5, PeriodStatus.LOCKED)]
        assert latest_period_status(periods) is CurrentPeriodStatus.LOCKED
