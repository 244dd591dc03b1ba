"""
Tests for time-range resolution

Validates calendar windows, the fallback to the ambient filter and rendering.
"""

from datetime import datetime, timedelta, timezone

import pytest

from chatlab.tools.models import TimeFilter, ToolContext
from chatlab.tools.time_range import (
    ALL_TIME,
    format_time_range,
    format_timestamp,
    month_window,
    resolve_time_filter,
)

UTC = timezone.utc


def _ts(*args, tz=UTC) -> int:
    return int(datetime(*args, tzinfo=tz).timestamp())


class TestMonthWindow:
    """Test calendar window construction"""

    def test_leap_year_february(self):
        window = month_window(2024, 2, UTC)

        assert window.start_ts == _ts(2024, 2, 1)
        assert window.end_ts == _ts(2024, 2, 29, 23, 59, 59)

    def test_common_year_february(self):
        window = month_window(2023, 2, UTC)

        assert window.start_ts == _ts(2023, 2, 1)
        assert window.end_ts == _ts(2023, 2, 28, 23, 59, 59)

    def test_whole_year(self):
        window = month_window(2024, tz=UTC)

        assert window.start_ts == _ts(2024, 1, 1)
        assert window.end_ts == _ts(2024, 12, 31, 23, 59, 59)

    @pytest.mark.parametrize("month,last_day", [(1, 31), (4, 30), (12, 31)])
    def test_month_lengths(self, month, last_day):
        window = month_window(2025, month, UTC)

        assert window.end_ts == _ts(2025, month, last_day, 23, 59, 59)

    def test_window_follows_timezone(self):
        shanghai = timezone(timedelta(hours=8))
        window = month_window(2024, 3, shanghai)

        assert window.start_ts == _ts(2024, 3, 1, tz=shanghai)
        assert window.start_ts == _ts(2024, 2, 29, 16, 0)


class TestResolveTimeFilter:
    """Test per-call override vs ambient filter"""

    def setup_method(self):
        self.ambient = TimeFilter(start_ts=100, end_ts=200)
        self.context = ToolContext(
            session_id="s", store=None, time_filter=self.ambient, tz=UTC
        )

    def test_no_year_uses_ambient_filter(self):
        assert resolve_time_filter(None, None, self.context) is self.ambient

    def test_month_without_year_is_ignored(self):
        assert resolve_time_filter(None, 5, self.context) is self.ambient

    def test_year_overrides_ambient_filter(self):
        assert resolve_time_filter(2024, None, self.context) == month_window(2024, tz=UTC)

    def test_year_and_month(self):
        assert resolve_time_filter(2024, 2, self.context) == month_window(2024, 2, UTC)

    def test_no_ambient_filter_means_all_time(self):
        context = ToolContext(session_id="s", store=None)
        assert resolve_time_filter(None, None, context) is None


class TestFormatting:
    """Test rendering windows for the model"""

    def test_all_time(self):
        assert format_time_range(None) == ALL_TIME == "all time"

    def test_iso_dates(self):
        window = month_window(2024, 2, UTC)

        assert format_time_range(window, UTC) == {
            "start": "2024-02-01",
            "end": "2024-02-29",
        }

    def test_timestamp(self):
        assert format_timestamp(_ts(2024, 3, 2, 21, 30), UTC) == "2024-03-02 21:30:00"

    def test_inverted_filter_rejected(self):
        with pytest.raises(ValueError):
            TimeFilter(start_ts=10, end_ts=5)

    def test_contains_is_inclusive(self):
        window = TimeFilter(start_ts=10, end_ts=20)

        assert window.contains(10)
        assert window.contains(20)
        assert not window.contains(21)
