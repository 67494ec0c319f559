"""Unit tests for calendar-month boundaries."""

from datetime import datetime, timezone

import pytest
from libs.common.datetime_utils import calendar_month_bounds, ensure_utc, month_key


@pytest.mark.unit
def test_month_bounds_in_utc():
    start, end = calendar_month_bounds(
        datetime(2026, 12, 15, 8, 30, tzinfo=timezone.utc), "UTC"
    )
    assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
    assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


@pytest.mark.unit
def test_month_bounds_follow_the_policy_timezone():
    # 03:00 UTC on March 1st is still February 28th in New York
    moment = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)

    start, end = calendar_month_bounds(moment, "America/New_York")

    assert start == datetime(2026, 2, 1, 5, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc)
    assert month_key(moment, "America/New_York") == "2026-02"
    assert month_key(moment, "UTC") == "2026-03"


@pytest.mark.unit
def test_ensure_utc_handles_naive_values():
    naive = datetime(2026, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
