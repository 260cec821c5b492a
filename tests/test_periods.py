from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from periods import (
    day_window,
    local_today,
    month_window,
    parse_expense_date,
    parse_reference_date,
    to_utc,
    week_window,
)


UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")


def test_local_today_uses_user_timezone_not_utc() -> None:
    now = datetime(2024, 6, 15, 2, 0, tzinfo=timezone.utc)
    assert local_today(UTC, now) == date(2024, 6, 15)
    assert local_today(NEW_YORK, now) == date(2024, 6, 14)


def test_day_window_is_local_midnight_to_midnight() -> None:
    window = day_window(date(2024, 6, 14), NEW_YORK)
    assert window.start == datetime(2024, 6, 14, 4, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 6, 15, 4, 0, tzinfo=timezone.utc)
    assert window.contains(datetime(2024, 6, 14, 4, 0, tzinfo=timezone.utc))
    assert not window.contains(datetime(2024, 6, 15, 4, 0, tzinfo=timezone.utc))


def test_day_window_is_24_hours_across_dst_change() -> None:
    window = day_window(date(2024, 3, 10), NEW_YORK)
    assert window.start == datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
    assert window.end - window.start == timedelta(hours=24)
    assert window.contains(datetime(2024, 3, 11, 4, 30, tzinfo=timezone.utc))


def test_week_window_starts_on_sunday() -> None:
    wednesday = date(2024, 6, 12)
    window = week_window(wednesday, UTC)
    assert window.start == datetime(2024, 6, 9, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 6, 16, tzinfo=timezone.utc)


def test_week_window_for_a_sunday_starts_that_day() -> None:
    window = week_window(date(2024, 6, 9), UTC)
    assert window.start == datetime(2024, 6, 9, tzinfo=timezone.utc)


def test_month_window_rolls_over_december() -> None:
    window = month_window(date(2024, 12, 31), UTC)
    assert window.start == datetime(2024, 12, 1, tzinfo=timezone.utc)
    assert window.end == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_naive_datetimes_are_treated_as_utc() -> None:
    assert to_utc(datetime(2024, 1, 1, 12)) == datetime(
        2024, 1, 1, 12, tzinfo=timezone.utc
    )


def test_reference_date_only_string_is_taken_literally() -> None:
    assert parse_reference_date("2024-06-15", NEW_YORK) == date(2024, 6, 15)


def test_reference_datetime_is_converted_into_timezone() -> None:
    assert parse_reference_date("2024-06-15T02:00:00Z", NEW_YORK) == date(
        2024, 6, 14
    )


@pytest.mark.parametrize(
    "value",
    [None, "", "not-a-date", "2024-13-45", "9999-12-31T23:00:00-12:00"],
)
def test_unusable_reference_falls_back_to_today(value) -> None:
    now = datetime(2024, 3, 5, 15, 0, tzinfo=timezone.utc)
    assert parse_reference_date(value, UTC, now) == date(2024, 3, 5)


def test_expense_date_only_is_local_midnight() -> None:
    when = parse_expense_date("2024-06-01", NEW_YORK)
    assert when == datetime(2024, 6, 1, 4, 0, tzinfo=timezone.utc)


def test_expense_date_rejects_garbage() -> None:
    with pytest.raises(ValueError, match="Invalid date"):
        parse_expense_date("yesterday-ish", UTC)
