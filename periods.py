from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class Window:
    """Half-open interval ``[start, end)`` of aware datetimes."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= to_utc(moment) < self.end


def to_utc(moment: datetime) -> datetime:
    # Naive datetimes come from storage and are UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_today(tz: ZoneInfo, now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return to_utc(now).astimezone(tz).date()


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def day_window(day: date, tz: ZoneInfo) -> Window:
    # Always 24h, even when a DST shift makes the local day 23h or 25h.
    start = local_midnight(day, tz)
    return Window(start, start + timedelta(hours=24))


def week_window(day: date, tz: ZoneInfo) -> Window:
    # Weeks start on Sunday; isoweekday() is 7 for Sunday.
    first = day - timedelta(days=day.isoweekday() % 7)
    return Window(
        local_midnight(first, tz), local_midnight(first + timedelta(days=7), tz)
    )


def month_window(day: date, tz: ZoneInfo) -> Window:
    first = day.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return Window(local_midnight(first, tz), local_midnight(next_month, tz))


def _parse_local(value: str, tz: ZoneInfo) -> datetime:
    value = value.strip()
    if not value:
        raise ValueError("Empty date")
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), time.min, tzinfo=tz)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def parse_reference_date(
    value: Optional[str], tz: ZoneInfo, now: Optional[datetime] = None
) -> date:
    """Calendar date in ``tz`` that a user-supplied reference points at.

    Missing or malformed input falls back to today in ``tz``.
    """
    if value:
        try:
            return _parse_local(value, tz).date()
        except (ValueError, OverflowError):
            pass
    return local_today(tz, now)


def parse_expense_date(
    value: Optional[str], tz: ZoneInfo, now: Optional[datetime] = None
) -> datetime:
    """UTC instant for an expense date; raises ValueError on malformed input."""
    if not value:
        return to_utc(now or datetime.now(timezone.utc))
    try:
        return _parse_local(value, tz).astimezone(timezone.utc)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid date: {value}") from exc
