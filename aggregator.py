"""Dashboard statistics over one user's in-memory expense snapshot.

Every boundary (today, this month, the selected day/week/month) is computed in
the user's timezone, never in server-local time. The functions here are pure:
identical inputs give identical output and the input lists are not mutated.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from models import DEFAULT_CATEGORY_COLOR
from periods import (
    Window,
    day_window,
    local_today,
    month_window,
    parse_reference_date,
    to_utc,
    week_window,
)
from storage import CategoryRecord, ExpenseRecord


PERIODS = ("daily", "weekly", "monthly")
DEFAULT_PERIOD = "monthly"
UNCATEGORIZED_ID = "uncategorized"
UNCATEGORIZED_NAME = "Uncategorized"
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

_ZERO = Decimal("0")
_ONE_DECIMAL = Decimal("0.1")


def _money(value: Decimal) -> float:
    return float(value)


def _sum(expenses: Iterable[ExpenseRecord]) -> Decimal:
    return sum((e.amount for e in expenses), _ZERO)


def percentage(amount: Decimal, total: Decimal) -> str:
    if total <= 0:
        return "0"
    pct = (amount * 100 / total).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    return f"{pct:.1f}"


def serialize_expense(
    expense: ExpenseRecord, categories: dict[int, CategoryRecord]
) -> dict[str, object]:
    category = (
        categories.get(expense.category_id)
        if expense.category_id is not None
        else None
    )
    return {
        "id": expense.id,
        "userId": expense.user_id,
        "amount": _money(expense.amount),
        "description": expense.description,
        "categoryId": expense.category_id,
        "category": (
            {"id": category.id, "name": category.name, "color": category.color}
            if category
            else None
        ),
        "date": expense.date.isoformat(),
        "createdAt": expense.created_at.isoformat(),
    }


def period_window(period: str, day: date, tz: ZoneInfo) -> Window:
    if period == "daily":
        return day_window(day, tz)
    if period == "weekly":
        return week_window(day, tz)
    return month_window(day, tz)


def category_stats(
    expenses: Sequence[ExpenseRecord], categories: dict[int, CategoryRecord]
) -> list[dict[str, object]]:
    groups: dict[Union[int, str], dict[str, object]] = {}
    for expense in expenses:
        key: Union[int, str] = (
            expense.category_id
            if expense.category_id is not None
            else UNCATEGORIZED_ID
        )
        group = groups.get(key)
        if group is None:
            category = categories.get(key) if isinstance(key, int) else None
            group = {
                "categoryId": key,
                "categoryName": category.name if category else UNCATEGORIZED_NAME,
                "categoryColor": (
                    category.color
                    if category and category.color
                    else DEFAULT_CATEGORY_COLOR
                ),
                "totalAmount": _ZERO,
                "count": 0,
            }
            groups[key] = group
        group["totalAmount"] += expense.amount
        group["count"] += 1

    period_total = _sum(expenses)
    ordered = sorted(groups.values(), key=lambda g: g["totalAmount"], reverse=True)
    return [
        {
            **group,
            "totalAmount": _money(group["totalAmount"]),
            "percentage": percentage(group["totalAmount"], period_total),
        }
        for group in ordered
    ]


def paginate(total_items: int, page: int, page_size: int) -> dict[str, object]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total_items / page_size),
        "totalItems": total_items,
        "hasNextPage": page * page_size < total_items,
        "hasPrevPage": page > 1,
    }


def aggregate(
    expenses: Sequence[ExpenseRecord],
    categories: Sequence[CategoryRecord],
    *,
    timezone_name: str,
    period: Optional[str] = DEFAULT_PERIOD,
    reference_date: Union[str, date, None] = None,
    now: Optional[datetime] = None,
    category_id: Optional[int] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> dict[str, object]:
    tz = ZoneInfo(timezone_name)
    now = now or datetime.now(timezone.utc)
    period = period if period in PERIODS else DEFAULT_PERIOD
    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    today = local_today(tz, now)
    if isinstance(reference_date, date) and not isinstance(reference_date, datetime):
        selected = reference_date
    elif isinstance(reference_date, datetime):
        selected = to_utc(reference_date).astimezone(tz).date()
    else:
        selected = parse_reference_date(reference_date, tz, now)

    lookup = {c.id: c for c in categories}
    today_window = day_window(today, tz)
    this_month_window = month_window(today, tz)
    try:
        selected_window = period_window(period, selected, tz)
    except (ValueError, OverflowError):
        # Dates at the edge of the calendar have no representable window.
        selected_window = period_window(period, today, tz)

    daily = [e for e in expenses if today_window.contains(e.date)]
    monthly = [e for e in expenses if this_month_window.contains(e.date)]
    in_period = [e for e in expenses if selected_window.contains(e.date)]

    recent = sorted(expenses, key=lambda e: e.date, reverse=True)
    if category_id is not None:
        recent = [e for e in recent if e.category_id == category_id]
    offset = (page - 1) * page_size
    page_items = recent[offset : offset + page_size]

    return {
        "daily": {
            "total": _money(_sum(daily)),
            "expenses": [serialize_expense(e, lookup) for e in daily],
        },
        "monthly": {
            "total": _money(_sum(monthly)),
            "expenses": [serialize_expense(e, lookup) for e in monthly],
        },
        "recent": {
            "expenses": [serialize_expense(e, lookup) for e in page_items],
            "pagination": paginate(len(recent), page, page_size),
        },
        "categoryStats": category_stats(in_period, lookup),
        "period": period,
        "range": {
            "start": selected_window.start.isoformat(),
            "end": selected_window.end.isoformat(),
        },
    }
