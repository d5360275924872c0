from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from habitlog.schemas import HabitEntry

WEEK = "week"
MONTH = "month"


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(value: datetime) -> datetime:
    return start_of_day(value) - timedelta(days=value.weekday())


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = value.day
    while True:
        try:
            return value.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1


def one_year_before(value: datetime) -> datetime:
    return add_months(value, -12)


def count_since(entries: Iterable[HabitEntry], window_start: datetime) -> int:
    return sum(1 for entry in entries if entry.date >= window_start)


def events_this_week(entries: Iterable[HabitEntry], now: Optional[datetime] = None) -> int:
    return count_since(entries, start_of_week(now or datetime.now()))


def events_this_month(entries: Iterable[HabitEntry], now: Optional[datetime] = None) -> int:
    return count_since(entries, start_of_month(now or datetime.now()))


def trailing_days(entries: Iterable[HabitEntry], days: int, today: Optional[date] = None) -> int:
    if days <= 0:
        return 0
    today = today or date.today()
    first_day = today - timedelta(days=days - 1)
    return sum(1 for entry in entries if first_day <= entry.date.date() <= today)


def bucketed_counts(
    entries: Iterable[HabitEntry],
    unit: str = WEEK,
    span_start: Optional[datetime] = None,
    span_end: Optional[datetime] = None,
) -> List[Tuple[datetime, int]]:
    """Entry counts per calendar week or month, oldest first.

    The span defaults to one year ending now. Both series hold every calendar
    week or month the span touches, so the first bucket starts on or before
    ``span_start`` and the last one contains ``span_end``.
    """
    span_end = span_end or datetime.now()
    span_start = span_start or one_year_before(span_end)
    if span_end < span_start:
        return []

    if unit == WEEK:
        first = start_of_week(span_start)
        total = (start_of_week(span_end) - first).days // 7 + 1
        starts = [first + timedelta(days=7 * offset) for offset in range(total)]
    elif unit == MONTH:
        total = (span_end.year - span_start.year) * 12 + span_end.month - span_start.month + 1
        last = start_of_month(span_end)
        starts = [add_months(last, -offset) for offset in range(total - 1, -1, -1)]
    else:
        raise ValueError(f"Unsupported bucket unit: {unit}")

    dates = [entry.date for entry in entries]
    result = []
    for bucket_start in starts:
        bucket_end = bucket_start + timedelta(days=7) if unit == WEEK else add_months(bucket_start, 1)
        result.append((bucket_start, sum(1 for value in dates if bucket_start <= value < bucket_end)))
    return result


def weekly_events_over_year(entries: Iterable[HabitEntry], now: Optional[datetime] = None) -> List[Tuple[datetime, int]]:
    return bucketed_counts(entries, WEEK, span_end=now or datetime.now())


def entries_frame(entries: Iterable[HabitEntry]) -> pd.DataFrame:
    rows = [
        {
            "id": entry.id,
            "date": entry.date,
            "category": entry.category.name,
            "notes": entry.notes,
        }
        for entry in entries
    ]
    return pd.DataFrame(rows, columns=["id", "date", "category", "notes"])


def category_breakdown(
    entries: Iterable[HabitEntry],
    range_start: datetime,
    range_end: datetime,
) -> List[Tuple[str, int]]:
    data = entries_frame(entries)
    if data.empty:
        return []
    in_range = data[(data["date"] >= range_start) & (data["date"] < range_end)]
    if in_range.empty:
        return []
    counts = in_range["category"].str.strip().str.upper().value_counts().sort_index()
    return [(str(label), int(count)) for label, count in counts.items()]


def summary(entries: Iterable[HabitEntry], now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    items = list(entries)
    return {
        "events_this_week": events_this_week(items, now),
        "events_this_month": events_this_month(items, now),
        "weekly_events": weekly_events_over_year(items, now),
    }
