"""
Calendar helpers used by bills, batches and reports.

All functions work on ``datetime.date`` values; "today" is always taken
from ``django.utils.timezone.localdate`` so the active user time zone
applies.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional

from django.utils import timezone


def today() -> date:
    return timezone.localdate()


def beginning_of_month(value: date) -> date:
    return value.replace(day=1)


def end_of_month(value: date) -> date:
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def clamp_day(reference: date, day: int) -> date:
    """Return ``day`` of ``reference``'s month, clamped to the month's last day."""
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return reference.replace(day=min(day, last_day))


def next_month(value: date) -> date:
    first = beginning_of_month(value)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


def beginning_of_week(value: date) -> date:
    """Sunday-based start of week."""
    return value - timedelta(days=(value.weekday() + 1) % 7)


def end_of_week(value: date) -> date:
    return beginning_of_week(value) + timedelta(days=6)


def calendar_weeks(reference: date):
    """
    Sunday-to-Saturday weeks covering the month of ``reference``.

    Returns:
        list[list[date]]: weeks of exactly seven dates each
    """
    start = beginning_of_week(beginning_of_month(reference))
    end = end_of_week(end_of_month(reference))
    days = [start + timedelta(days=i) for i in range((end - start).days + 1)]
    return [days[i:i + 7] for i in range(0, len(days), 7)]


def parse_date(value) -> Optional[date]:
    """Parse an ISO date (or pass a date through); ``None`` when unparsable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def parse_month(value) -> Optional[date]:
    """Parse ``YYYY-MM`` into the first day of that month."""
    if isinstance(value, datetime):
        return beginning_of_month(value.date())
    if isinstance(value, date):
        return beginning_of_month(value)
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m").date()
    except (TypeError, ValueError):
        return None
