"""Period keys for daily missions, streaks and weekly leaderboards (all UTC)."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta, timezone


def utc_today(now: datetime | None = None) -> date:
    """Current UTC calendar date."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


def day_key(now: datetime | None = None) -> str:
    """Daily period key e.g. '2026-02-25'."""
    return utc_today(now).isoformat()


def get_monday(dt: datetime | date) -> date:
    """Get the Monday of the ISO week containing dt."""
    d = dt.astimezone(timezone.utc).date() if isinstance(dt, datetime) else dt
    return d - timedelta(days=d.weekday())


def week_key(now: datetime | None = None) -> str:
    """Weekly period key: the ISO date of the week's Monday e.g. '2026-02-23'."""
    if now is None:
        now = datetime.now(timezone.utc)
    return get_monday(now).isoformat()


def add_months(dt: datetime, months: int) -> datetime:
    """Shift ``dt`` by calendar months, clamping to the last day of a shorter month.

    Jan 31 + 1 month is Feb 28 (or 29), never Mar 3.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)
