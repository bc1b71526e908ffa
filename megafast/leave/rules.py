"""Pure leave rules: annual entitlement, business-day counting, ledger keys.

Nothing in here touches storage. Holiday calendars and entry dates are
always passed in by the caller.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Union

from megafast.common.constants import (
    MAX_ANNUAL_ALLOCATION_DAYS,
    MAX_MONTHLY_ACCRUAL_DAYS,
    SENIORITY_BONUS_PERIOD_YEARS,
    WEEKEND_DAYS,
)

DateLike = Union[date, datetime]


def as_calendar_day(value: DateLike) -> date:
    """Drop the time of day, if any."""
    if isinstance(value, datetime):
        return value.date()
    return value


def balance_id(employee_id: str, category_id: str, year: int) -> str:
    """Deterministic ledger key: one balance row per (employee, category, year)."""
    return f"{employee_id}_{category_id}_{year}"


# ─────────────────────────────────────────────────────────────────────
# Allocation
# ─────────────────────────────────────────────────────────────────────


def months_worked_in_year(entry_date: DateLike, year: int) -> int:
    """Inclusive count of calendar months worked in *year*, clamped to 0..12.

    A partially worked month counts as a full one.
    """
    entry = as_calendar_day(entry_date)
    start = max(entry, date(year, 1, 1))
    end = date(year, 12, 31)
    months = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return max(0, min(months, 12))


def years_of_service(entry_date: DateLike, year: int) -> int:
    """Full years between *entry_date* and Dec 31 of *year*."""
    entry = as_calendar_day(entry_date)
    end = date(year, 12, 31)
    years = end.year - entry.year
    if (end.month, end.day) < (entry.month, entry.day):
        years -= 1
    return years


def calculate_annual_allocation(entry_date: DateLike, year: int) -> int:
    """Days of leave an employee is entitled to for *year*.

    One day per month worked (at most 12), plus one day per full five
    years of seniority, capped at 18. Employees who join after the year
    ends get nothing.
    """
    entry = as_calendar_day(entry_date)
    if entry > date(year, 12, 31):
        return 0

    base_days = min(months_worked_in_year(entry, year), MAX_MONTHLY_ACCRUAL_DAYS)
    bonus = years_of_service(entry, year) // SENIORITY_BONUS_PERIOD_YEARS
    return min(base_days + bonus, MAX_ANNUAL_ALLOCATION_DAYS)


# ─────────────────────────────────────────────────────────────────────
# Business days
# ─────────────────────────────────────────────────────────────────────


def business_days(
    start: DateLike,
    end: DateLike,
    holidays: Iterable[DateLike] = (),
) -> int:
    """Count working days in ``[start, end]``.

    Weekends and holidays are skipped. The range is walked one day at a
    time; holidays falling on a weekend must not be subtracted twice.
    """
    first = as_calendar_day(start)
    last = as_calendar_day(end)
    if last < first:
        return 0

    closed = {as_calendar_day(h) for h in holidays}
    days = 0
    current = first
    while current <= last:
        if current.weekday() not in WEEKEND_DAYS and current not in closed:
            days += 1
        current += timedelta(days=1)
    return days
