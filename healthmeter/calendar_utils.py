"""Calendar and open-hours utilities."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd

from healthmeter.models import WEEKDAY_KEYS, OpenHoursTemplate


def to_date(value) -> date:
    """Coerce a date, datetime, Timestamp or ISO string into a plain date."""
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date) and not hasattr(value, "hour"):
        return value
    return pd.Timestamp(value).date()


def month_dates(year: int, month: int) -> pd.DatetimeIndex:
    if not (1 <= int(month) <= 12):
        raise ValueError("month must be in [1,12].")
    start = pd.Timestamp(int(year), int(month), 1)
    return pd.date_range(start=start, end=start + pd.offsets.MonthEnd(1), freq="D")


def days_in_month(year: int, month: int) -> int:
    return int(pd.Timestamp(int(year), int(month), 1).days_in_month)


def window_dates(start: date, end: date) -> pd.DatetimeIndex:
    if end < start:
        raise ValueError("window end must not be before window start.")
    return pd.date_range(start=pd.Timestamp(start), end=pd.Timestamp(end), freq="D")


def weekday_key(day) -> str:
    return WEEKDAY_KEYS[pd.Timestamp(day).weekday()]


def hours_for_date(day, template: OpenHoursTemplate) -> float:
    # Weekday comes from the calendar date being weighted, never from a reference year.
    return template.hours_for_weekday(pd.Timestamp(day).weekday())


def hours_for_dates(dates: pd.DatetimeIndex, template: OpenHoursTemplate) -> np.ndarray:
    lookup = np.array([template.hours_for_weekday(i) for i in range(7)], dtype=float)
    return lookup[np.asarray(dates.weekday)]


def is_open_day(day, template: OpenHoursTemplate) -> bool:
    return hours_for_date(day, template) > 0


def total_open_hours_in_month(template: OpenHoursTemplate, year: int, month: int) -> float:
    return float(hours_for_dates(month_dates(year, month), template).sum())


def week_start(day) -> date:
    """Monday of the calendar week containing day."""
    d = to_date(day)
    return d - timedelta(days=d.weekday())


def week_end(day) -> date:
    """Sunday of the calendar week containing day."""
    return week_start(day) + timedelta(days=6)


def months_between(start, end) -> int:
    """Whole calendar months from start's month to end's month."""
    s = pd.Timestamp(start)
    e = pd.Timestamp(end)
    return (e.year - s.year) * 12 + (e.month - s.month)
