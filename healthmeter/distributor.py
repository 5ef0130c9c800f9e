"""Hours-weighted distribution of a monthly target across calendar days."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

import numpy as np
import pandas as pd

import healthmeter.runtime_logging as runtime_logging
from healthmeter.calendar_utils import days_in_month, hours_for_dates, is_open_day, month_dates, to_date
from healthmeter.models import WEEKDAY_KEYS, OpenHoursTemplate
from healthmeter.money import allocate_cents, cents_to_dollars, from_cents, to_cents


@dataclass(frozen=True)
class PitBoard:
    """Daily amount needed from here to reach a month goal."""

    daily_needed: float | None
    remaining: float
    remaining_open_days: int
    no_open_days_left: bool


def share_cents_for_month(target_cents: int, template: OpenHoursTemplate, year: int, month: int) -> np.ndarray:
    """Per-day cents for every day of the month; sums to target_cents unless the month has no open hours."""
    dates = month_dates(year, month)
    hours = hours_for_dates(dates, template)
    if hours.sum() <= 0 and target_cents != 0:
        runtime_logging.append_runtime_event(
            level="INFO",
            event="zero_hours_month",
            message="Month has no open hours; every daily share is zero.",
            context={"year": int(year), "month": int(month), "target_cents": int(target_cents)},
        )
    return allocate_cents(target_cents, hours)


def daily_shares(target: float, template: OpenHoursTemplate, year: int, month: int) -> pd.DataFrame:
    """Share table for one month: share(day) = target * hours(day) / total month hours."""
    dates = month_dates(year, month)
    hours = hours_for_dates(dates, template)
    cents = share_cents_for_month(to_cents(target), template, year, month)
    return pd.DataFrame(
        {
            "Date": dates,
            "Weekday": [WEEKDAY_KEYS[d] for d in dates.weekday],
            "Hours": hours,
            "Share": cents_to_dollars(cents),
        }
    )


def share_for_day(day, target: float, template: OpenHoursTemplate) -> float:
    d = to_date(day)
    cents = share_cents_for_month(to_cents(target), template, d.year, d.month)
    return from_cents(cents[d.day - 1])


def mtd_target_to_date(as_of, month_goal: float, template: OpenHoursTemplate) -> float:
    """Hours-weighted pace target: shares from the 1st through as_of, inclusive."""
    d = to_date(as_of)
    if not math.isfinite(month_goal):
        open_so_far = any(is_open_day(d - timedelta(days=i), template) for i in range(d.day))
        return float(month_goal) if open_so_far else 0.0
    cents = share_cents_for_month(to_cents(month_goal), template, d.year, d.month)
    return from_cents(int(cents[: d.day].sum()))


def remaining_open_days(as_of, template: OpenHoursTemplate) -> int:
    """Open days strictly after as_of in the same month."""
    d = to_date(as_of)
    last = days_in_month(d.year, d.month)
    return sum(1 for day in range(d.day + 1, last + 1) if is_open_day(date(d.year, d.month, day), template))


def daily_needed_from_here(as_of, achieved: float, goal: float, template: OpenHoursTemplate) -> PitBoard:
    """(goal - achieved) over the open days left in the month.

    With no open days left the remaining amount is returned with daily_needed=None
    and no_open_days_left=True instead of dividing.
    """
    open_days = remaining_open_days(as_of, template)
    if not math.isfinite(goal):
        return PitBoard(daily_needed=math.inf, remaining=math.inf, remaining_open_days=open_days, no_open_days_left=open_days == 0)

    remaining_cents = max(0, to_cents(goal) - to_cents(achieved))
    remaining = from_cents(remaining_cents)
    if open_days == 0:
        return PitBoard(
            daily_needed=0.0 if remaining_cents == 0 else None,
            remaining=remaining,
            remaining_open_days=0,
            no_open_days_left=True,
        )
    return PitBoard(
        daily_needed=from_cents(to_cents(remaining / open_days)),
        remaining=remaining,
        remaining_open_days=open_days,
        no_open_days_left=False,
    )
