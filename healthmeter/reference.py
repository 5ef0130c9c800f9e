"""Projection of prior-period monthly totals onto the days and weeks of a window."""

from __future__ import annotations

from datetime import date
from typing import Iterable

import numpy as np
import pandas as pd

from healthmeter.calendar_utils import hours_for_dates, to_date, week_end, week_start, window_dates
from healthmeter.distributor import share_cents_for_month
from healthmeter.models import OpenHoursTemplate, ReferenceMonth
from healthmeter.money import cents_to_dollars, to_cents


def reference_map(reference_months: Iterable[ReferenceMonth]) -> dict[tuple[int, int], int]:
    """(year, month) -> reference cents. A later duplicate replaces an earlier one."""
    return {(int(r.year), int(r.month)): to_cents(r.reference_net_sales_ex_tax) for r in reference_months}


def resolve_reference_month(
    ref_map: dict[tuple[int, int], int], first_year: int | None, year: int, month: int
) -> tuple[int, int] | None:
    """Pick the reference record used to estimate (year, month).

    The first year of records is its own baseline. Later years use the prior
    year's month, falling back to the same year's month when the prior is missing.
    """
    if first_year is None:
        return None
    if year <= first_year:
        return (year, month) if (year, month) in ref_map else None
    if (year - 1, month) in ref_map:
        return (year - 1, month)
    if (year, month) in ref_map:
        return (year, month)
    return None


def _daily_reference(
    reference_months: Iterable[ReferenceMonth], template: OpenHoursTemplate, start: date, end: date
) -> tuple[pd.DatetimeIndex, np.ndarray, np.ndarray, list[str | None]]:
    dates = window_dates(start, end)
    ref_map = reference_map(reference_months)
    first_year = min(y for y, _ in ref_map) if ref_map else None

    cents = np.zeros(len(dates), dtype=np.int64)
    has_ref = np.zeros(len(dates), dtype=bool)
    sources: list[str | None] = [None] * len(dates)

    periods = dates.to_period("M")
    for period in periods.unique():
        source = resolve_reference_month(ref_map, first_year, period.year, period.month)
        if source is None:
            continue
        # Shares are weighted on the estimated year's calendar, not the reference year's.
        month_cents = share_cents_for_month(ref_map[source], template, period.year, period.month)
        idx = np.flatnonzero(periods == period)
        cents[idx] = month_cents[dates[idx].day.to_numpy() - 1]
        has_ref[idx] = True
        label = f"{source[0]:04d}-{source[1]:02d}"
        for i in idx:
            sources[i] = label
    return dates, cents, has_ref, sources


def daily_reference_cents(
    reference_months: Iterable[ReferenceMonth], template: OpenHoursTemplate, start, end
) -> tuple[np.ndarray, np.ndarray]:
    """Reference sales cents per day of [start, end] and whether each day had a reference month."""
    _, cents, has_ref, _ = _daily_reference(reference_months, template, to_date(start), to_date(end))
    return cents, has_ref


def daily_reference_sales(
    reference_months: Iterable[ReferenceMonth], template: OpenHoursTemplate, start, end
) -> pd.DataFrame:
    dates, cents, has_ref, sources = _daily_reference(reference_months, template, to_date(start), to_date(end))
    return pd.DataFrame(
        {
            "Date": dates,
            "Hours": hours_for_dates(dates, template),
            "Reference Month": sources,
            "Reference Sales": cents_to_dollars(cents),
            "Has Reference": has_ref,
        }
    )


def weekly_reference_estimates(
    reference_months: Iterable[ReferenceMonth], template: OpenHoursTemplate, start, end
) -> pd.DataFrame:
    """One row per Monday-start calendar week touching [start, end].

    Values sum only the days inside the window. A week is flagged as an estimate
    only when none of its days had reference data.
    """
    dates, cents, has_ref, _ = _daily_reference(reference_months, template, to_date(start), to_date(end))
    frame = pd.DataFrame({"Week Start": [week_start(d) for d in dates], "Cents": cents, "Has": has_ref})
    grouped = frame.groupby("Week Start", sort=True).agg(Cents=("Cents", "sum"), Has=("Has", "any")).reset_index()

    return pd.DataFrame(
        {
            "Week Start": grouped["Week Start"],
            "Week End": [week_end(d) for d in grouped["Week Start"]],
            "Value": cents_to_dollars(grouped["Cents"].to_numpy()),
            "Is Estimate": ~grouped["Has"].to_numpy(dtype=bool),
            "Source": np.where(grouped["Has"].to_numpy(dtype=bool), "LY_EST", "MISSING"),
        }
    )


def best_worst_months(reference_months: Iterable[ReferenceMonth]) -> dict | None:
    """Highest and lowest reference months as {"best": ..., "worst": ...}."""
    ref_map = reference_map(reference_months)
    if not ref_map:
        return None
    ordered = sorted(ref_map.items(), key=lambda item: (item[1], item[0]))
    (worst_key, worst_cents), (best_key, best_cents) = ordered[0], ordered[-1]
    return {
        "best": {"year": best_key[0], "month": best_key[1], "value": best_cents / 100.0},
        "worst": {"year": worst_key[0], "month": worst_key[1], "value": worst_cents / 100.0},
    }
