"""Continuity series: estimated, actual and merged daily cash balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import numpy as np
import pandas as pd

from healthmeter.anchor import AnchorResult, daily_ledger, infer_anchor
from healthmeter.calendar_utils import to_date, week_end, week_start, window_dates
from healthmeter.models import LedgerRecords, Settings
from healthmeter.money import allocate_cents, apply_rate_cents, cents_to_dollars, dollars_to_cents_array, to_cents
from healthmeter.reference import daily_reference_cents
from healthmeter.resolution import resolve_nut

SOURCE_ESTIMATED = "ESTIMATED"
SOURCE_ACTUAL = "ACTUAL"
SOURCE_RECONCILED = "RECONCILED"

BALANCE_COLUMNS = ["Date", "Operating Flow", "Capital Flow", "Balance", "Is Estimate", "Source"]
WEEKLY_DELTA_COLUMNS = ["Week Start", "Week End", "Balance", "Delta", "Days", "Has Data"]


@dataclass(frozen=True)
class ContinuityResult:
    est_balance_series: pd.DataFrame
    actual_balance_series: pd.DataFrame
    merged_balance_series: pd.DataFrame
    weekly_deltas: pd.DataFrame
    anchor: AnchorResult
    stats: dict = field(default_factory=dict)


def daily_nut_cents(dates: pd.DatetimeIndex, records: LedgerRecords, settings: Settings) -> np.ndarray:
    """Fixed overhead apportioned evenly over the days of each month.

    A month with a constant NUT sums to that NUT exactly.
    """
    out = np.zeros(len(dates), dtype=np.int64)
    cache: dict[tuple[int, int, int], np.ndarray] = {}
    for i, ts in enumerate(dates):
        nut_cents = to_cents(resolve_nut(ts.date(), records.nut_snapshots, settings))
        key = (ts.year, ts.month, nut_cents)
        if key not in cache:
            cache[key] = allocate_cents(nut_cents, np.ones(ts.days_in_month))
        out[i] = cache[key][ts.day - 1]
    return out


def estimated_flow_cents(
    dates: pd.DatetimeIndex, records: LedgerRecords, settings: Settings
) -> tuple[np.ndarray, np.ndarray]:
    """Reference sales less target COGS/fee burden less daily NUT, per day."""
    start, end = dates[0].date(), dates[-1].date()
    sales, has_ref = daily_reference_cents(records.reference_months, settings.open_hours, start, end)
    burden = apply_rate_cents(sales, float(settings.target_cogs_pct) + float(settings.target_fees_pct))
    return sales - burden - daily_nut_cents(dates, records, settings), has_ref


def _running_balance(anchor_cents: int, flows: np.ndarray) -> np.ndarray:
    # The anchor is the start day's closing balance, so its own flow is already inside it.
    steps = np.asarray(flows, dtype=np.int64).copy()
    if len(steps):
        steps[0] = 0
    return anchor_cents + np.cumsum(steps)


def _balance_frame(dates, operating, capital, balance_cents, is_estimate, source) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Date": dates,
            "Operating Flow": cents_to_dollars(operating),
            "Capital Flow": cents_to_dollars(capital),
            "Balance": cents_to_dollars(balance_cents),
            "Is Estimate": np.asarray(is_estimate, dtype=bool),
            "Source": list(source),
        },
        columns=BALANCE_COLUMNS,
    )


def merge_balances(est_cents: np.ndarray, actual_cents: np.ndarray, entered: np.ndarray) -> tuple[np.ndarray, list[str]]:
    """Actual where logged; otherwise the estimate shifted by the last actual-vs-estimate gap.

    Before the first logged day the shift is zero (raw estimate). Each logged day
    resets the shift, so the merged line has no jump when it hands off to an estimate.
    """
    merged = np.zeros(len(est_cents), dtype=np.int64)
    sources: list[str] = []
    offset = 0
    seen_actual = False
    for i in range(len(est_cents)):
        if entered[i]:
            merged[i] = actual_cents[i]
            offset = int(actual_cents[i] - est_cents[i])
            seen_actual = True
            sources.append(SOURCE_ACTUAL)
        else:
            merged[i] = est_cents[i] + offset
            sources.append(SOURCE_RECONCILED if seen_actual else SOURCE_ESTIMATED)
    return merged, sources


def weekly_delta_series(merged: pd.DataFrame, window_end=None) -> pd.DataFrame:
    """balance[week end] - balance[previous week end], Monday-start weeks.

    The first week measures from the window's first day and the last week ends on
    the window's last day, so the deltas sum to merged[end] - merged[start].
    Days counts the daily changes inside each delta; partial weeks have fewer than 7.
    """
    if merged.empty:
        return pd.DataFrame(columns=WEEKLY_DELTA_COLUMNS)
    dates = pd.DatetimeIndex(merged["Date"])
    cents = dollars_to_cents_array(merged["Balance"])
    last_day = to_date(window_end) if window_end is not None else dates[-1].date()
    actual = (merged["Source"] == SOURCE_ACTUAL).to_numpy()

    rows = []
    prev = int(cents[0])
    weeks = np.array([week_start(d) for d in dates])
    for ws in pd.unique(weeks):
        idx = np.flatnonzero(weeks == ws)
        close = int(cents[idx[-1]])
        rows.append(
            {
                "Week Start": ws,
                "Week End": min(week_end(ws), last_day),
                "Balance": close / 100.0,
                "Delta": (close - prev) / 100.0,
                "Days": int(len(idx) - 1 if not rows else len(idx)),
                "Has Data": bool(actual[idx].any()),
            }
        )
        prev = close
    return pd.DataFrame(rows, columns=WEEKLY_DELTA_COLUMNS)


def build_continuity_series(
    records: LedgerRecords, settings: Settings, window_start, window_end
) -> ContinuityResult:
    """Estimated, actual and merged daily balances over [window_start, window_end]."""
    start = to_date(window_start)
    end = to_date(window_end)
    dates = window_dates(start, end)

    anchor = infer_anchor(start, records, settings)
    anchor_cents = to_cents(anchor.anchor_amount)

    est_flow, has_ref = estimated_flow_cents(dates, records, settings)
    est_cents = _running_balance(anchor_cents, est_flow)
    est = _balance_frame(
        dates, est_flow, np.zeros(len(dates), dtype=np.int64), est_cents, np.ones(len(dates), dtype=bool),
        [SOURCE_ESTIMATED] * len(dates),
    )

    ledger = daily_ledger(records, dates)
    actual_all = _running_balance(anchor_cents, ledger.net)
    logged = ledger.entered
    actual = _balance_frame(
        dates[logged], ledger.operating[logged], ledger.capital[logged], actual_all[logged],
        np.zeros(int(logged.sum()), dtype=bool), [SOURCE_ACTUAL] * int(logged.sum()),
    ).reset_index(drop=True)

    merged_cents, sources = merge_balances(est_cents, actual_all, logged)
    merged_operating = np.where(logged, ledger.operating, est_flow)
    merged_capital = np.where(logged, ledger.capital, 0)
    merged = _balance_frame(
        dates, merged_operating, merged_capital, merged_cents, ~logged, sources,
    )

    deltas = weekly_delta_series(merged, end)
    stats = {
        "est_count": int(len(est)),
        "actual_count": int(len(actual)),
        "merged_count": int(len(merged)),
        "reference_days": int(has_ref.sum()),
        "window_start": start.isoformat(),
        "window_end": end.isoformat(),
        "anchor_method": anchor.method,
        "net_capital": float(ledger.capital.sum()) / 100.0,
    }
    return ContinuityResult(
        est_balance_series=est,
        actual_balance_series=actual,
        merged_balance_series=merged,
        weekly_deltas=deltas,
        anchor=anchor,
        stats=stats,
    )


def downsample_to_weekly(series: pd.DataFrame) -> pd.DataFrame:
    """Last point of each Monday-start week."""
    if series.empty:
        return series.copy()
    weeks = [week_start(d) for d in pd.DatetimeIndex(series["Date"])]
    out = series.assign(_week=weeks).groupby("_week", sort=True).tail(1)
    return out.drop(columns="_week").reset_index(drop=True)


def capital_series(records: LedgerRecords, week_ends: list[date]) -> pd.DataFrame:
    """Cumulative capital invested (injections less withdrawals) at each week end."""
    moves = sorted(records.cash_injections, key=lambda m: to_date(m.date))
    rows = []
    for we in week_ends:
        total = sum(to_cents(m.invested_amount) for m in moves if to_date(m.date) <= to_date(we))
        rows.append({"Week End": to_date(we), "Capital": total / 100.0})
    return pd.DataFrame(rows, columns=["Week End", "Capital"])
