"""Starting-balance inference and ledger cash-flow walks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import numpy as np
import pandas as pd

import healthmeter.runtime_logging as runtime_logging
from healthmeter.calendar_utils import to_date
from healthmeter.models import CashSnapshot, LedgerRecords, Settings
from healthmeter.money import from_cents, to_cents
from healthmeter.resolution import resolve_year_start_anchor

METHOD_EXPLICIT = "explicit"
METHOD_ROLLED_FORWARD = "snapshot-rolled-forward"
METHOD_ROLLED_BACKWARD = "snapshot-rolled-backward"
METHOD_NONE = "none"

_CONFIDENCE_BY_METHOD = {
    METHOD_EXPLICIT: "HIGH",
    METHOD_ROLLED_FORWARD: "MEDIUM",
    METHOD_ROLLED_BACKWARD: "MEDIUM",
    METHOD_NONE: "LOW",
}


@dataclass(frozen=True)
class AnchorResult:
    anchor_amount: float
    anchor_date: date
    method: str
    source_date: date | None = None

    @property
    def is_inferred(self) -> bool:
        return self.method != METHOD_EXPLICIT

    @property
    def is_anchored(self) -> bool:
        return self.method != METHOD_NONE

    @property
    def confidence(self) -> str:
        return _CONFIDENCE_BY_METHOD[self.method]


@dataclass(frozen=True)
class DailyLedger:
    """Per-day cents arrays aligned to a date index."""

    dates: pd.DatetimeIndex
    sales: np.ndarray
    expenses: np.ndarray
    capital: np.ndarray
    entered: np.ndarray

    @property
    def operating(self) -> np.ndarray:
        return self.sales - self.expenses

    @property
    def net(self) -> np.ndarray:
        return self.sales - self.expenses + self.capital


def daily_ledger(records: LedgerRecords, dates: pd.DatetimeIndex) -> DailyLedger:
    """Bucket logged sales, expenses and capital movements onto dates.

    Sales count only when entered (None is skipped, a logged 0 marks the day as
    entered). Expenses count at face value on the day they were logged.
    """
    position = {d.date(): i for i, d in enumerate(dates)}
    n = len(dates)
    sales = np.zeros(n, dtype=np.int64)
    expenses = np.zeros(n, dtype=np.int64)
    capital = np.zeros(n, dtype=np.int64)
    entered = np.zeros(n, dtype=bool)

    for entry in records.day_entries:
        i = position.get(to_date(entry.date))
        if i is None or not entry.is_entered:
            continue
        sales[i] += to_cents(entry.net_sales_ex_tax)
        entered[i] = True
    for expense in records.expenses:
        i = position.get(to_date(expense.date))
        if i is not None:
            expenses[i] += to_cents(expense.amount)
    for movement in records.cash_injections:
        i = position.get(to_date(movement.date))
        if i is not None:
            capital[i] += to_cents(movement.signed_amount)
    return DailyLedger(dates=dates, sales=sales, expenses=expenses, capital=capital, entered=entered)


def net_flow_cents(records: LedgerRecords, after, through) -> int:
    """Logged net cash flow on days strictly after `after` and up to `through` inclusive."""
    lo = to_date(after)
    hi = to_date(through)
    if hi <= lo:
        return 0
    total = 0
    for entry in records.day_entries:
        if entry.is_entered and lo < to_date(entry.date) <= hi:
            total += to_cents(entry.net_sales_ex_tax)
    for expense in records.expenses:
        if lo < to_date(expense.date) <= hi:
            total -= to_cents(expense.amount)
    for movement in records.cash_injections:
        if lo < to_date(movement.date) <= hi:
            total += to_cents(movement.signed_amount)
    return total


def _roll_to_start(amount_cents: int, known_date: date, start: date, records: LedgerRecords) -> int:
    """Closing balance on start from a closing balance known on known_date."""
    if known_date <= start:
        return amount_cents + net_flow_cents(records, known_date, start)
    return amount_cents - net_flow_cents(records, start, known_date)


def _closest_snapshot(snapshots, start: date) -> CashSnapshot | None:
    """Snapshot nearest the window start; on-or-before wins a distance tie.

    Same-date snapshots resolve to the one entered last.
    """
    best: CashSnapshot | None = None
    best_key = None
    for position, snap in enumerate(snapshots):
        d = to_date(snap.date)
        distance = abs((d - start).days)
        after = 1 if d > start else 0
        entered = snap.recorded_at.timestamp() if snap.recorded_at is not None else float("-inf")
        key = (distance, after, -entered, -position)
        if best_key is None or key < best_key:
            best, best_key = snap, key
    return best


def infer_anchor(window_start, records: LedgerRecords, settings: Settings) -> AnchorResult:
    """Best available closing balance for the window start day.

    1. Explicit year-start anchor covering the window (always wins), rolled to the
       start through logged flows when it is dated on another day.
    2. Closest snapshot on or before the start, rolled forward through logged flows.
    3. Closest snapshot after the start, rolled backward.
    4. Zero with method "none", meaning the series is unanchored.
    """
    start = to_date(window_start)

    explicit = resolve_year_start_anchor(start, records.year_start_anchors, settings)
    if explicit is not None:
        anchor_date = to_date(explicit.effective_date)
        return AnchorResult(
            anchor_amount=from_cents(_roll_to_start(to_cents(explicit.amount), anchor_date, start, records)),
            anchor_date=start,
            method=METHOD_EXPLICIT,
            source_date=anchor_date,
        )

    snap = _closest_snapshot(records.cash_snapshots, start)
    if snap is not None:
        snap_date = to_date(snap.date)
        method = METHOD_ROLLED_FORWARD if snap_date <= start else METHOD_ROLLED_BACKWARD
        cents = _roll_to_start(to_cents(snap.amount), snap_date, start, records)
        return AnchorResult(anchor_amount=from_cents(cents), anchor_date=start, method=method, source_date=snap_date)

    runtime_logging.append_runtime_event(
        level="WARNING",
        event="anchor_unresolved",
        message="No year-start anchor or cash snapshot; estimated series is unanchored.",
        context={"window_start": start.isoformat()},
    )
    return AnchorResult(anchor_amount=0.0, anchor_date=start, method=METHOD_NONE)
