"""Single-point resolution for settings values that have fallback chains.

Each function documents its precedence order; callers never chain fallbacks
themselves.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from healthmeter.calendar_utils import to_date
from healthmeter.models import (
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseTransaction,
    LedgerRecords,
    NutSnapshot,
    Settings,
    YearStartAnchor,
)
from healthmeter.money import from_cents, to_cents

DEFAULT_STORE_CLOSE_HOUR = 16


def resolve_nut(as_of, nut_snapshots: Iterable[NutSnapshot], settings: Settings) -> float:
    """Monthly fixed overhead in force on as_of.

    1. The latest NUT snapshot with effective_date <= as_of (later list entry wins ties).
    2. settings.monthly_fixed_nut.
    """
    day = to_date(as_of)
    best: NutSnapshot | None = None
    for snap in nut_snapshots:
        if to_date(snap.effective_date) > day:
            continue
        if best is None or to_date(snap.effective_date) >= to_date(best.effective_date):
            best = snap
    if best is not None:
        return float(best.amount)
    return float(settings.monthly_fixed_nut)


def resolve_store_close_hour(settings: Settings) -> int:
    """1. settings.store_close_hour when set. 2. DEFAULT_STORE_CLOSE_HOUR."""
    if settings.store_close_hour is not None:
        return int(settings.store_close_hour)
    return DEFAULT_STORE_CLOSE_HOUR


def resolve_year_start_anchor(
    window_start, anchors: Iterable[YearStartAnchor], settings: Settings
) -> YearStartAnchor | None:
    """Explicit starting balance that covers a window starting on window_start.

    1. The YearStartAnchor record with the latest effective date on or before
       window_start (a later list entry wins ties).
    2. settings.year_start_cash_amount, dated settings.year_start_cash_date or
       January 1st of window_start's year.
    3. The YearStartAnchor record with the earliest effective date after window_start.
    4. None.

    The caller rolls the amount to window_start when the dates differ.
    """
    start = to_date(window_start)
    covering: YearStartAnchor | None = None
    upcoming: YearStartAnchor | None = None
    for anchor in anchors:
        effective = to_date(anchor.effective_date)
        if effective <= start:
            if covering is None or effective >= to_date(covering.effective_date):
                covering = anchor
        elif upcoming is None or effective < to_date(upcoming.effective_date):
            upcoming = anchor
    if covering is not None:
        return covering
    if settings.year_start_cash_amount is not None:
        anchor_date = to_date(settings.year_start_cash_date) if settings.year_start_cash_date else date(start.year, 1, 1)
        return YearStartAnchor(year=anchor_date.year, amount=float(settings.year_start_cash_amount), date=anchor_date)
    return upcoming


def latest_entered_snapshot(snapshots: Iterable[CashSnapshot]) -> CashSnapshot | None:
    """The authoritative "now" snapshot: most recent by entry time, not by date.

    Snapshots without an entry time rank below timed ones; among those the later
    date wins, then the later list position.
    """
    best: CashSnapshot | None = None
    best_key = None
    for position, snap in enumerate(snapshots):
        if snap.recorded_at is None:
            key = (False, to_date(snap.date).toordinal(), position)
        else:
            key = (True, snap.recorded_at.timestamp(), position)
        if best_key is None or key > best_key:
            best, best_key = snap, key
    return best


def change_since_snapshot(
    snapshot_date,
    as_of,
    entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
    injections: Iterable[CashInjection] = (),
) -> float:
    """Logged net flow on days strictly after snapshot_date through as_of.

    Entered sales less expenses, plus net capital movements.
    """
    lo, hi = to_date(snapshot_date), to_date(as_of)
    cents = sum(to_cents(e.net_sales_ex_tax) for e in entries if e.is_entered and lo < to_date(e.date) <= hi)
    cents -= sum(to_cents(x.amount) for x in expenses if lo < to_date(x.date) <= hi)
    cents += sum(to_cents(m.signed_amount) for m in injections if lo < to_date(m.date) <= hi)
    return from_cents(cents)


def resolve_cash_now(as_of, records: LedgerRecords, estimated_balance: float | None = None) -> tuple[float, str]:
    """Cash on hand as of as_of, with the source it came from.

    1. The latest entered snapshot plus logged flow since its date ("snapshot").
    2. estimated_balance, typically the merged continuity balance on as_of ("estimated").
    3. Zero ("none").
    """
    snap = latest_entered_snapshot(records.cash_snapshots)
    if snap is not None:
        change = change_since_snapshot(
            snap.date, as_of, records.day_entries, records.expenses, records.cash_injections
        )
        return from_cents(to_cents(snap.amount) + to_cents(change)), "snapshot"
    if estimated_balance is not None:
        return float(estimated_balance), "estimated"
    return 0.0, "none"
