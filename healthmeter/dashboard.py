"""Dashboard orchestration: one flat result from records, settings and a clock."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime, timedelta
from typing import Any

import numpy as np
import pandas as pd

from healthmeter.anchor import AnchorResult
from healthmeter.calendar_utils import is_open_day, to_date
from healthmeter.continuity import (
    ContinuityResult,
    build_continuity_series,
    capital_series,
    downsample_to_weekly,
)
from healthmeter.distributor import PitBoard, daily_needed_from_here, mtd_target_to_date
from healthmeter.integrity_checks import run_continuity_checks
from healthmeter.models import AsOfClock, DayEntry, LedgerRecords, Settings
from healthmeter.money import from_cents, to_cents
from healthmeter.pace import (
    BurnSummary,
    actual_cogs_rate,
    average_daily_sales,
    cash_fill_pct,
    cash_health_result,
    confidence_level,
    confidence_score,
    gross_margin_trend,
    health_score,
    nut_coverage_percent,
    pace_delta,
    remaining_to_goal,
    safe_to_spend,
    summarize_burn,
    survival_goal,
    survival_percent,
    true_health_result,
    velocity,
    vs_last_year,
)
from healthmeter.reference import best_worst_months, reference_map, weekly_reference_estimates
from healthmeter.resolution import resolve_cash_now, resolve_nut, resolve_store_close_hour
from healthmeter.spread import cash_category_total, normalized_capex, normalized_cogs

DEFAULT_LOOKBACK_DAYS = 364
RECENT_EXPENSE_DAYS = 7


@dataclass(frozen=True)
class DashboardResult:
    today: date
    as_of_date: date
    sales_not_entered: bool

    mtd_net_sales: float
    mtd_cogs_cash: float
    mtd_opex_cash: float
    mtd_owner_draw: float
    mtd_capex_cash: float

    monthly_nut: float
    survival_goal: float
    survival_percent: float
    remaining_to_goal: float
    mtd_target_to_date: float
    pace_delta: float
    pit_board: PitBoard

    cash_health_result: float
    true_health_result: float | None
    normalized_cogs: float
    normalized_capex: float
    actual_cogs_rate: float
    margin_trend: dict

    confidence_score: int
    confidence_level: str
    health_score: int

    last_year: dict | None

    cash_now: float
    cash_source: str
    cash_fill_pct: float
    nut_coverage_percent: int
    safe_to_spend: float
    above_floor: float
    to_target: float

    velocity: float
    burn: BurnSummary
    continuity: ContinuityResult
    integrity_findings: list
    weekly_balances: pd.DataFrame
    ly_estimates: pd.DataFrame
    capital_series: pd.DataFrame
    total_capital_invested: float
    average_daily_sales: float
    best_worst: dict | None

    @property
    def anchor(self) -> AnchorResult:
        return self.continuity.anchor

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict: dates as ISO strings, infinities as None, frames as record lists."""
        return {f.name: _jsonable(getattr(self, f.name)) for f in fields(self)}


def _jsonable(value: Any) -> Any:
    if isinstance(value, pd.DataFrame):
        return [_jsonable(row) for row in value.to_dict(orient="records")]
    if is_dataclass(value) and not isinstance(value, type):
        out = {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
        if isinstance(value, AnchorResult):
            out["confidence"] = value.confidence
        return out
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return to_date(value).isoformat()
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        num = float(value)
        return num if math.isfinite(num) else None
    return value


def _in_month(day, year: int, month: int) -> bool:
    d = to_date(day)
    return d.year == year and d.month == month


def select_as_of_date(entries, today: date) -> date:
    """Latest date in today's month with a non-zero sales entry, else today."""
    dates = [
        to_date(e.date)
        for e in entries
        if e.is_entered and e.net_sales_ex_tax > 0 and _in_month(e.date, today.year, today.month) and to_date(e.date) <= today
    ]
    return max(dates) if dates else today


def sales_not_entered(today: date, as_of: date, hour: int, settings: Settings) -> bool:
    """Today is an open day, past closing, with no sales entered for it yet."""
    return today > as_of and is_open_day(today, settings.open_hours) and hour >= resolve_store_close_hour(settings)


def continuity_window(as_of: date, records: LedgerRecords) -> tuple[date, date]:
    """[start, as_of]: from the earliest reference month, else a 52-week lookback."""
    start = as_of - timedelta(days=DEFAULT_LOOKBACK_DAYS)
    ref_map = reference_map(records.reference_months)
    if ref_map:
        year, month = min(ref_map)
        earliest = date(year, month, 1)
        if earliest <= as_of:
            start = earliest
    return start, as_of


def _last_year_comparison(records: LedgerRecords, settings: Settings, as_of: date, mtd_net_sales: float) -> dict | None:
    ref_map = reference_map(records.reference_months)
    key = (as_of.year - 1, as_of.month)
    if key not in ref_map:
        return None
    ly_total = from_cents(ref_map[key])
    est_to_date = mtd_target_to_date(as_of, ly_total, settings.open_hours)
    return {
        "year": key[0],
        "month": key[1],
        "net_sales": ly_total,
        "est_target_to_date": est_to_date,
        "vs_last_year_pace": from_cents(to_cents(mtd_net_sales) - to_cents(est_to_date)),
        "vs_last_year_total": vs_last_year(mtd_net_sales, ly_total),
        "pct_of_last_year": int(round(mtd_net_sales / ly_total * 100)) if ly_total > 0 else 0,
    }


def compute_dashboard(
    records: LedgerRecords, settings: Settings, clock: AsOfClock, trailing_weeks: int = 4
) -> DashboardResult:
    today = clock.today
    year, month = today.year, today.month

    month_entries: list[DayEntry] = [e for e in records.day_entries if _in_month(e.date, year, month)]
    as_of = select_as_of_date(month_entries, today)
    not_entered = sales_not_entered(today, as_of, clock.hour, settings)

    mtd_net_sales = from_cents(
        sum(to_cents(e.net_sales_ex_tax) for e in month_entries if e.is_entered and to_date(e.date) <= as_of)
    )
    # Sales, expenses, normalized figures and velocity all stop at as_of.
    month_expenses = [x for x in records.expenses if to_date(x.date) <= as_of]
    mtd_cogs = cash_category_total(month_expenses, "COGS", year, month)
    mtd_opex = cash_category_total(month_expenses, "OPEX", year, month)
    mtd_owner_draw = cash_category_total(month_expenses, "OWNER_DRAW", year, month)
    mtd_capex = cash_category_total(month_expenses, "CAPEX", year, month)

    nut = resolve_nut(as_of, records.nut_snapshots, settings)
    goal = survival_goal(
        nut, settings.monthly_roof_fund, settings.monthly_owner_draw_goal, settings.target_cogs_pct, settings.target_fees_pct
    )
    target_to_date = mtd_target_to_date(as_of, goal, settings.open_hours)

    if settings.enable_spreading:
        norm_cogs = normalized_cogs(month_expenses, year, month)
        norm_capex = normalized_capex(month_expenses, year, month)
    else:
        norm_cogs, norm_capex = mtd_cogs, 0.0
    cash_result = cash_health_result(mtd_net_sales, mtd_cogs, mtd_opex, settings.monthly_roof_fund, mtd_owner_draw)
    true_result = (
        true_health_result(mtd_net_sales, norm_cogs, mtd_opex, settings.monthly_roof_fund, mtd_owner_draw, norm_capex)
        if settings.enable_true_health
        else None
    )
    cogs_rate = actual_cogs_rate(mtd_cogs, mtd_net_sales)

    days_with_data = sum(1 for e in month_entries if e.is_entered and to_date(e.date) <= today)
    recent_cutoff = today - timedelta(days=RECENT_EXPENSE_DAYS)
    has_recent_expenses = any(recent_cutoff <= to_date(x.date) <= today for x in records.expenses)
    conf_score = confidence_score(mtd_net_sales > 0, has_recent_expenses, days_with_data, today.day)
    conf_level = confidence_level(conf_score)

    start, end = continuity_window(as_of, records)
    continuity = build_continuity_series(records, settings, start, end)
    findings = run_continuity_checks(continuity)
    merged = continuity.merged_balance_series
    estimated_now = float(merged["Balance"].iloc[-1]) if continuity.anchor.is_anchored and not merged.empty else None
    cash_now, cash_source = resolve_cash_now(as_of, records, estimated_now)

    speed = velocity(mtd_net_sales, mtd_cogs + mtd_opex + mtd_owner_draw + mtd_capex, as_of.day)
    burn = summarize_burn(
        merged,
        cash_now,
        settings.operating_floor_cash,
        settings.target_reserve_cash,
        trailing_weeks=trailing_weeks,
        daily_velocity=speed,
        confidence=conf_level,
    )

    weekly = downsample_to_weekly(merged)
    capital = capital_series(records, list(continuity.weekly_deltas["Week End"]))
    total_capital = from_cents(sum(to_cents(m.invested_amount) for m in records.cash_injections))

    return DashboardResult(
        today=today,
        as_of_date=as_of,
        sales_not_entered=not_entered,
        mtd_net_sales=mtd_net_sales,
        mtd_cogs_cash=mtd_cogs,
        mtd_opex_cash=mtd_opex,
        mtd_owner_draw=mtd_owner_draw,
        mtd_capex_cash=mtd_capex,
        monthly_nut=nut,
        survival_goal=goal,
        survival_percent=survival_percent(mtd_net_sales, goal),
        remaining_to_goal=remaining_to_goal(mtd_net_sales, goal),
        mtd_target_to_date=target_to_date,
        pace_delta=pace_delta(mtd_net_sales, as_of, goal, settings.open_hours),
        pit_board=daily_needed_from_here(as_of, mtd_net_sales, goal, settings.open_hours),
        cash_health_result=cash_result,
        true_health_result=true_result,
        normalized_cogs=norm_cogs,
        normalized_capex=norm_capex,
        actual_cogs_rate=cogs_rate,
        margin_trend=gross_margin_trend(cogs_rate, settings.target_cogs_pct),
        confidence_score=conf_score,
        confidence_level=conf_level,
        health_score=health_score(mtd_net_sales, goal, cogs_rate, settings.target_cogs_pct, mtd_opex, nut, conf_score),
        last_year=_last_year_comparison(records, settings, as_of, mtd_net_sales),
        cash_now=cash_now,
        cash_source=cash_source,
        cash_fill_pct=cash_fill_pct(cash_now, nut),
        nut_coverage_percent=nut_coverage_percent(cash_now, nut),
        safe_to_spend=safe_to_spend(cash_now, settings.operating_floor_cash),
        above_floor=max(0.0, from_cents(to_cents(cash_now) - to_cents(settings.operating_floor_cash))),
        to_target=max(0.0, from_cents(to_cents(settings.target_reserve_cash) - to_cents(cash_now))),
        velocity=speed,
        burn=burn,
        continuity=continuity,
        integrity_findings=findings,
        weekly_balances=weekly,
        ly_estimates=weekly_reference_estimates(records.reference_months, settings.open_hours, start, end),
        capital_series=capital,
        total_capital_invested=total_capital,
        average_daily_sales=average_daily_sales(month_entries),
        best_worst=best_worst_months(records.reference_months),
    )
