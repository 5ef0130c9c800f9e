"""Pace, burn, runway and confidence metrics for dashboard readouts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd

import healthmeter.runtime_logging as runtime_logging
from healthmeter.continuity import weekly_delta_series
from healthmeter.distributor import mtd_target_to_date
from healthmeter.models import DayEntry, OpenHoursTemplate
from healthmeter.money import from_cents, to_cents

CONFIDENCE_HIGH_MIN = 75
CONFIDENCE_MEDIUM_MIN = 45

_ETA_UNCERTAINTY = {"HIGH": 0.0, "MEDIUM": 0.2, "LOW": 0.4}


def _safe_div(a: float, b: float) -> float:
    return float(a / b) if b else 0.0


def _round2(value: float) -> float:
    return from_cents(to_cents(value))


@dataclass(frozen=True)
class EtaResult:
    eta_days: int | None
    eta_min: int | None
    eta_max: int | None
    is_estimate: bool
    direction: str


@dataclass(frozen=True)
class BurnSummary:
    daily_burn: float
    runway_days: int | None
    eta_to_floor: EtaResult
    eta_to_target: EtaResult
    wow_change: dict | None


# Goals


def keep_rate(target_cogs_pct: float, target_fees_pct: float) -> float:
    """Share of each sales dollar left after COGS and fees."""
    return 1.0 - float(target_cogs_pct) - float(target_fees_pct)


def survival_goal(
    fixed_overhead: float,
    reserve_contribution: float,
    owner_draw_goal: float,
    target_cogs_pct: float,
    target_fees_pct: float,
) -> float:
    """(NUT + reserve + owner draw) grossed up by the keep rate; inf when keep rate <= 0."""
    rate = keep_rate(target_cogs_pct, target_fees_pct)
    if rate <= 0:
        runtime_logging.append_runtime_event(
            level="WARNING",
            event="survival_goal_unbounded",
            message="Target COGS and fee percentages leave nothing to cover overhead.",
            context={"target_cogs_pct": target_cogs_pct, "target_fees_pct": target_fees_pct},
        )
        return math.inf
    needed = float(fixed_overhead) + float(reserve_contribution) + float(owner_draw_goal)
    return _round2(needed / rate)


def break_even_goal(fixed_overhead: float, target_cogs_pct: float, target_fees_pct: float) -> float:
    return survival_goal(fixed_overhead, 0.0, 0.0, target_cogs_pct, target_fees_pct)


def survival_percent(mtd_net_sales: float, goal: float) -> float:
    """Progress toward goal in percent, one decimal, clamped to [0, 200] for gauges."""
    if not math.isfinite(goal) or goal <= 0:
        return 0.0
    pct = round(mtd_net_sales / goal * 100, 1)
    return max(0.0, min(200.0, pct))


def remaining_to_goal(mtd_net_sales: float, goal: float) -> float:
    """Goal minus sales so far; negative once the goal is exceeded."""
    if not math.isfinite(goal):
        return goal
    return from_cents(to_cents(goal) - to_cents(mtd_net_sales))


# Pace


def pace_delta(mtd_actual: float, as_of, month_goal: float, template: OpenHoursTemplate) -> float:
    """MTD actual minus the hours-weighted target to date. Positive means ahead."""
    target = mtd_target_to_date(as_of, month_goal, template)
    if not math.isfinite(target):
        return -math.inf
    return from_cents(to_cents(mtd_actual) - to_cents(target))


def velocity(mtd_net_sales: float, mtd_expenses: float, days_elapsed: int) -> float:
    """Trailing net daily rate from month-to-date totals."""
    days = max(1, int(days_elapsed))
    return _round2((float(mtd_net_sales) - float(mtd_expenses)) / days)


# Burn and runway


def daily_burn_rate(weekly_deltas: pd.DataFrame, trailing_weeks: int = 4) -> float:
    """Sum of the last trailing_weeks weekly deltas over the days they span. Negative means burning.

    Partial weeks at the window edges count only their own days; frames without a
    Days column are taken as whole weeks.
    """
    if int(trailing_weeks) < 1:
        raise ValueError("trailing_weeks must be at least 1.")
    if weekly_deltas is None or weekly_deltas.empty:
        return 0.0
    recent = weekly_deltas.iloc[-int(trailing_weeks) :]
    if "Days" in recent.columns:
        days = int(recent["Days"].to_numpy(dtype=np.int64).sum())
    else:
        days = 7 * len(recent)
    return _round2(_safe_div(float(recent["Delta"].to_numpy(dtype=float).sum()), days))


def runway_days(cash_now: float, daily_burn: float) -> int | None:
    """Whole days of cash at the current burn; None when not burning (unbounded)."""
    if daily_burn >= 0:
        return None
    if cash_now <= 0:
        return 0
    return int(math.floor(cash_now / abs(daily_burn)))


def eta_to_threshold(cash_now: float, threshold: float, daily_velocity: float, confidence: str = "HIGH") -> EtaResult:
    """Days until cash crosses threshold at daily_velocity.

    None when velocity is zero or moves away from the threshold. Never negative.
    MEDIUM and LOW confidence add a +/-20% and +/-40% band.
    """
    gap = float(threshold) - float(cash_now)
    uncertain = confidence != "HIGH"
    if gap == 0:
        return EtaResult(0, None, None, False, "stable")
    if daily_velocity == 0 or (gap > 0) != (daily_velocity > 0):
        return EtaResult(None, None, None, uncertain, "stable")

    days = int(math.ceil(gap / daily_velocity))
    direction = "to_target" if gap > 0 else "to_floor"
    band = _ETA_UNCERTAINTY.get(confidence, _ETA_UNCERTAINTY["LOW"])
    if not uncertain:
        return EtaResult(days, None, None, False, direction)
    return EtaResult(days, int(math.floor(days * (1 - band))), int(math.ceil(days * (1 + band))), True, direction)


def week_over_week_change(weekly: pd.DataFrame) -> dict | None:
    """Change between the last two weekly closing balances."""
    if weekly is None or len(weekly) < 2:
        return None
    current = float(weekly["Balance"].iloc[-1])
    previous = float(weekly["Balance"].iloc[-2])
    amount = _round2(current - previous)
    percent = int(round(amount / previous * 100)) if previous != 0 else 0
    return {"amount": amount, "percent": percent}


def summarize_burn(
    merged_balance_series: pd.DataFrame,
    cash_now: float,
    operating_floor: float,
    target_reserve: float,
    trailing_weeks: int = 4,
    daily_velocity: float | None = None,
    confidence: str = "HIGH",
) -> BurnSummary:
    """Burn, runway, threshold ETAs and week-over-week change from a merged balance series."""
    weekly_deltas = weekly_delta_series(merged_balance_series)
    burn = daily_burn_rate(weekly_deltas, trailing_weeks)
    speed = burn if daily_velocity is None else float(daily_velocity)
    return BurnSummary(
        daily_burn=burn,
        runway_days=runway_days(cash_now, burn),
        eta_to_floor=eta_to_threshold(cash_now, operating_floor, speed, confidence),
        eta_to_target=eta_to_threshold(cash_now, target_reserve, speed, confidence),
        wow_change=week_over_week_change(weekly_deltas),
    )


# Confidence


def confidence_score(has_sales_data: bool, has_recent_expenses: bool, days_with_data: int, total_days: int) -> int:
    """Data-quality rubric: coverage up to 50, recent expenses 30, any sales 20."""
    score = 0
    if total_days > 0:
        coverage = max(0.0, min(1.0, days_with_data / total_days))
        score += min(50, int(round(coverage * 50)))
    if has_recent_expenses:
        score += 30
    if has_sales_data:
        score += 20
    return max(0, min(100, score))


def confidence_level(score: int) -> str:
    if score >= CONFIDENCE_HIGH_MIN:
        return "HIGH"
    if score >= CONFIDENCE_MEDIUM_MIN:
        return "MEDIUM"
    return "LOW"


def health_score(
    mtd_net_sales: float,
    goal: float,
    actual_cogs: float,
    target_cogs: float,
    mtd_opex: float,
    expected_monthly_opex: float,
    confidence: int,
) -> int:
    """Composite 0-100: pace 50, COGS 20, OPEX 15, confidence 15."""
    pace_ratio = min(1.2, _safe_div(mtd_net_sales, goal)) if math.isfinite(goal) else 0.0
    pace_score = int(round(max(0.0, pace_ratio) / 1.2 * 50))

    cogs_score = 20
    if actual_cogs > target_cogs:
        cogs_score = max(0, 20 - int(round((actual_cogs - target_cogs) * 100)))

    opex_score = 15
    if expected_monthly_opex > 0 and mtd_opex > expected_monthly_opex:
        overage = (mtd_opex - expected_monthly_opex) / expected_monthly_opex
        opex_score = max(0, 15 - int(round(overage * 30)))

    conf_score = int(round(confidence / 100 * 15))
    return max(0, min(100, pace_score + cogs_score + opex_score + conf_score))


# Month results


def cash_health_result(mtd_net_sales, mtd_cogs, mtd_opex, monthly_roof_fund, mtd_owner_draw) -> float:
    cents = to_cents(mtd_net_sales) - to_cents(mtd_cogs) - to_cents(mtd_opex)
    return from_cents(cents - to_cents(monthly_roof_fund) - to_cents(mtd_owner_draw))


def true_health_result(
    mtd_net_sales, normalized_cogs, mtd_opex, monthly_roof_fund, mtd_owner_draw, normalized_capex
) -> float:
    cash = cash_health_result(mtd_net_sales, normalized_cogs, mtd_opex, monthly_roof_fund, mtd_owner_draw)
    return from_cents(to_cents(cash) - to_cents(normalized_capex))


def actual_cogs_rate(mtd_cogs: float, mtd_net_sales: float) -> float:
    if mtd_net_sales <= 0:
        return 0.0
    return round(mtd_cogs / mtd_net_sales, 3)


def gross_margin_trend(current_cogs_rate: float, previous_cogs_rate: float) -> dict:
    change = int(round((current_cogs_rate - previous_cogs_rate) * 100))
    if change > 1:
        return {"direction": "up", "change": change}
    if change < -1:
        return {"direction": "down", "change": change}
    return {"direction": "flat", "change": change}


def vs_last_year(current_value: float, ly_value: float) -> dict:
    amount = _round2(current_value - ly_value)
    percent = int(round(amount / ly_value * 100)) if ly_value else 0
    return {"amount": amount, "percent": percent}


def average_daily_sales(entries: Iterable[DayEntry]) -> float:
    """Mean of entered, non-zero sales days."""
    values = [e.net_sales_ex_tax for e in entries if e.is_entered and e.net_sales_ex_tax > 0]
    if not values:
        return 0.0
    return _round2(sum(values) / len(values))


# Cash position


def cash_fill_pct(cash_now: float, monthly_nut: float) -> float:
    if monthly_nut <= 0:
        return 0.0
    return max(0.0, min(1.0, cash_now / monthly_nut))


def nut_coverage_percent(cash_now: float, monthly_nut: float) -> int:
    if monthly_nut <= 0:
        return 0
    return int(round(cash_now / monthly_nut * 100))


def safe_to_spend(cash_now: float, operating_floor: float) -> float:
    return max(0.0, _round2(cash_now - operating_floor))
