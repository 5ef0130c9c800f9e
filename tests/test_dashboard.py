from __future__ import annotations

import json
from dataclasses import replace
from datetime import date

from healthmeter.dashboard import compute_dashboard, continuity_window, select_as_of_date, sales_not_entered
from healthmeter.models import AsOfClock, DayEntry, ExpenseTransaction, LedgerRecords


def test_as_of_is_latest_non_zero_sales_day_in_month():
    entries = [
        DayEntry(date(2024, 4, 2), 100.0),
        DayEntry(date(2024, 4, 5), 0.0),
        DayEntry(date(2024, 4, 6), None),
        DayEntry(date(2024, 3, 30), 50.0),
    ]
    assert select_as_of_date(entries, date(2024, 4, 10)) == date(2024, 4, 2)
    assert select_as_of_date([], date(2024, 4, 10)) == date(2024, 4, 10)


def test_sales_not_entered_only_after_close_on_open_days(settings):
    # 2024-04-17 is a Wednesday, 2024-04-21 a Sunday.
    assert sales_not_entered(date(2024, 4, 17), date(2024, 4, 16), 18, settings)
    assert not sales_not_entered(date(2024, 4, 17), date(2024, 4, 16), 10, settings)
    assert not sales_not_entered(date(2024, 4, 21), date(2024, 4, 20), 18, settings)
    assert not sales_not_entered(date(2024, 4, 17), date(2024, 4, 17), 18, settings)


def test_continuity_window_starts_at_earliest_reference_month(small_ledger):
    assert continuity_window(date(2024, 4, 16), small_ledger) == (date(2023, 1, 1), date(2024, 4, 16))
    assert continuity_window(date(2024, 4, 16), LedgerRecords()) == (date(2023, 4, 18), date(2024, 4, 16))


def test_dashboard_month_figures(small_ledger, settings, fixed_clock):
    result = compute_dashboard(small_ledger, settings, fixed_clock)
    assert result.as_of_date == date(2024, 4, 16)
    assert result.sales_not_entered
    assert result.mtd_net_sales == 2045.75
    assert result.mtd_cogs_cash == 300.0
    assert result.mtd_opex_cash == 1200.0
    assert result.survival_goal == 4838.71
    assert result.normalized_capex == 100.0
    assert result.cash_health_result == 545.75
    assert result.true_health_result == 445.75
    assert result.actual_cogs_rate == 0.147
    assert result.confidence_score == 68
    assert result.confidence_level == "MEDIUM"
    assert result.last_year["net_sales"] == 9400.0
    assert result.last_year["pct_of_last_year"] == 22


def test_dashboard_cash_position_agrees_with_continuity(small_ledger, settings, fixed_clock):
    result = compute_dashboard(small_ledger, settings, fixed_clock)
    assert result.cash_source == "snapshot"
    assert result.cash_now == 12135.75
    assert result.continuity.merged_balance_series["Balance"].iloc[-1] == result.cash_now
    assert result.integrity_findings == []
    assert result.safe_to_spend == 10135.75
    assert result.above_floor == 10135.75
    assert result.to_target == 7864.25
    assert result.anchor.is_anchored


def test_dashboard_to_dict_is_json_ready(small_ledger, settings, fixed_clock):
    payload = compute_dashboard(small_ledger, settings, fixed_clock).to_dict()
    text = json.dumps(payload, allow_nan=False)
    assert '"as_of_date": "2024-04-16"' in text
    assert payload["continuity"]["anchor"]["method"] == "snapshot-rolled-backward"
    assert payload["continuity"]["merged_balance_series"][0]["Date"] == "2023-01-01"
    assert payload["best_worst"]["best"] == {"year": 2023, "month": 12, "value": 10200.0}
    assert payload["best_worst"]["worst"]["month"] == 1


def test_dashboard_with_no_records(settings, fixed_clock):
    result = compute_dashboard(LedgerRecords(), settings, fixed_clock)
    assert result.as_of_date == fixed_clock.today
    assert result.cash_source == "none"
    assert result.cash_now == 0.0
    assert result.anchor.method == "none"
    assert result.last_year is None
    assert result.best_worst is None
    json.dumps(result.to_dict(), allow_nan=False)


def test_dashboard_with_unbounded_goal_serializes_nulls(small_ledger, settings):
    clock = AsOfClock.frozen_at(date(2024, 4, 17), hour=9)
    result = compute_dashboard(small_ledger, replace(settings, target_cogs_pct=0.7, target_fees_pct=0.4), clock)
    assert not result.sales_not_entered
    payload = result.to_dict()
    assert payload["survival_goal"] is None
    assert payload["pace_delta"] is None
    assert payload["pit_board"]["daily_needed"] is None
    assert payload["survival_percent"] == 0.0


def test_dashboard_uses_settings_year_start_cash_dated_inside_the_window(small_ledger, settings, fixed_clock):
    anchored = replace(settings, year_start_cash_amount=50000.0, year_start_cash_date=date(2024, 1, 1))
    result = compute_dashboard(small_ledger, anchored, fixed_clock)
    assert result.anchor.method == "explicit"
    assert result.anchor.anchor_date == date(2023, 1, 1)
    assert result.anchor.anchor_amount == 50000.0
    assert result.integrity_findings == []
    assert result.continuity.merged_balance_series["Balance"].iloc[-1] == 49345.75
    assert result.cash_source == "snapshot"


def test_dashboard_month_figures_stop_at_the_as_of_date(small_ledger, settings, fixed_clock):
    late = (
        ExpenseTransaction(date(2024, 4, 17), "OPEX", 500.0),
        ExpenseTransaction(date(2024, 4, 17), "COGS", 1200.0, spread_months=12),
    )
    records = replace(small_ledger, expenses=small_ledger.expenses + late)
    result = compute_dashboard(records, settings, fixed_clock)
    assert result.as_of_date == date(2024, 4, 16)
    assert result.mtd_opex_cash == 1200.0
    assert result.mtd_cogs_cash == 300.0
    assert result.normalized_cogs == 300.0
    assert result.velocity == 34.11
    assert result.cash_now == 12135.75
