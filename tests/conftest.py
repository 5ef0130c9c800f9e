from __future__ import annotations

from datetime import date

import pytest

from healthmeter.models import (
    AsOfClock,
    CashSnapshot,
    DayEntry,
    ExpenseTransaction,
    LedgerRecords,
    OpenHoursTemplate,
    ReferenceMonth,
    Settings,
)


@pytest.fixture
def weekday_template() -> OpenHoursTemplate:
    return OpenHoursTemplate(mon=8, tue=8, wed=8, thu=8, fri=8, sat=4, sun=0)


@pytest.fixture
def settings(weekday_template) -> Settings:
    return Settings(
        target_cogs_pct=0.35,
        target_fees_pct=0.03,
        monthly_fixed_nut=3000.0,
        open_hours=weekday_template,
        store_close_hour=16,
        operating_floor_cash=2000.0,
        target_reserve_cash=20000.0,
    )


@pytest.fixture
def fixed_clock() -> AsOfClock:
    return AsOfClock.frozen_at(date(2024, 4, 17), hour=18)


@pytest.fixture
def small_ledger() -> LedgerRecords:
    references = tuple(ReferenceMonth(2023, m, 9000.0 + 100 * m) for m in range(1, 13)) + (
        ReferenceMonth(2024, 1, 9500.0),
        ReferenceMonth(2024, 2, 9400.0),
        ReferenceMonth(2024, 3, 9800.0),
    )
    entries = (
        DayEntry(date(2024, 4, 1), 410.0),
        DayEntry(date(2024, 4, 2), 385.5),
        DayEntry(date(2024, 4, 3), None),
        DayEntry(date(2024, 4, 4), 0.0),
        DayEntry(date(2024, 4, 8), 402.25),
        DayEntry(date(2024, 4, 15), 450.0),
        DayEntry(date(2024, 4, 16), 398.0),
    )
    expenses = (
        ExpenseTransaction(date(2024, 4, 2), "COGS", 160.0),
        ExpenseTransaction(date(2024, 4, 5), "OPEX", 1200.0),
        ExpenseTransaction(date(2024, 4, 12), "COGS", 140.0),
        ExpenseTransaction(date(2024, 3, 15), "CAPEX", 1200.0, spread_months=12),
    )
    snapshots = (CashSnapshot(date(2024, 4, 1), 12000.0),)
    return LedgerRecords(
        day_entries=entries,
        expenses=expenses,
        reference_months=references,
        cash_snapshots=snapshots,
    )
