"""Spread (amortized) expense normalization."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from healthmeter.calendar_utils import months_between, to_date
from healthmeter.models import ExpenseTransaction
from healthmeter.money import from_cents, to_cents


def monthly_portion(amount: float, spread_months: int | None) -> float:
    """Straight-line monthly share of a spread expense, rounded to cents."""
    if spread_months is None or spread_months <= 0:
        return from_cents(to_cents(amount))
    return from_cents(_portion_cents(amount, spread_months))


def _portion_cents(amount: float, spread_months: int) -> int:
    return to_cents(float(amount) / float(spread_months))


def is_active_in_month(start, spread_months: int | None, year: int, month: int) -> bool:
    """True when (year, month) falls in the half-open window [start, start + N months).

    Expenses spread over fewer than two months are one-time and never active.
    """
    if spread_months is None or spread_months < 2:
        return False
    offset = months_between(to_date(start), date(int(year), int(month), 1))
    return 0 <= offset < int(spread_months)


def _in_month(expense: ExpenseTransaction, year: int, month: int) -> bool:
    d = to_date(expense.date)
    return d.year == int(year) and d.month == int(month)


def spread_portion_cents(expenses: Iterable[ExpenseTransaction], category: str, year: int, month: int) -> int:
    total = 0
    for expense in expenses:
        if expense.category != category:
            continue
        if is_active_in_month(expense.date, expense.spread_months, year, month):
            total += _portion_cents(expense.amount, int(expense.spread_months))
    return total


def normalized_cogs(expenses: Iterable[ExpenseTransaction], year: int, month: int) -> float:
    """One-time COGS logged in the month plus the monthly portion of every active spread COGS."""
    expenses = list(expenses)
    one_time = sum(
        to_cents(e.amount)
        for e in expenses
        if e.category == "COGS" and not e.is_spread and _in_month(e, year, month)
    )
    return from_cents(one_time + spread_portion_cents(expenses, "COGS", year, month))


def normalized_capex(expenses: Iterable[ExpenseTransaction], year: int, month: int) -> float:
    """Monthly portions of active spread CAPEX. One-time CAPEX stays on the cash view."""
    return from_cents(spread_portion_cents(expenses, "CAPEX", year, month))


def cash_category_total(expenses: Iterable[ExpenseTransaction], category: str, year: int, month: int) -> float:
    """Cash-basis total of a category in a month, spread expenses at face value."""
    return from_cents(
        sum(to_cents(e.amount) for e in expenses if e.category == category and _in_month(e, year, month))
    )
