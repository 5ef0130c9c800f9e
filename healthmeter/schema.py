"""Settings and record migration for API payloads."""

from __future__ import annotations

import json
import math
from copy import deepcopy
from datetime import date, datetime
from typing import Any, Callable

import pandas as pd

from healthmeter.defaults import DEFAULT_SETTINGS, SETTINGS_KEY_ALIASES
from healthmeter.models import (
    CAPITAL_TYPES,
    EXPENSE_CATEGORIES,
    WEEKDAY_KEYS,
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseTransaction,
    LedgerRecords,
    NutSnapshot,
    OpenHoursTemplate,
    ReferenceMonth,
    Settings,
    YearStartAnchor,
)

PCT_KEYS = ("target_cogs_pct", "target_fees_pct")
MONEY_KEYS = (
    "monthly_fixed_nut",
    "monthly_roof_fund",
    "monthly_owner_draw_goal",
    "operating_floor_cash",
    "target_reserve_cash",
)
BOOL_KEYS = ("enable_true_health", "enable_spreading")
DATE_KEYS = ("year_start_cash_date", "business_start_date")


def _parse_date(value: Any) -> date | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.date()


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num):
        return None
    return num


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        txt = value.strip().lower()
        if txt in {"1", "true", "yes", "y", "on"}:
            return True
        if txt in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _field(row: dict, *names: str, default: Any = None) -> Any:
    for name in names:
        if name in row:
            return row[name]
    return default


def parse_open_hours(raw: Any, warnings: list[str]) -> OpenHoursTemplate:
    """Open-hours template from a dict or a JSON text blob, hours clamped to [0, 24]."""
    default = DEFAULT_SETTINGS["open_hours"]
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            warnings.append("open_hours is not valid JSON; reset to default.")
            return OpenHoursTemplate.from_dict(default)
    if not isinstance(data, dict):
        warnings.append("open_hours is not an object; reset to default.")
        return OpenHoursTemplate.from_dict(default)

    hours: dict[str, float] = {}
    for key in WEEKDAY_KEYS:
        if key not in data:
            hours[key] = 0.0
            continue
        value = _parse_number(data[key])
        if value is None:
            warnings.append(f"open_hours.{key} invalid and reset to default.")
            value = float(default[key])
        elif value < 0 or value > 24:
            warnings.append(f"open_hours.{key} clamped to [0, 24].")
            value = min(24.0, max(0.0, value))
        hours[key] = value
    return OpenHoursTemplate.from_dict(hours)


def migrate_settings(raw_settings: Any) -> tuple[Settings, list[str], list[str]]:
    """Settings from a stored or API payload, with defaults and clamping applied."""
    warnings: list[str] = []
    unknown_keys: list[str] = []
    values = deepcopy(DEFAULT_SETTINGS)
    payload = raw_settings if isinstance(raw_settings, dict) else {}
    if raw_settings is not None and not isinstance(raw_settings, dict):
        warnings.append("Settings payload is not an object; defaults used.")

    for k, v in payload.items():
        key = SETTINGS_KEY_ALIASES.get(k, k)
        if key in values:
            values[key] = v
        else:
            unknown_keys.append(k)

    open_hours = parse_open_hours(values["open_hours"], warnings)

    for key in PCT_KEYS:
        num = _parse_number(values[key])
        if num is None:
            warnings.append(f"{key} invalid and reset to default.")
            num = float(DEFAULT_SETTINGS[key])
        elif num < 0 or num > 1:
            warnings.append(f"{key} clamped to [0, 1].")
        values[key] = float(min(1.0, max(0.0, num)))

    for key in MONEY_KEYS:
        num = _parse_number(values[key])
        if num is None:
            warnings.append(f"{key} invalid and reset to default.")
            num = float(DEFAULT_SETTINGS[key])
        elif num < 0:
            warnings.append(f"{key} must not be negative; clamped to 0.")
        values[key] = max(0.0, num)

    for key in BOOL_KEYS:
        flag = _parse_bool(values[key])
        if flag is None:
            warnings.append(f"{key} invalid and reset to default.")
            flag = bool(DEFAULT_SETTINGS[key])
        values[key] = flag

    close_hour = values["store_close_hour"]
    if close_hour is not None:
        num = _parse_number(close_hour)
        if num is None:
            warnings.append("store_close_hour invalid and reset to default.")
            num = float(DEFAULT_SETTINGS["store_close_hour"])
        elif num < 0 or num > 23:
            warnings.append("store_close_hour clamped to [0, 23].")
        values["store_close_hour"] = int(min(23, max(0, int(num))))

    if values["year_start_cash_amount"] is not None:
        num = _parse_number(values["year_start_cash_amount"])
        if num is None:
            warnings.append("year_start_cash_amount invalid; ignored.")
        values["year_start_cash_amount"] = num

    for key in DATE_KEYS:
        if values[key] is None:
            continue
        parsed = _parse_date(values[key])
        if parsed is None:
            warnings.append(f"{key} is not a valid date; ignored.")
        values[key] = parsed

    values["open_hours"] = open_hours
    return Settings(**values), warnings, sorted(unknown_keys)


def _parse_rows(
    rows: Any, key_name: str, parse_row: Callable[[dict], Any], warnings: list[str]
) -> list:
    parsed: list = []
    if rows is None:
        return parsed
    if isinstance(rows, pd.DataFrame):
        rows = rows.to_dict(orient="records")
    if not isinstance(rows, (list, tuple)):
        warnings.append(f"{key_name} ignored because it is not a list.")
        return parsed
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            warnings.append(f"{key_name}[{idx}] ignored because entry is not an object.")
            continue
        try:
            parsed.append(parse_row(row))
        except ValueError as exc:
            warnings.append(f"{key_name}[{idx}] ignored: {exc}")
    return parsed


def _required_date(row: dict, *names: str) -> date:
    parsed = _parse_date(_field(row, *names))
    if parsed is None:
        raise ValueError("invalid date.")
    return parsed


def _required_amount(row: dict, *names: str) -> float:
    amount = _parse_number(_field(row, *names))
    if amount is None:
        raise ValueError("invalid amount.")
    return amount


def _day_entry(row: dict) -> DayEntry:
    raw = _field(row, "netSalesExTax", "net_sales_ex_tax")
    sales = None
    if raw is not None:
        sales = _parse_number(raw)
        if sales is None:
            raise ValueError("invalid net sales.")
    return DayEntry(date=_required_date(row, "date"), net_sales_ex_tax=sales)


def _expense(row: dict) -> ExpenseTransaction:
    amount = _required_amount(row, "amount")
    if amount < 0:
        raise ValueError("amount must not be negative.")
    category = str(_field(row, "category", default="OTHER")).strip().upper()
    if category not in EXPENSE_CATEGORIES:
        category = "OTHER"
    spread = _field(row, "spreadMonths", "spread_months")
    spread_months = None
    if spread is not None:
        num = _parse_number(spread)
        if num is None or num < 0:
            raise ValueError("invalid spread months.")
        spread_months = int(num)
    return ExpenseTransaction(
        date=_required_date(row, "date"),
        category=category,
        amount=amount,
        spread_months=spread_months,
        spread_type=_field(row, "spreadType", "spread_type"),
    )


def _reference_month(row: dict) -> ReferenceMonth:
    year = _parse_number(_field(row, "year"))
    month = _parse_number(_field(row, "month"))
    if year is None or month is None or not (1 <= int(month) <= 12):
        raise ValueError("invalid year or month.")
    amount = _required_amount(row, "referenceNetSalesExTax", "reference_net_sales_ex_tax")
    return ReferenceMonth(year=int(year), month=int(month), reference_net_sales_ex_tax=amount)


def _cash_snapshot(row: dict) -> CashSnapshot:
    return CashSnapshot(
        date=_required_date(row, "date", "asOf", "as_of"),
        amount=_required_amount(row, "amount"),
        recorded_at=_parse_datetime(_field(row, "recordedAt", "recorded_at", "createdAt", "created_at")),
    )


def _cash_injection(row: dict) -> CashInjection:
    amount = _required_amount(row, "amount")
    if amount < 0:
        raise ValueError("amount must not be negative.")
    kind = str(_field(row, "type", default="injection") or "injection").strip().lower()
    if kind not in CAPITAL_TYPES:
        raise ValueError(f"unknown capital type {kind!r}.")
    return CashInjection(date=_required_date(row, "date"), amount=amount, type=kind)


def _nut_snapshot(row: dict) -> NutSnapshot:
    amount = _required_amount(row, "amount", "monthlyFixedNut", "monthly_fixed_nut")
    if amount < 0:
        raise ValueError("amount must not be negative.")
    return NutSnapshot(effective_date=_required_date(row, "effectiveDate", "effective_date"), amount=amount)


def _year_start_anchor(row: dict) -> YearStartAnchor:
    year = _parse_number(_field(row, "year"))
    if year is None:
        raise ValueError("invalid year.")
    anchor_date = None
    if _field(row, "date") is not None:
        anchor_date = _required_date(row, "date")
    return YearStartAnchor(year=int(year), amount=_required_amount(row, "amount"), date=anchor_date)


def parse_day_entries(rows: Any, warnings: list[str]) -> list[DayEntry]:
    return _parse_rows(rows, "day_entries", _day_entry, warnings)


def parse_expenses(rows: Any, warnings: list[str]) -> list[ExpenseTransaction]:
    return _parse_rows(rows, "expenses", _expense, warnings)


def parse_reference_months(rows: Any, warnings: list[str]) -> list[ReferenceMonth]:
    """Reference months, one per (year, month); a later duplicate replaces an earlier one."""
    by_key: dict[tuple[int, int], ReferenceMonth] = {}
    for ref in _parse_rows(rows, "reference_months", _reference_month, warnings):
        key = (ref.year, ref.month)
        if key in by_key:
            warnings.append(f"reference_months has duplicate {ref.year:04d}-{ref.month:02d}; last one kept.")
        by_key[key] = ref
    return list(by_key.values())


def parse_cash_snapshots(rows: Any, warnings: list[str]) -> list[CashSnapshot]:
    return _parse_rows(rows, "cash_snapshots", _cash_snapshot, warnings)


def parse_cash_injections(rows: Any, warnings: list[str]) -> list[CashInjection]:
    return _parse_rows(rows, "cash_injections", _cash_injection, warnings)


def parse_nut_snapshots(rows: Any, warnings: list[str]) -> list[NutSnapshot]:
    return _parse_rows(rows, "nut_snapshots", _nut_snapshot, warnings)


def parse_year_start_anchors(rows: Any, warnings: list[str]) -> list[YearStartAnchor]:
    return _parse_rows(rows, "year_start_anchors", _year_start_anchor, warnings)


def build_ledger(payload: Any) -> tuple[LedgerRecords, list[str]]:
    """LedgerRecords from a dict of row lists keyed by record kind (camelCase or snake_case)."""
    warnings: list[str] = []
    data = payload if isinstance(payload, dict) else {}
    if payload is not None and not isinstance(payload, dict):
        warnings.append("Ledger payload is not an object; no records loaded.")
    records = LedgerRecords(
        day_entries=tuple(parse_day_entries(_field(data, "dayEntries", "day_entries"), warnings)),
        expenses=tuple(parse_expenses(_field(data, "expenses", "expenseTransactions"), warnings)),
        reference_months=tuple(parse_reference_months(_field(data, "referenceMonths", "reference_months"), warnings)),
        cash_snapshots=tuple(parse_cash_snapshots(_field(data, "cashSnapshots", "cash_snapshots"), warnings)),
        year_start_anchors=tuple(
            parse_year_start_anchors(_field(data, "yearStartAnchors", "year_start_anchors"), warnings)
        ),
        cash_injections=tuple(parse_cash_injections(_field(data, "cashInjections", "cash_injections"), warnings)),
        nut_snapshots=tuple(parse_nut_snapshots(_field(data, "nutSnapshots", "nut_snapshots"), warnings)),
    )
    return records, warnings
