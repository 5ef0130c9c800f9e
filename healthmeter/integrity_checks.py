"""Continuity series integrity checks."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

import healthmeter.runtime_logging as runtime_logging
from healthmeter.calendar_utils import window_dates
from healthmeter.continuity import ContinuityResult
from healthmeter.money import dollars_to_cents_array, to_cents


def _finding(
    check: str,
    max_abs_delta: float,
    date_label: str,
    lhs_name: str,
    rhs_name: str,
) -> dict[str, Any]:
    return {
        "Check": check,
        "Max Abs Delta": float(max_abs_delta),
        "Date of Max Delta": date_label,
        "LHS": lhs_name,
        "RHS": rhs_name,
    }


def _date_of_max_delta(dates, delta: np.ndarray) -> str:
    if len(delta) == 0:
        return ""
    idx = int(np.argmax(np.abs(delta)))
    if dates is not None and idx < len(dates):
        return pd.Timestamp(dates[idx]).date().isoformat()
    return str(idx)


def _check_cents_identity(
    findings: list[dict[str, Any]],
    dates,
    check_name: str,
    lhs_name: str,
    rhs_name: str,
    lhs_cents: np.ndarray,
    rhs_cents: np.ndarray,
    tol_cents: int,
) -> None:
    delta = np.asarray(lhs_cents, dtype=np.int64) - np.asarray(rhs_cents, dtype=np.int64)
    if len(delta) == 0:
        return
    max_abs = int(np.max(np.abs(delta)))
    if max_abs > int(tol_cents):
        findings.append(_finding(check_name, max_abs / 100.0, _date_of_max_delta(dates, delta), lhs_name, rhs_name))


def run_continuity_checks(result: ContinuityResult, tol_cents: int = 0) -> list[dict[str, Any]]:
    """Return integrity findings for a continuity result (empty list means all checks passed)."""
    merged = result.merged_balance_series
    if not isinstance(merged, pd.DataFrame) or merged.empty:
        return [{"Check": "Merged series not available", "Max Abs Delta": np.nan, "Date of Max Delta": "", "LHS": "", "RHS": ""}]

    findings: list[dict[str, Any]] = []
    start = pd.Timestamp(result.stats["window_start"]).date()
    end = pd.Timestamp(result.stats["window_end"]).date()
    expected = window_dates(start, end)
    merged_dates = pd.DatetimeIndex(merged["Date"])

    if len(merged_dates) != len(expected) or not merged_dates.equals(expected):
        missing = expected.difference(merged_dates)
        findings.append(
            _finding(
                "Merged coverage",
                float(abs(len(expected) - len(merged_dates)) or len(missing)),
                missing[0].date().isoformat() if len(missing) else "",
                "Merged dates",
                "Every day of the window",
            )
        )

    merged_cents = dollars_to_cents_array(merged["Balance"])
    actual = result.actual_balance_series
    if not actual.empty:
        position = {d: i for i, d in enumerate(merged_dates)}
        idx = [position.get(pd.Timestamp(d)) for d in actual["Date"]]
        present = [i for i in idx if i is not None]
        if len(present) != len(idx):
            findings.append(_finding("Actual inside window", float(len(idx) - len(present)), "", "Actual dates", "Window"))
        keep = np.array([i is not None for i in idx], dtype=bool)
        _check_cents_identity(
            findings,
            np.asarray(actual["Date"])[keep],
            "Merged equals actual",
            "Merged Balance",
            "Actual Balance",
            merged_cents[present],
            dollars_to_cents_array(actual["Balance"])[keep],
            tol_cents,
        )

    deltas = result.weekly_deltas
    if not deltas.empty:
        _check_cents_identity(
            findings,
            [end],
            "Weekly delta sum",
            "Sum of weekly deltas",
            "Merged[end] - Merged[start]",
            np.array([int(dollars_to_cents_array(deltas["Delta"]).sum())]),
            np.array([int(merged_cents[-1] - merged_cents[0])]),
            tol_cents,
        )

    est = result.est_balance_series
    if not est.empty:
        _check_cents_identity(
            findings,
            [start],
            "Estimated anchor",
            "Estimated Balance[start]",
            "Anchor amount",
            dollars_to_cents_array(est["Balance"].iloc[:1]),
            np.array([to_cents(result.anchor.anchor_amount)]),
            tol_cents,
        )

    if findings:
        runtime_logging.append_runtime_event(
            level="WARNING",
            event="integrity_findings",
            message="Continuity series failed integrity checks.",
            context={"checks": [f["Check"] for f in findings], "window_start": start.isoformat(), "window_end": end.isoformat()},
        )
    return findings
