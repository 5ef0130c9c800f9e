from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import healthmeter.runtime_logging as runtime_logging
from healthmeter.anchor import (
    METHOD_EXPLICIT,
    METHOD_NONE,
    METHOD_ROLLED_BACKWARD,
    METHOD_ROLLED_FORWARD,
    infer_anchor,
    net_flow_cents,
)
from healthmeter.models import (
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseTransaction,
    LedgerRecords,
    Settings,
    YearStartAnchor,
)


def test_snapshot_after_start_with_no_flows_rolls_back_unchanged():
    records = LedgerRecords(cash_snapshots=(CashSnapshot(date(2024, 1, 10), 10000.0),))
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    assert anchor.method == METHOD_ROLLED_BACKWARD
    assert anchor.anchor_amount == 10000.0
    assert anchor.anchor_date == date(2024, 1, 1)
    assert anchor.source_date == date(2024, 1, 10)
    assert anchor.confidence == "MEDIUM"


def test_rolled_backward_removes_flows_after_the_start():
    records = LedgerRecords(
        day_entries=(DayEntry(date(2024, 1, 1), 999.0), DayEntry(date(2024, 1, 5), 500.0), DayEntry(date(2024, 1, 6), None)),
        expenses=(ExpenseTransaction(date(2024, 1, 8), "OPEX", 200.0),),
        cash_injections=(CashInjection(date(2024, 1, 9), 1000.0),),
        cash_snapshots=(CashSnapshot(date(2024, 1, 10), 10000.0),),
    )
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    # The start day's own flow is inside the anchor, so only Jan 2..10 is removed.
    assert anchor.anchor_amount == 10000.0 - 500.0 + 200.0 - 1000.0


def test_rolled_forward_from_snapshot_before_start():
    records = LedgerRecords(
        day_entries=(DayEntry(date(2023, 12, 28), 300.0), DayEntry(date(2024, 1, 1), 150.0)),
        expenses=(ExpenseTransaction(date(2023, 12, 30), "COGS", 120.0),),
        cash_injections=(CashInjection(date(2023, 12, 29), 50.0, type="withdrawal"),),
        cash_snapshots=(CashSnapshot(date(2023, 12, 27), 5000.0),),
    )
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    assert anchor.method == METHOD_ROLLED_FORWARD
    assert anchor.anchor_amount == 5000.0 + 300.0 - 50.0 - 120.0 + 150.0


def test_closest_snapshot_wins_when_snapshots_straddle_the_start():
    records = LedgerRecords(
        cash_snapshots=(
            CashSnapshot(date(2023, 12, 1), 1000.0),
            CashSnapshot(date(2024, 1, 3), 3000.0),
            CashSnapshot(date(2024, 2, 1), 9000.0),
        )
    )
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    assert anchor.method == METHOD_ROLLED_BACKWARD
    assert anchor.anchor_amount == 3000.0


def test_distance_tie_prefers_snapshot_on_or_before_start():
    records = LedgerRecords(
        cash_snapshots=(CashSnapshot(date(2024, 1, 12), 2000.0), CashSnapshot(date(2024, 1, 8), 1000.0))
    )
    anchor = infer_anchor(date(2024, 1, 10), records, Settings())
    assert anchor.method == METHOD_ROLLED_FORWARD
    assert anchor.anchor_amount == 1000.0


def test_same_date_snapshots_resolve_to_latest_entry():
    records = LedgerRecords(
        cash_snapshots=(
            CashSnapshot(date(2024, 1, 1), 700.0, recorded_at=datetime(2024, 1, 2, 9)),
            CashSnapshot(date(2024, 1, 1), 800.0, recorded_at=datetime(2024, 1, 1, 9)),
        )
    )
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    assert anchor.anchor_amount == 700.0


def test_explicit_anchor_always_wins():
    records = LedgerRecords(
        cash_snapshots=(CashSnapshot(date(2024, 1, 1), 10000.0),),
        year_start_anchors=(YearStartAnchor(2024, 7500.0),),
    )
    anchor = infer_anchor(date(2024, 1, 1), records, Settings())
    assert anchor.method == METHOD_EXPLICIT
    assert anchor.anchor_amount == 7500.0
    assert not anchor.is_inferred


def test_explicit_anchor_before_the_start_rolls_forward_and_beats_snapshots():
    records = LedgerRecords(
        day_entries=(DayEntry(date(2024, 1, 15), 500.0), DayEntry(date(2024, 3, 5), 999.0)),
        expenses=(ExpenseTransaction(date(2024, 2, 1), "OPEX", 200.0),),
        cash_snapshots=(CashSnapshot(date(2024, 3, 10), 10000.0),),
        year_start_anchors=(YearStartAnchor(2024, 7500.0),),
    )
    anchor = infer_anchor(date(2024, 3, 1), records, Settings())
    assert anchor.method == METHOD_EXPLICIT
    assert anchor.anchor_amount == 7500.0 + 500.0 - 200.0
    assert anchor.anchor_date == date(2024, 3, 1)
    assert anchor.source_date == date(2024, 1, 1)


def test_settings_year_start_amount_after_the_start_rolls_backward():
    settings = Settings(year_start_cash_amount=50000.0, year_start_cash_date=date(2024, 1, 1))
    records = LedgerRecords(
        day_entries=(DayEntry(date(2023, 12, 20), 300.0),),
        cash_snapshots=(CashSnapshot(date(2023, 3, 2), 10000.0),),
    )
    anchor = infer_anchor(date(2023, 3, 1), records, settings)
    assert anchor.method == METHOD_EXPLICIT
    assert anchor.anchor_amount == 49700.0
    assert anchor.confidence == "HIGH"


def test_settings_year_start_amount_without_a_date_covers_any_start_in_its_year():
    settings = Settings(year_start_cash_amount=4200.0)
    records = LedgerRecords(cash_snapshots=(CashSnapshot(date(2024, 6, 2), 10000.0),))
    anchor = infer_anchor(date(2024, 6, 1), records, settings)
    assert anchor.method == METHOD_EXPLICIT
    assert anchor.source_date == date(2024, 1, 1)
    assert anchor.anchor_amount == 4200.0


def test_no_data_anchor_is_zero_and_logged(tmp_path, monkeypatch):
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", Path(tmp_path) / "runtime_events.jsonl")

    anchor = infer_anchor(date(2024, 1, 1), LedgerRecords(), Settings())
    assert anchor.method == METHOD_NONE
    assert anchor.anchor_amount == 0.0
    assert not anchor.is_anchored
    assert anchor.confidence == "LOW"
    events = runtime_logging.read_runtime_events(limit=5)
    assert events[-1]["event"] == "anchor_unresolved"


def test_net_flow_is_empty_for_reversed_range():
    records = LedgerRecords(day_entries=(DayEntry(date(2024, 1, 5), 500.0),))
    assert net_flow_cents(records, date(2024, 1, 10), date(2024, 1, 1)) == 0
    assert net_flow_cents(records, date(2024, 1, 4), date(2024, 1, 5)) == 50000
