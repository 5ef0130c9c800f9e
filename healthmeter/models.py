"""Record types consumed by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

EXPENSE_CATEGORIES = {"COGS", "OPEX", "TAX", "CAPEX", "OWNER_DRAW", "OTHER"}
CAPITAL_TYPES = {"injection", "withdrawal", "owner_draw"}


@dataclass(frozen=True)
class OpenHoursTemplate:
    """Open hours for each weekday. A zero-hour day is closed."""

    mon: float = 0.0
    tue: float = 0.0
    wed: float = 0.0
    thu: float = 0.0
    fri: float = 0.0
    sat: float = 0.0
    sun: float = 0.0

    def hours_for_weekday(self, weekday: int) -> float:
        """Hours for a Python weekday index (Monday is 0)."""
        return float(getattr(self, WEEKDAY_KEYS[weekday]))

    def as_dict(self) -> dict[str, float]:
        return {key: float(getattr(self, key)) for key in WEEKDAY_KEYS}

    @classmethod
    def from_dict(cls, data: dict) -> "OpenHoursTemplate":
        return cls(**{key: float(data.get(key, 0.0)) for key in WEEKDAY_KEYS})


@dataclass(frozen=True)
class DayEntry:
    date: date
    net_sales_ex_tax: Optional[float] = None

    @property
    def is_entered(self) -> bool:
        # A logged zero is still an entry; only None means "not yet entered".
        return self.net_sales_ex_tax is not None


@dataclass(frozen=True)
class ExpenseTransaction:
    date: date
    category: str
    amount: float
    spread_months: Optional[int] = None
    spread_type: Optional[str] = None

    @property
    def is_spread(self) -> bool:
        return self.spread_months is not None and self.spread_months >= 2


@dataclass(frozen=True)
class ReferenceMonth:
    year: int
    month: int
    reference_net_sales_ex_tax: float


@dataclass(frozen=True)
class CashSnapshot:
    date: date
    amount: float
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class YearStartAnchor:
    year: int
    amount: float
    date: Optional[date] = None

    @property
    def effective_date(self) -> date:
        return self.date or date(int(self.year), 1, 1)


@dataclass(frozen=True)
class CashInjection:
    date: date
    amount: float
    type: str = "injection"

    @property
    def signed_amount(self) -> float:
        if self.type == "injection":
            return float(self.amount)
        return -float(self.amount)

    @property
    def invested_amount(self) -> float:
        """Contribution to capital invested. Owner draws move cash but do not reduce it."""
        if self.type == "owner_draw":
            return 0.0
        return self.signed_amount


@dataclass(frozen=True)
class NutSnapshot:
    effective_date: date
    amount: float


@dataclass(frozen=True)
class Settings:
    target_cogs_pct: float = 0.35
    target_fees_pct: float = 0.03
    monthly_fixed_nut: float = 15500.0
    monthly_roof_fund: float = 0.0
    monthly_owner_draw_goal: float = 0.0
    open_hours: OpenHoursTemplate = field(default_factory=OpenHoursTemplate)
    store_close_hour: Optional[int] = None
    enable_true_health: bool = True
    enable_spreading: bool = True
    year_start_cash_amount: Optional[float] = None
    year_start_cash_date: Optional[date] = None
    operating_floor_cash: float = 0.0
    target_reserve_cash: float = 100000.0
    business_start_date: Optional[date] = None


@dataclass(frozen=True)
class LedgerRecords:
    """All records of one organization handed to a single engine invocation."""

    day_entries: tuple[DayEntry, ...] = ()
    expenses: tuple[ExpenseTransaction, ...] = ()
    reference_months: tuple[ReferenceMonth, ...] = ()
    cash_snapshots: tuple[CashSnapshot, ...] = ()
    year_start_anchors: tuple[YearStartAnchor, ...] = ()
    cash_injections: tuple[CashInjection, ...] = ()
    nut_snapshots: tuple[NutSnapshot, ...] = ()


@dataclass(frozen=True)
class AsOfClock:
    """Explicit wall clock threaded into every time-dependent computation."""

    now: datetime

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def hour(self) -> int:
        return int(self.now.hour)

    @classmethod
    def frozen_at(cls, day: date, hour: int = 12) -> "AsOfClock":
        return cls(datetime(day.year, day.month, day.day) + timedelta(hours=hour))
