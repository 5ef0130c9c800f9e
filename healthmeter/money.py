"""Fixed-precision money helpers (integer cents)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

import numpy as np


def to_cents(amount: float | int | Decimal | None) -> int:
    """Dollars to integer cents, half away from zero. None counts as zero."""
    if amount is None:
        return 0
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int | np.integer) -> float:
    return float(Decimal(int(cents)) / 100)


def cents_to_dollars(cents: np.ndarray) -> np.ndarray:
    return np.asarray(cents, dtype=np.int64).astype(float) / 100.0


def allocate_cents(total_cents: int, weights: Iterable[float]) -> np.ndarray:
    """Split total_cents across weights with the largest-remainder method.

    Shares always sum to total_cents exactly. Zero weights get zero. When every
    weight is zero the result is all zeros.
    """
    w = np.asarray(list(weights), dtype=float)
    out = np.zeros(len(w), dtype=np.int64)
    w_total = float(w.sum()) if len(w) else 0.0
    if w_total <= 0 or total_cents == 0:
        return out

    sign = -1 if total_cents < 0 else 1
    magnitude = abs(int(total_cents))
    exact = magnitude * (w / w_total)
    base = np.floor(exact).astype(np.int64)
    shortfall = magnitude - int(base.sum())
    if shortfall > 0:
        remainders = exact - base
        # Stable sort keeps earlier days first among equal remainders.
        order = np.argsort(-remainders, kind="stable")
        eligible = [i for i in order if w[i] > 0]
        for i in eligible[:shortfall]:
            base[i] += 1
    return sign * base


def dollars_to_cents_array(values) -> np.ndarray:
    """Exact inverse of cents_to_dollars for values that came from cents."""
    return np.rint(np.asarray(values, dtype=float) * 100.0).astype(np.int64)


def apply_rate_cents(cents: np.ndarray, rate: float) -> np.ndarray:
    """cents * rate rounded half away from zero, elementwise."""
    scaled = np.asarray(cents, dtype=float) * float(rate)
    return (np.sign(scaled) * np.floor(np.abs(scaled) + 0.5)).astype(np.int64)
