from __future__ import annotations

"""
Empirical market-growth percentiles.

Notation
- h: horizon in years
- G_h: cumulative growth multiple over h years starting at one history entry
- cagr = G_h ** (1 / h) - 1
"""

from dataclasses import dataclass, field
import math
from typing import Iterable, Mapping

LONGEST_TABULATED_HORIZON = 80
LONG_RUN_MARKET_RATE = 0.104

INDEX_BASIS_N_MINUS_ONE = "n_minus_one"
INDEX_BASIS_N = "n"
INDEX_BASES = (INDEX_BASIS_N_MINUS_ONE, INDEX_BASIS_N)


@dataclass(frozen=True)
class MarketHistoryEntry:
    """
    One monthly record from the market history sheet.

    Units
    - year / month: calendar
    - amount: index level (USD)
    - growth: {h: G_h}, only horizons that fit inside the history are present
    """

    year: int
    month: int
    amount: float
    growth: Mapping[int, float] = field(default_factory=dict)


def growth_distribution(history: Iterable[MarketHistoryEntry], horizon_years: int) -> list[float]:
    """
    Collect every present G_h for one horizon, sorted ascending.
    """
    values = [
        float(entry.growth[horizon_years])
        for entry in history
        if entry.growth.get(horizon_years) is not None
    ]
    values.sort()
    return values


def _percentile_index(percentile: float, count: int, index_basis: str) -> int:
    ratio = min(max(float(percentile), 0.0), 100.0) / 100.0
    if index_basis == INDEX_BASIS_N_MINUS_ONE:
        return int(math.floor(ratio * (count - 1)))
    if index_basis == INDEX_BASIS_N:
        return min(int(math.floor(ratio * count)), count - 1)
    raise ValueError(f"Unsupported percentile index basis: {index_basis}")


def percentile_growth(
    history: Iterable[MarketHistoryEntry] | None,
    horizon_years: int,
    percentile: float,
    index_basis: str = INDEX_BASIS_N_MINUS_ONE,
) -> float | None:
    """
    Return the empirical percentile of G_h, or None when no entry carries h.

    Units
    - horizon_years: years
    - percentile: 0-100, clamped before use
    - return: growth multiple (e.g. 2.5 means the index grew 150%)
    """
    if history is None:
        return None
    values = growth_distribution(history, horizon_years)
    if not values:
        return None
    return values[_percentile_index(percentile, len(values), index_basis)]


def annualized_rate(growth_factor: float | None, years: float) -> float | None:
    """
    Convert a total growth multiple over `years` into an annual rate.
    """
    if growth_factor is None or years <= 0 or growth_factor <= 0:
        return None
    return float(growth_factor) ** (1.0 / years) - 1.0


def cagr_for_percentile(
    history: Iterable[MarketHistoryEntry] | None,
    percentile: float,
    years: int,
    index_basis: str = INDEX_BASIS_N_MINUS_ONE,
) -> float | None:
    """
    Annualized rate at a percentile of the h-year outcomes.

    Horizons beyond the longest tabulated one fall back to the long-run rate.
    """
    if years > LONGEST_TABULATED_HORIZON:
        return LONG_RUN_MARKET_RATE
    growth = percentile_growth(history, years, percentile, index_basis=index_basis)
    return annualized_rate(growth, years)
