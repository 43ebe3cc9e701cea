from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from projection.market import (  # noqa: E402
    LONG_RUN_MARKET_RATE,
    MarketHistoryEntry,
    annualized_rate,
    cagr_for_percentile,
    growth_distribution,
    percentile_growth,
)


def _history() -> list[MarketHistoryEntry]:
    growths = [3.0, 1.0, None, 2.0, 5.0, 4.0]
    entries = []
    for month, growth in enumerate(growths, start=1):
        table = {1: 1.1}
        if growth is not None:
            table[10] = growth
        entries.append(MarketHistoryEntry(year=2000, month=month, amount=100.0 + month, growth=table))
    return entries


def test_growth_distribution_skips_absent_horizons_and_sorts() -> None:
    assert growth_distribution(_history(), 10) == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert growth_distribution(_history(), 20) == []


@pytest.mark.parametrize(
    ("percentile", "expected"),
    [
        (0, 1.0),
        (25, 2.0),
        (40, 2.0),
        (50, 3.0),
        (100, 5.0),
        (150, 5.0),
        (-10, 1.0),
    ],
)
def test_percentile_growth_indexes_n_minus_one(percentile: float, expected: float) -> None:
    assert percentile_growth(_history(), 10, percentile) == expected


@pytest.mark.parametrize(
    ("percentile", "expected"),
    [
        (0, 1.0),
        (40, 3.0),
        (50, 3.0),
        (100, 5.0),
    ],
)
def test_percentile_growth_indexes_n_clamped(percentile: float, expected: float) -> None:
    assert percentile_growth(_history(), 10, percentile, index_basis="n") == expected


def test_percentile_growth_without_data_is_unknown() -> None:
    assert percentile_growth(_history(), 20, 50) is None
    assert percentile_growth([], 10, 50) is None
    assert percentile_growth(None, 10, 50) is None


def test_percentile_growth_rejects_unknown_basis() -> None:
    with pytest.raises(ValueError):
        percentile_growth(_history(), 10, 50, index_basis="midpoint")


def test_annualized_rate() -> None:
    assert annualized_rate(4.0, 2) == pytest.approx(1.0)
    assert annualized_rate(1.0, 10) == pytest.approx(0.0)
    assert annualized_rate(None, 10) is None
    assert annualized_rate(2.0, 0) is None
    assert annualized_rate(2.0, -1) is None


def test_cagr_for_percentile() -> None:
    assert cagr_for_percentile(_history(), 50, 10) == pytest.approx(3.0 ** (1 / 10) - 1)
    assert cagr_for_percentile(_history(), 50, 20) is None
    assert cagr_for_percentile(_history(), 50, 81) == LONG_RUN_MARKET_RATE
