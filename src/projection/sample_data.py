from __future__ import annotations  # 型注釈の前方参照を許可し、循環参照を避けるため

"""
Synthetic reference workbooks with the same layout as the production files.

Purpose
- Run the CLI and the tests end to end without the licensed rate, mortality
  and market files.
- Output is reproducible: the same seed gives identical workbooks.

Layouts written
- RateTables.xlsx / LI_RATES: 4 header rows, then one positional row per age
- Mortality.xlsx / Mortality: male block (header row 0), one blank row,
  female block with its own header row
- MarketHistory.xlsx / Market: monthly history, two blank rows, then a
  percentile summary block that readers must exclude
"""

from dataclasses import dataclass  # 入力パラメータを構造化するため
import math
from pathlib import Path  # ファイルパスをOS非依存で扱うため

import numpy as np  # 乱数と配列計算に使うため
from openpyxl import Workbook  # Excelファイル出力に使うため

from .rate_brackets import MINOR_AGE_LIMIT, UNCAPPED_CEILING
from .reference_data import ReferenceDataSettings, RowRange

ADULT_CEILINGS = (34_999, 59_999, 119_999)
MINOR_CEILINGS = (15_099, 59_999, UNCAPPED_CEILING)
BRACKET_DISCOUNTS = (1.0, 0.9, 0.8, 0.75)
SUMMARY_PERCENTILES = (10, 50, 90)


@dataclass(frozen=True)  # 生成条件を不変で扱うため
class SampleDataSpec:
    """
    Inputs for the synthetic tables.

    Units
    - ages: years (inclusive range)
    - rates: USD per 1000 of coverage
    - gompertz_a / gompertz_b: q_x = a * exp(b * x)
    - monthly_mean / monthly_sd: log return per month
    """

    max_rate_age: int = 85
    max_mortality_age: int = 100
    mortality_years: int = 60
    female_rate_factor: float = 0.9
    female_mortality_factor: float = 0.6
    gompertz_a: float = 0.00005
    gompertz_b: float = 0.095
    start_year: int = 1950
    history_years: int = 70
    growth_horizons: int = 40
    start_amount: float = 100.0
    monthly_mean: float = 0.0079
    monthly_sd: float = 0.045


@dataclass(frozen=True)
class SampleWorkbooks:
    rate_table_path: Path
    mortality_path: Path
    market_history_path: Path
    settings: ReferenceDataSettings


def base_rate(age: int) -> float:  # Standard区分の基準料率
    return round(0.6 + 0.05 * age + 0.002 * age * age, 4)


def _cutoff(rate: float, ceiling: int) -> float | None:
    if ceiling == UNCAPPED_CEILING:
        return None
    return round((ceiling / 1000.0) * rate / 12.0, 4)


def rate_row(age: int, female_factor: float) -> list[object]:
    """
    One LI_RATES row: age, then (rate, cutoff) pairs interleaved male/female.
    """
    row: list[object] = [age] + [None] * 16
    ceilings = MINOR_CEILINGS if age < MINOR_AGE_LIMIT else ADULT_CEILINGS
    for sex_offset, factor in ((0, 1.0), (2, female_factor)):
        for bracket in range(3):
            rate = round(base_rate(age) * factor * BRACKET_DISCOUNTS[bracket], 4)
            row[1 + bracket * 4 + sex_offset] = rate
            row[2 + bracket * 4 + sex_offset] = _cutoff(rate, ceilings[bracket])
        if age >= MINOR_AGE_LIMIT:
            row[13 + sex_offset] = round(base_rate(age) * factor * BRACKET_DISCOUNTS[3], 4)
            row[14 + sex_offset] = UNCAPPED_CEILING
    return row


def death_probabilities(age: int, years: int, spec: SampleDataSpec, factor: float) -> list[float]:
    """
    [1q_x, 2q_x, ..., nq_x] from a Gompertz q_x, capped at 1.
    """
    survival = 1.0
    result: list[float] = []
    for t in range(years):
        q = min(spec.gompertz_a * factor * math.exp(spec.gompertz_b * (age + t)), 1.0)
        survival *= 1.0 - q
        result.append(round(1.0 - survival, 6))
    return result


def market_amounts(seed: int, spec: SampleDataSpec) -> np.ndarray:
    rng = np.random.default_rng(seed)  # 再現性のある乱数生成器を作る
    months = spec.history_years * 12
    log_returns = rng.normal(loc=spec.monthly_mean, scale=spec.monthly_sd, size=months - 1)
    path = np.concatenate([[0.0], np.cumsum(log_returns)])
    return np.round(spec.start_amount * np.exp(path), 4)


def _write_rate_table(path: Path, spec: SampleDataSpec) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "LI_RATES"
    ws.append(["WHOLE LIFE RATES"])
    ws.append([None])
    ws.append(["AGE", "STANDARD", None, None, None, "PREFERRED", None, None, None,
               "EXECUTIVE", None, None, None, "SELECT"])
    ws.append(["AGE"] + ["MALE RATE PER 1000", "MALE CUTOFF", "FEMALE RATE PER 1000", "FEMALE CUTOFF"] * 4)
    for age in range(spec.max_rate_age + 1):
        ws.append(rate_row(age, spec.female_rate_factor))
    wb.save(path)


def _write_mortality(path: Path, spec: SampleDataSpec) -> tuple[RowRange, RowRange]:
    wb = Workbook()
    ws = wb.active
    ws.title = "Mortality"
    years = list(range(1, spec.mortality_years + 1))
    ages = range(spec.max_mortality_age + 1)

    ws.append(["MALE", "PROBABILITY OF DYING IN THE NEXT X YEARS:", *years])
    for age in ages:
        ws.append([age, 100_000, *death_probabilities(age, spec.mortality_years, spec, 1.0)])
    male_rows = RowRange(start=1, stop=1 + len(ages))

    ws.append([None])
    ws.append(["FEMALE", "PROBABILITY OF DYING IN THE NEXT X YEARS:", *years])
    female_start = male_rows.stop + 2
    for age in ages:
        ws.append([age, 100_000, *death_probabilities(age, spec.mortality_years, spec, spec.female_mortality_factor)])
    wb.save(path)
    return male_rows, RowRange(start=female_start, stop=female_start + len(ages))


def _write_market_history(path: Path, seed: int, spec: SampleDataSpec) -> RowRange:
    amounts = market_amounts(seed, spec)
    horizons = list(range(1, spec.growth_horizons + 1))
    wb = Workbook()
    ws = wb.active
    ws.title = "Market"
    ws.append(["Year", "Month", "Amount ($)", *horizons])

    growth_by_horizon: dict[int, list[float]] = {h: [] for h in horizons}
    for index, amount in enumerate(amounts):
        row: list[object] = [spec.start_year + index // 12, index % 12 + 1, float(amount)]
        for h in horizons:
            end = index + 12 * h
            if end < len(amounts):
                growth = round(float(amounts[end] / amount), 6)
                growth_by_horizon[h].append(growth)
                row.append(growth)
            else:
                row.append(None)
        ws.append(row)
    history_rows = RowRange(start=1, stop=1 + len(amounts))

    ws.append([None])
    ws.append([None])
    ws.append(["PERCENTILE", None, None, *horizons])
    for percentile in SUMMARY_PERCENTILES:
        summary: list[object] = [percentile, percentile, percentile]  # 履歴行と誤認されやすい形
        for h in horizons:
            values = growth_by_horizon[h]
            summary.append(round(float(np.percentile(values, percentile)), 6) if values else None)
        ws.append(summary)
    wb.save(path)
    return history_rows


def write_sample_workbooks(out_dir: str | Path, seed: int = 12345, spec: SampleDataSpec | None = None) -> SampleWorkbooks:
    """
    Write the three workbooks into `out_dir` and return matching loader settings.
    """
    spec = spec or SampleDataSpec()
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    rate_path = out_path / "RateTables.xlsx"
    mortality_path = out_path / "Mortality.xlsx"
    market_path = out_path / "MarketHistory.xlsx"
    _write_rate_table(rate_path, spec)
    male_rows, female_rows = _write_mortality(mortality_path, spec)
    history_rows = _write_market_history(market_path, seed, spec)

    settings = ReferenceDataSettings(
        rate_table_path=rate_path.name,
        mortality_path=mortality_path.name,
        mortality_male_rows=male_rows,
        mortality_female_rows=female_rows,
        market_history_path=market_path.name,
        market_history_rows=history_rows,
    )
    return SampleWorkbooks(
        rate_table_path=rate_path,
        mortality_path=mortality_path,
        market_history_path=market_path,
        settings=settings,
    )
