from __future__ import annotations

"""
Reference tables for the projection engine.

Three workbooks feed the engine:
- RateTables.xlsx / LI_RATES: whole-life rates by age (4 header rows)
- Mortality.xlsx / Mortality: tq_x by age, male and female in separate row ranges
- MarketHistory.xlsx / Market: monthly index levels with G_h columns,
  followed by a percentile summary block that is not history

Parsing works on plain row lists so the engine and tests never need a file.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Sequence

import openpyxl

from .market import MarketHistoryEntry
from .mortality import MortalityTable
from .rate_brackets import RawAgeRow, coerce_number

logger = logging.getLogger(__name__)

SheetRows = list[list[object]]


class ReferenceDataError(ValueError):
    """Raised when a reference workbook or sheet cannot be read."""


@dataclass(frozen=True)
class ReferenceData:
    """
    Already-parsed tables handed to the engine.

    Units
    - rate_rows: positional LI_RATES rows (see rate_brackets)
    - mortality: {sex: {age: {t: tq_x}}}
    - market_history: monthly entries with {h: G_h}
    """

    rate_rows: list[RawAgeRow] = field(default_factory=list)
    mortality: MortalityTable = field(default_factory=dict)
    market_history: list[MarketHistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RowRange:
    """Half-open row window [start, stop); stop=None runs to the first blank key."""

    start: int
    stop: int | None = None


@dataclass(frozen=True)
class ReferenceDataSettings:
    rate_table_path: str = "RateTables.xlsx"
    rate_table_sheet: str | None = "LI_RATES"
    rate_table_header_rows: int = 4
    mortality_path: str = "Mortality.xlsx"
    mortality_sheet: str | None = "Mortality"
    mortality_male_rows: RowRange = RowRange(start=1)
    mortality_female_rows: RowRange | None = None
    market_history_path: str = "MarketHistory.xlsx"
    market_history_sheet: str | None = "Market"
    market_history_rows: RowRange = RowRange(start=1)


def _coerce_int(value: object) -> int | None:
    number = coerce_number(value)
    if number is None:
        return None
    return int(round(number))


def _window(raw: Sequence[Sequence[object]], rows: RowRange) -> Sequence[Sequence[object]]:
    stop = len(raw) if rows.stop is None else min(rows.stop, len(raw))
    return raw[rows.start:stop]


def parse_rate_rows(raw: Sequence[Sequence[object]], header_rows: int = 4) -> list[RawAgeRow]:
    """
    Keep the age rows of the LI_RATES sheet, stopping at the first blank age.
    """
    rows: list[RawAgeRow] = []
    for row in raw[header_rows:]:
        if not row or coerce_number(row[0]) is None:
            break
        rows.append(list(row))
    return rows


def _parse_mortality_section(
    raw: Sequence[Sequence[object]],
    years_by_column: dict[int, int],
    rows: RowRange,
) -> dict[int, dict[int, float]]:
    by_age: dict[int, dict[int, float]] = {}
    for row in _window(raw, rows):
        age = _coerce_int(row[0]) if row else None
        if age is None:
            break
        probabilities: dict[int, float] = {}
        for col, years in years_by_column.items():
            if col >= len(row):
                continue
            probability = coerce_number(row[col])
            if probability is not None:
                probabilities[years] = probability
        by_age[age] = probabilities
    return by_age


def parse_mortality(
    raw: Sequence[Sequence[object]],
    male_rows: RowRange = RowRange(start=1),
    female_rows: RowRange | None = None,
) -> dict[str, dict[int, dict[int, float]]]:
    """
    Parse the mortality sheet into {sex: {age: {t: tq_x}}}.

    Row 0 is the header: label, population label, then t = 1, 2, 3, ...
    Each data row is: age, population, 1q_x, 2q_x, ...
    A sex without a configured row range is left empty.
    """
    if not raw:
        return {"male": {}, "female": {}}
    header = raw[0]
    years_by_column: dict[int, int] = {}
    for col in range(2, len(header)):
        years = _coerce_int(header[col])
        if years is not None:
            years_by_column[col] = years

    mortality = {
        "male": _parse_mortality_section(raw, years_by_column, male_rows),
        "female": {},
    }
    if female_rows is not None:
        mortality["female"] = _parse_mortality_section(raw, years_by_column, female_rows)
    else:
        logger.warning("No female row range configured; female mortality lookups will be unknown.")
    return mortality


def parse_market_history(
    raw: Sequence[Sequence[object]],
    rows: RowRange = RowRange(start=1),
) -> list[MarketHistoryEntry]:
    """
    Parse market rows: year, month, amount, then G_h under header h.

    Rows missing year, month or amount are skipped. The row window must end
    before the percentile summary block appended below the history.
    """
    if not raw:
        return []
    header = raw[0]
    horizons: dict[int, int] = {}
    for col in range(3, len(header)):
        years = _coerce_int(header[col])
        if years is not None:
            horizons[col] = years

    history: list[MarketHistoryEntry] = []
    skipped = 0
    for row in _window(raw, rows):
        if len(row) < 3:
            skipped += 1
            continue
        year = _coerce_int(row[0])
        month = _coerce_int(row[1])
        amount = coerce_number(row[2])
        if not year or not month or not amount:
            skipped += 1
            continue
        growth: dict[int, float] = {}
        for col, years in horizons.items():
            if col >= len(row):
                continue
            value = coerce_number(row[col])
            if value is not None:
                growth[years] = value
        history.append(MarketHistoryEntry(year=year, month=month, amount=amount, growth=growth))
    if skipped:
        logger.debug("Skipped %d incomplete market history rows.", skipped)
    return history


class ReferenceDataLoader:
    """
    Read reference workbooks from a data directory.

    Sheet rows are cached per (file, sheet) so each sheet is read at most
    once per loader instance.
    """

    def __init__(self, data_dir: Path, settings: ReferenceDataSettings | None = None) -> None:
        self.data_dir = data_dir
        self.settings = settings or ReferenceDataSettings()
        self._cache: dict[tuple[str, str], SheetRows] = {}

    def _resolve(self, filename: str) -> Path:
        path = Path(filename)
        return path if path.is_absolute() else self.data_dir / path

    def input_paths(self) -> list[Path]:
        return [
            self._resolve(self.settings.rate_table_path),
            self._resolve(self.settings.mortality_path),
            self._resolve(self.settings.market_history_path),
        ]

    def load_sheet(self, filename: str, sheet_name: str | None = None) -> SheetRows:
        path = self._resolve(filename)
        cache_key = (str(path), sheet_name or "default")
        if cache_key in self._cache:
            logger.debug("Reference sheet cache hit: %s", cache_key)
            return self._cache[cache_key]

        if not path.is_file():
            raise ReferenceDataError(f"Reference workbook not found: {path}")
        workbook = openpyxl.load_workbook(path, data_only=True)
        try:
            if sheet_name is None:
                worksheet = workbook.worksheets[0]
            elif sheet_name in workbook.sheetnames:
                worksheet = workbook[sheet_name]
            else:
                raise ReferenceDataError(f"Sheet {sheet_name} not found in {path}")
            rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

        logger.info("Loaded %d rows from %s [%s]", len(rows), path.name, sheet_name or "default")
        self._cache[cache_key] = rows
        return rows

    def load_all(self) -> ReferenceData:
        settings = self.settings
        rate_raw = self.load_sheet(settings.rate_table_path, settings.rate_table_sheet)
        mortality_raw = self.load_sheet(settings.mortality_path, settings.mortality_sheet)
        market_raw = self.load_sheet(settings.market_history_path, settings.market_history_sheet)
        return ReferenceData(
            rate_rows=parse_rate_rows(rate_raw, header_rows=settings.rate_table_header_rows),
            mortality=parse_mortality(
                mortality_raw,
                male_rows=settings.mortality_male_rows,
                female_rows=settings.mortality_female_rows,
            ),
            market_history=parse_market_history(market_raw, rows=settings.market_history_rows),
        )
