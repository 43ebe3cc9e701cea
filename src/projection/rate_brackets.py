from __future__ import annotations  # 型注釈の前方参照を許可するため

"""
Whole-life rate brackets by age and sex.

Raw rate rows come from the LI_RATES sheet with the header rows removed.
Each row is positional:

    0: age
    male:   1/2 Standard, 5/6 Preferred, 9/10 Executive, 13/14 Select
    female: 3/4 Standard, 7/8 Preferred, 11/12 Executive, 15/16 Select

For Standard/Preferred/Executive the pair is (rate per 1000, monthly cutoff).
For Select the pair is (rate per 1000, coverage ceiling) and the monthly
cutoff is derived from the ceiling.
"""

from dataclasses import dataclass
import math
from typing import Sequence

MINOR_AGE_LIMIT = 18
UNCAPPED_CEILING = 9_999_999

BRACKET_NAMES = ("Standard", "Preferred", "Executive", "Select")

ADULT_RANGES = ("$0-$34,999", "$35,000-$59,999", "$60,000-$119,999", "$120,000-$9,999,999")
MINOR_RANGES = ("$0-$15,099", "$15,100-$59,999", "$60,000-$9,999,999", "-")

# Upper coverage bound (USD) of brackets 0..2 when selecting by policy size.
POLICY_SIZE_THRESHOLDS = (15_099, 59_999, 119_999)

_COLUMNS = {
    "male": ((1, 2), (5, 6), (9, 10), (13, 14)),
    "female": ((3, 4), (7, 8), (11, 12), (15, 16)),
}

RawAgeRow = Sequence[object]


@dataclass(frozen=True)
class RateBracket:
    """
    One pricing tier.

    Units
    - rate_per_thousand: USD per 1000 of coverage
    - monthly_cutoff: USD per month, None when the bracket has no upper bound
    """

    name: str
    range: str
    rate_per_thousand: float | None
    monthly_cutoff: float | None


def coerce_number(value: object) -> float | None:  # セル値を数値に揃える
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _cell(row: RawAgeRow, index: int) -> float | None:
    if index >= len(row):  # 短い行は欠損扱い
        return None
    return coerce_number(row[index])


def find_age_row(rate_rows: Sequence[RawAgeRow] | None, age: int) -> RawAgeRow | None:
    """
    Return the first raw row whose age column equals `age`, or None.
    """
    if not rate_rows:
        return None
    for row in rate_rows:
        if not row:
            continue
        row_age = coerce_number(row[0])
        if row_age is not None and int(row_age) == row_age and int(row_age) == age:
            return row
    return None


def _select_cutoff(rate: float | None, ceiling: float | None) -> float | None:
    if rate is None or ceiling is None or ceiling == UNCAPPED_CEILING:
        return None
    return (ceiling / 1000.0) * rate / 12.0


def build_rate_brackets(age: int, sex: str, age_row: RawAgeRow | None) -> list[RateBracket] | None:
    """
    Build the four brackets for an age/sex, ordered by ascending coverage.

    Returns None when there is no rate row for the age. Range labels depend
    only on whether the age is a minor. Minors have no Select bracket, so its
    rate and cutoff are None.
    """
    if age_row is None:
        return None
    columns = _COLUMNS.get(sex)
    if columns is None:
        raise ValueError(f"Unsupported sex: {sex}")

    is_minor = age < MINOR_AGE_LIMIT
    ranges = MINOR_RANGES if is_minor else ADULT_RANGES

    brackets: list[RateBracket] = []
    for index, (rate_col, cutoff_col) in enumerate(columns[:3]):
        brackets.append(
            RateBracket(
                name=BRACKET_NAMES[index],
                range=ranges[index],
                rate_per_thousand=_cell(age_row, rate_col),
                monthly_cutoff=_cell(age_row, cutoff_col),
            )
        )

    if is_minor:
        brackets.append(RateBracket(name="Select", range=ranges[3], rate_per_thousand=None, monthly_cutoff=None))
    else:
        rate_col, ceiling_col = columns[3]
        select_rate = _cell(age_row, rate_col)
        brackets.append(
            RateBracket(
                name="Select",
                range=ranges[3],
                rate_per_thousand=select_rate,
                monthly_cutoff=_select_cutoff(select_rate, _cell(age_row, ceiling_col)),
            )
        )
    return brackets


def select_active_bracket(
    brackets: Sequence[RateBracket] | None,
    policy_size: float | None = None,
    monthly_budget: float | None = None,
) -> int | None:
    """
    Pick the active bracket index.

    A policy size selects by fixed coverage thresholds and ignores the
    table cutoffs. A monthly budget selects the first bracket whose cutoff
    covers it, falling back to the last (uncapped) bracket. With neither
    input, or with no brackets, there is no active bracket.
    """
    if not brackets:
        return None

    if policy_size:
        for index, threshold in enumerate(POLICY_SIZE_THRESHOLDS):
            if policy_size <= threshold:
                return index
        return len(POLICY_SIZE_THRESHOLDS)

    if monthly_budget:
        for index, bracket in enumerate(brackets):
            if bracket.monthly_cutoff is not None and monthly_budget <= bracket.monthly_cutoff:
                return index
        return len(brackets) - 1

    return None


def resolve_coverage(
    policy_size: float | None,
    monthly_budget: float | None,
    bracket: RateBracket | None,
) -> tuple[float, float]:
    """
    Derive whichever of (monthly budget, policy size) was not given.

    Units
    - monthly budget: USD per month
    - policy size: USD of coverage

    Without a bracket rate the derived side is 0.0.
    """
    rate = bracket.rate_per_thousand if bracket is not None else None

    if monthly_budget:
        budget = float(monthly_budget)
    elif policy_size and rate is not None:
        budget = (float(policy_size) / 1000.0) * rate
    else:
        budget = 0.0

    if policy_size:
        size = float(policy_size)
    elif monthly_budget and rate:
        size = (float(monthly_budget) / rate) * 1000.0
    else:
        size = 0.0

    return budget, size
