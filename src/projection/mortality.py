from __future__ import annotations

"""
Mortality lookups used to annotate a projection.

Notation
- x: current age (years)
- t: years ahead of the current age
- tq_x: probability of dying within the next t years

The table is sparse. A missing sex, age or t returns None ("unknown") so a
stored probability of 0.0 stays distinguishable from "no data".
"""

from typing import Mapping

MortalityTable = Mapping[str, Mapping[int, Mapping[int, float]]]


def probability_of_death(
    table: MortalityTable | None,
    sex: str,
    age: int,
    years_ahead: int,
) -> float | None:
    """
    Look up tq_x for the given sex and age.

    Units
    - age: years
    - years_ahead: years (t)
    - return: probability (0-1), or None when the table has no value
    """
    if table is None:
        return None
    by_age = table.get(sex)
    if by_age is None:
        return None
    by_years = by_age.get(age)
    if by_years is None:
        return None
    value = by_years.get(years_ahead)
    if value is None:
        return None
    return float(value)


def mortality_series(
    table: MortalityTable | None,
    sex: str,
    age: int,
    horizon: int,
) -> list[float | None] | None:
    """
    Build [None, 1q_x, 2q_x, ..., hq_x] for a projection horizon.

    Index 0 is always None because no probability applies at inception.
    Returns None when the table has no slice for this sex/age.
    """
    if table is None or table.get(sex) is None or table[sex].get(age) is None:
        return None
    series: list[float | None] = [None]
    for years_ahead in range(1, horizon + 1):
        series.append(probability_of_death(table, sex, age, years_ahead))
    return series
