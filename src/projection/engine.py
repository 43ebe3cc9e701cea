from __future__ import annotations

"""
Year-by-year account projection.

Notation
- t: year index (0 = inception)
- i: annual inflation rate
- g: annual market gain rate
- d = 1 - i / (1 + i): purchasing-power decay factor per year
- C_t: contribution in year t (annual budget less term cost)
- B_t: running balance, B_0 = C_0
- B_t = B_{t-1} * (1 + g) + C_t

Recurrence per year t >= 1
- gain_t = B_{t-1} * g
- window_t = B_{t-1} + gain_t (balance if nothing more is paid in)
- B_t = window_t + C_t
- B_t(real) = B_t * d^t

d is evaluated in the 1 - i / (1 + i) form and compounded as d^t.
"""

from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any, Sequence

import pandas as pd

from .market import INDEX_BASIS_N_MINUS_ONE, INDEX_BASES, cagr_for_percentile
from .mortality import MortalityTable, mortality_series, probability_of_death
from .rate_brackets import (
    RateBracket,
    build_rate_brackets,
    find_age_row,
    resolve_coverage,
    select_active_bracket,
)

if TYPE_CHECKING:
    from .reference_data import ReferenceData

DEFAULT_INFLATION_RATE = 0.0328
DEFAULT_MARKET_GAIN_RATE = 0.104
DEFAULT_RETIREMENT_AGE = 65
DEFAULT_LIFE_EXPECTANCY = {"male": 76, "female": 81}
SUPPORTED_SEXES = ("male", "female")


class MissingRequiredInputError(ValueError):
    """Raised when a projection is requested without an age or a sex."""


@dataclass(frozen=True)
class AssumptionSet:
    """
    Inputs for one projection.

    Units
    - age / retirement_age / life_expectancy: years
    - inflation_rate / market_gain_rate: annual rate (e.g. 0.0328)
    - monthly_budget / term_budget: USD per month
    - policy_size / term_policy_size / death_benefit: USD
    - term_policy_length / custom_time_horizon: years
    - performance_percentile: 0-100

    Only one of monthly_budget / policy_size is expected; the other is
    derived through the active rate bracket.
    """

    age: int | None
    sex: str | None
    inflation_rate: float = DEFAULT_INFLATION_RATE
    market_gain_rate: float = DEFAULT_MARKET_GAIN_RATE
    retirement_age: int = DEFAULT_RETIREMENT_AGE
    life_expectancy: int | None = None
    tobacco_user: bool = False
    custom_time_horizon: int | None = None
    monthly_budget: float | None = None
    policy_size: float | None = None
    term_policy_length: int = 0
    term_budget: float = 0.0
    term_policy_size: float = 0.0
    performance_percentile: float | None = None
    death_benefit: float | None = None

    def resolved_life_expectancy(self) -> int:
        if self.life_expectancy is not None:
            return int(self.life_expectancy)
        return DEFAULT_LIFE_EXPECTANCY.get(str(self.sex), DEFAULT_LIFE_EXPECTANCY["male"])


@dataclass(frozen=True)
class EngineOptions:
    """
    Conventions that differ between published illustrations.

    - term_cost_from_inception: charge term cost for 0 <= t < n (True)
      or for 0 < t < n (False)
    - percentile_index_basis: "n_minus_one" or "n", see market.percentile_growth
    """

    term_cost_from_inception: bool = True
    percentile_index_basis: str = INDEX_BASIS_N_MINUS_ONE

    def __post_init__(self) -> None:
        if self.percentile_index_basis not in INDEX_BASES:
            raise ValueError(f"percentile_index_basis must be one of {INDEX_BASES}.")


@dataclass(frozen=True)
class TimeHorizon:
    to_death: int
    to_retirement: int
    custom: int | None
    active: int

    @property
    def is_degenerate(self) -> bool:
        return self.active <= 0


@dataclass(frozen=True)
class ProjectionRow:
    """
    One projected year. All amounts are USD; inflation_factor is d^t.
    """

    year: int
    age: int
    term_cost: float
    contribution: float
    inflation_factor: float
    cumulative_contributed: float
    contribution_inflation_adjusted: float
    cumulative_contributed_inflation_adjusted: float
    market_gain: float
    cumulative_market_gain: float
    balance_if_no_further_contributions: float
    running_balance: float
    running_balance_inflation_adjusted: float
    mortality_probability: float | None


@dataclass(frozen=True)
class BreakEven:
    year: int
    age: int


@dataclass(frozen=True)
class ProjectionSummary:
    """
    Scalars derived from the finished row sequence.

    Units
    - balances / totals / income: USD
    - mortality_likelihood: probability of death within the active horizon
    """

    final_balance: float
    final_balance_inflation_adjusted: float
    account_income: float
    final_year_growth: float
    total_contributed: float
    total_contributed_inflation_adjusted: float
    total_market_gain: float
    total_term_cost: float
    break_even: BreakEven | None
    degenerate_horizon: bool
    mortality_likelihood: float | None


@dataclass(frozen=True)
class ProjectionResult:
    rows: list[ProjectionRow]
    table: pd.DataFrame
    summary: ProjectionSummary
    horizon: TimeHorizon
    brackets: list[RateBracket] | None
    active_bracket_index: int | None
    monthly_budget: float
    policy_size: float

    @property
    def active_bracket(self) -> RateBracket | None:
        if self.brackets is None or self.active_bracket_index is None:
            return None
        return self.brackets[self.active_bracket_index]


@dataclass(frozen=True)
class ProjectionReport:
    """
    Presentation-ready bundle: echoed inputs, rows, summary and rate table.
    """

    sections: dict[str, dict[str, Any]]
    result: ProjectionResult
    tables: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def rows(self) -> list[ProjectionRow]:
        return self.result.rows

    @property
    def summary(self) -> ProjectionSummary:
        return self.result.summary


def inflation_discount(inflation_rate: float) -> float:
    return 1.0 - (inflation_rate / (1.0 + inflation_rate))


def _require_inputs(assumptions: AssumptionSet) -> None:
    if assumptions.age is None:
        raise MissingRequiredInputError("Age and sex are required (age is missing).")
    if assumptions.sex is None or str(assumptions.sex).strip() == "":
        raise MissingRequiredInputError("Age and sex are required (sex is missing).")
    if assumptions.sex not in SUPPORTED_SEXES:
        raise MissingRequiredInputError(f"Unsupported sex: {assumptions.sex}")


def time_horizon(assumptions: AssumptionSet) -> TimeHorizon:
    _require_inputs(assumptions)
    age = int(assumptions.age)
    to_death = assumptions.resolved_life_expectancy() - age
    to_retirement = int(assumptions.retirement_age) - age
    custom = assumptions.custom_time_horizon
    active = int(custom) if custom is not None else to_death
    return TimeHorizon(to_death=to_death, to_retirement=to_retirement, custom=custom, active=active)


def _term_cost(year: int, term_length: int, annual_term_cost: float, from_inception: bool) -> float:
    if year >= term_length:
        return 0.0
    if not from_inception and year == 0:
        return 0.0
    return annual_term_cost


def project_rows(
    *,
    age: int,
    sex: str,
    horizon: int,
    monthly_budget: float,
    term_budget: float,
    term_length: int,
    market_gain_rate: float,
    inflation_rate: float,
    mortality_table: MortalityTable | None,
    term_cost_from_inception: bool = True,
) -> list[ProjectionRow]:
    """
    Run the recurrence for years 0..horizon.

    A non-positive horizon yields only the inception row. Each row reads
    the previous row and constants only.
    """
    annual_contribution = monthly_budget * 12.0
    annual_term_cost = term_budget * 12.0
    discount = inflation_discount(inflation_rate)
    last_year = max(horizon, 0)
    # keyed by years ahead of the starting age, not attained age
    mortality = mortality_series(mortality_table, sex, age, last_year) or [None] * (last_year + 1)

    rows: list[ProjectionRow] = []
    for year in range(last_year + 1):
        term_cost = _term_cost(year, term_length, annual_term_cost, term_cost_from_inception)
        contribution = annual_contribution - term_cost
        factor = discount ** year

        if year == 0:
            rows.append(
                ProjectionRow(
                    year=0,
                    age=age,
                    term_cost=term_cost,
                    contribution=contribution,
                    inflation_factor=factor,
                    cumulative_contributed=contribution,
                    contribution_inflation_adjusted=contribution,
                    cumulative_contributed_inflation_adjusted=contribution,
                    market_gain=0.0,
                    cumulative_market_gain=0.0,
                    balance_if_no_further_contributions=contribution,
                    running_balance=contribution,
                    running_balance_inflation_adjusted=contribution,
                    mortality_probability=None,
                )
            )
            continue

        prev = rows[year - 1]
        gain = prev.running_balance * market_gain_rate
        adjusted_contribution = contribution * factor
        balance = prev.running_balance + gain + contribution
        rows.append(
            ProjectionRow(
                year=year,
                age=age + year,
                term_cost=term_cost,
                contribution=contribution,
                inflation_factor=factor,
                cumulative_contributed=prev.cumulative_contributed + contribution,
                contribution_inflation_adjusted=adjusted_contribution,
                cumulative_contributed_inflation_adjusted=(
                    prev.cumulative_contributed_inflation_adjusted + adjusted_contribution
                ),
                market_gain=gain,
                cumulative_market_gain=prev.cumulative_market_gain + gain,
                balance_if_no_further_contributions=prev.running_balance + gain,
                running_balance=balance,
                running_balance_inflation_adjusted=balance * factor,
                mortality_probability=mortality[year],
            )
        )
    return rows


def find_break_even(rows: Sequence[ProjectionRow], death_benefit: float | None) -> BreakEven | None:
    """
    First year whose no-further-contribution balance strictly exceeds the benefit.
    """
    if death_benefit is None:
        return None
    for row in rows:
        if row.balance_if_no_further_contributions > death_benefit:
            return BreakEven(year=row.year, age=row.age)
    return None


def ending_growth(
    rows: Sequence[ProjectionRow],
    cutoff_year: int,
    market_gain_rate: float,
    *lookback_years: int,
) -> dict[str, float] | None:
    """
    Growth earned over the last day/week/month/year ending at `cutoff_year`.

    Units
    - return values: USD, rounded to cents
    - last_{n}_years: window balance change over n years (only when t - n >= 0)
    """
    if cutoff_year < 1 or cutoff_year >= len(rows):
        return None
    previous = rows[cutoff_year - 1].running_balance
    current = rows[cutoff_year].balance_if_no_further_contributions
    multiplier = 1.0 + market_gain_rate

    growth = {
        "day": round(current - previous * multiplier ** (364 / 365), 2),
        "week": round(current - previous * multiplier ** (51 / 52), 2),
        "month": round(current - previous * multiplier ** (11 / 12), 2),
        "year": round(current - previous, 2),
    }
    for years in lookback_years:
        start = cutoff_year - years
        if start >= 0:
            growth[f"last_{years}_years"] = round(current - rows[start].balance_if_no_further_contributions, 2)
    return growth


def summarize(
    rows: Sequence[ProjectionRow],
    market_gain_rate: float,
    horizon: TimeHorizon,
    death_benefit: float | None = None,
    mortality_likelihood: float | None = None,
) -> ProjectionSummary:
    last = rows[-1]
    return ProjectionSummary(
        final_balance=last.running_balance,
        final_balance_inflation_adjusted=last.running_balance_inflation_adjusted,
        account_income=last.running_balance * market_gain_rate,
        final_year_growth=last.market_gain,
        total_contributed=last.cumulative_contributed,
        total_contributed_inflation_adjusted=last.cumulative_contributed_inflation_adjusted,
        total_market_gain=last.cumulative_market_gain,
        total_term_cost=sum(row.term_cost for row in rows),
        break_even=find_break_even(rows, death_benefit),
        degenerate_horizon=horizon.is_degenerate,
        mortality_likelihood=mortality_likelihood,
    )


def rows_to_frame(rows: Sequence[ProjectionRow]) -> pd.DataFrame:
    return pd.DataFrame([asdict(row) for row in rows])


def project(
    assumptions: AssumptionSet,
    brackets: list[RateBracket] | None = None,
    mortality_table: MortalityTable | None = None,
    options: EngineOptions | None = None,
) -> ProjectionResult:
    """
    Project one assumption set.

    Raises MissingRequiredInputError when age or sex is missing. Everything
    else (no rate row, no mortality data, non-positive horizon) is carried
    in the result as None fields or flags.
    """
    options = options or EngineOptions()
    horizon = time_horizon(assumptions)
    age = int(assumptions.age)
    sex = str(assumptions.sex)

    active_index = select_active_bracket(brackets, assumptions.policy_size, assumptions.monthly_budget)
    active_bracket = brackets[active_index] if brackets is not None and active_index is not None else None
    monthly_budget, policy_size = resolve_coverage(
        assumptions.policy_size, assumptions.monthly_budget, active_bracket
    )

    rows = project_rows(
        age=age,
        sex=sex,
        horizon=horizon.active,
        monthly_budget=monthly_budget,
        term_budget=float(assumptions.term_budget or 0.0),
        term_length=int(assumptions.term_policy_length or 0),
        market_gain_rate=assumptions.market_gain_rate,
        inflation_rate=assumptions.inflation_rate,
        mortality_table=mortality_table,
        term_cost_from_inception=options.term_cost_from_inception,
    )
    summary = summarize(
        rows,
        market_gain_rate=assumptions.market_gain_rate,
        horizon=horizon,
        death_benefit=assumptions.death_benefit,
        mortality_likelihood=probability_of_death(mortality_table, sex, age, horizon.active),
    )
    return ProjectionResult(
        rows=rows,
        table=rows_to_frame(rows),
        summary=summary,
        horizon=horizon,
        brackets=brackets,
        active_bracket_index=active_index,
        monthly_budget=monthly_budget,
        policy_size=policy_size,
    )


def _apply_performance_percentile(
    assumptions: AssumptionSet,
    reference_data: ReferenceData,
    options: EngineOptions,
) -> AssumptionSet:
    if assumptions.performance_percentile is None:
        return assumptions
    horizon = time_horizon(assumptions)
    if horizon.active <= 0:
        return assumptions
    rate = cagr_for_percentile(
        reference_data.market_history,
        assumptions.performance_percentile,
        horizon.active,
        index_basis=options.percentile_index_basis,
    )
    if rate is None:
        return assumptions
    return replace(assumptions, market_gain_rate=rate)


def run_projection(
    assumptions: AssumptionSet,
    reference_data: ReferenceData,
    options: EngineOptions | None = None,
) -> ProjectionReport:
    """
    Resolve brackets from the reference data, project, and bundle the output.
    """
    options = options or EngineOptions()
    _require_inputs(assumptions)
    assumptions = _apply_performance_percentile(assumptions, reference_data, options)

    age = int(assumptions.age)
    sex = str(assumptions.sex)
    brackets = build_rate_brackets(age, sex, find_age_row(reference_data.rate_rows, age))
    result = project(assumptions, brackets, reference_data.mortality, options)
    active = result.active_bracket
    discount = inflation_discount(assumptions.inflation_rate)

    sections: dict[str, dict[str, Any]] = {
        "globals": {
            "inflation_rate": assumptions.inflation_rate,
            "inflation_discount": discount,
            "market_gain_rate": assumptions.market_gain_rate,
            "market_multiplier": 1.0 + assumptions.market_gain_rate,
            "retirement_age": assumptions.retirement_age,
            "life_expectancy": assumptions.resolved_life_expectancy(),
            "tobacco_user": assumptions.tobacco_user,
            "performance_percentile": assumptions.performance_percentile,
        },
        "inputs": {
            "age": age,
            "sex": sex,
            "monthly_budget": result.monthly_budget,
            "policy_size": result.policy_size,
            "term_policy_length": assumptions.term_policy_length,
            "term_budget": assumptions.term_budget,
            "term_policy_size": assumptions.term_policy_size,
            "death_benefit": assumptions.death_benefit,
        },
        "time_horizons": {
            "to_death": result.horizon.to_death,
            "to_retirement": result.horizon.to_retirement,
            "custom": result.horizon.custom,
            "active": result.horizon.active,
        },
        "insurance": {
            "whole_life_rate": active.rate_per_thousand if active is not None else None,
            "whole_life_annual_cost": result.monthly_budget * 12.0,
            # no term rate table is supplied, so the rate is not computable
            "term_rate": None,
            "term_annual_cost": float(assumptions.term_budget or 0.0) * 12.0,
            "mortality_likelihood": result.summary.mortality_likelihood,
        },
    }
    tables = {
        "rate_table": {
            "age": age,
            "sex": sex,
            "brackets": [asdict(bracket) for bracket in brackets] if brackets is not None else None,
            "active_bracket_index": result.active_bracket_index,
        }
    }
    return ProjectionReport(sections=sections, result=result, tables=tables)
