from __future__ import annotations

"""
Configuration helpers for account projections.
"""

from typing import Mapping, Sequence

from .engine import (
    DEFAULT_INFLATION_RATE,
    DEFAULT_MARKET_GAIN_RATE,
    DEFAULT_RETIREMENT_AGE,
    AssumptionSet,
    EngineOptions,
)
from .market import INDEX_BASIS_N_MINUS_ONE
from .reference_data import ReferenceDataSettings, RowRange

LEGACY_TERM_POLICIES = {"10 YEAR": 10}

TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


def _as_mapping(value: object) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        return value
    return {}


def _optional_float(raw: object) -> float | None:
    if raw is None or raw == "":
        return None
    return float(raw)


def _optional_int(raw: object) -> int | None:
    if raw is None or raw == "":
        return None
    return int(float(raw))


def read_bool(raw: object, default: bool) -> bool:
    """
    Read a YAML flag. Quoted "false"/"no"/"off"/"0" are False.
    """
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    text = str(raw).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError(f"Expected a boolean, got {raw!r}")


def _read_sex(raw: object) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip().lower()
    return text or None


def read_term_policy_length(assumptions_cfg: Mapping[str, object]) -> int:
    """
    Read the term length in years.

    `term_policy_length` wins; the legacy `term_policy: "10 YEAR"` form is
    still accepted.
    """
    length = assumptions_cfg.get("term_policy_length")
    if length is not None:
        return int(float(length))
    legacy = assumptions_cfg.get("term_policy")
    if legacy is None:
        return 0
    if isinstance(legacy, (int, float)):
        return int(legacy)
    return LEGACY_TERM_POLICIES.get(str(legacy).strip().upper(), 0)


def read_assumptions(config: Mapping[str, object]) -> AssumptionSet:
    """
    Build the assumption set from the `assumptions` section.

    Units
    - rates: annual (0.0328 = 3.28%)
    - budgets: USD per month
    - sizes / death_benefit: USD
    """
    cfg = _as_mapping(config.get("assumptions"))
    return AssumptionSet(
        age=_optional_int(cfg.get("age")),
        sex=_read_sex(cfg.get("sex")),
        inflation_rate=float(cfg.get("inflation_rate", DEFAULT_INFLATION_RATE)),
        market_gain_rate=float(cfg.get("market_gain_rate", DEFAULT_MARKET_GAIN_RATE)),
        retirement_age=int(float(cfg.get("retirement_age", DEFAULT_RETIREMENT_AGE))),
        life_expectancy=_optional_int(cfg.get("life_expectancy")),
        tobacco_user=read_bool(cfg.get("tobacco_user"), False),
        custom_time_horizon=_optional_int(cfg.get("custom_time_horizon")),
        monthly_budget=_optional_float(cfg.get("monthly_budget")),
        policy_size=_optional_float(cfg.get("policy_size")),
        term_policy_length=read_term_policy_length(cfg),
        term_budget=float(cfg.get("term_budget", 0.0) or 0.0),
        term_policy_size=float(cfg.get("term_policy_size", 0.0) or 0.0),
        performance_percentile=_optional_float(cfg.get("performance_percentile")),
        death_benefit=_optional_float(cfg.get("death_benefit")),
    )


def read_engine_options(config: Mapping[str, object]) -> EngineOptions:
    cfg = _as_mapping(config.get("engine"))
    return EngineOptions(
        term_cost_from_inception=read_bool(cfg.get("term_cost_from_inception"), True),
        percentile_index_basis=str(cfg.get("percentile_index_basis", INDEX_BASIS_N_MINUS_ONE)),
    )


def _read_row_range(raw: object, default: RowRange | None) -> RowRange | None:
    if raw is None:
        return default
    if isinstance(raw, Sequence) and not isinstance(raw, str) and len(raw) in (1, 2):
        start = int(raw[0])
        stop = int(raw[1]) if len(raw) == 2 and raw[1] is not None else None
        return RowRange(start=start, stop=stop)
    raise ValueError(f"Row range must be [start] or [start, stop]: {raw}")


def read_reference_data_settings(config: Mapping[str, object]) -> ReferenceDataSettings:
    """
    Read workbook locations and row windows from `reference_data`.

    Row windows are zero-based and half-open, e.g. `male_rows: [1, 101]`.
    """
    cfg = _as_mapping(config.get("reference_data"))
    defaults = ReferenceDataSettings()
    rate_cfg = _as_mapping(cfg.get("rate_table"))
    mortality_cfg = _as_mapping(cfg.get("mortality"))
    market_cfg = _as_mapping(cfg.get("market_history"))

    market_rows = defaults.market_history_rows
    if "first_row" in market_cfg or "last_row" in market_cfg:
        last_row = market_cfg.get("last_row")
        market_rows = RowRange(
            start=int(market_cfg.get("first_row", 1)),
            stop=int(last_row) if last_row is not None else None,
        )

    return ReferenceDataSettings(
        rate_table_path=str(rate_cfg.get("path", defaults.rate_table_path)),
        rate_table_sheet=rate_cfg.get("sheet", defaults.rate_table_sheet),
        rate_table_header_rows=int(rate_cfg.get("header_rows", defaults.rate_table_header_rows)),
        mortality_path=str(mortality_cfg.get("path", defaults.mortality_path)),
        mortality_sheet=mortality_cfg.get("sheet", defaults.mortality_sheet),
        mortality_male_rows=_read_row_range(mortality_cfg.get("male_rows"), defaults.mortality_male_rows),
        mortality_female_rows=_read_row_range(mortality_cfg.get("female_rows"), None),
        market_history_path=str(market_cfg.get("path", defaults.market_history_path)),
        market_history_sheet=market_cfg.get("sheet", defaults.market_history_sheet),
        market_history_rows=market_rows,
    )


def reference_data_dir(config: Mapping[str, object]) -> str:
    cfg = _as_mapping(config.get("reference_data"))
    return str(cfg.get("data_dir", "data"))
