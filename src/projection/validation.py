from __future__ import annotations

"""
Configuration validation helpers.

Only the inputs the projection cannot run without are errors. Everything
that still produces a projection, but probably not the intended one, is a
warning.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping

from .config import FALSE_STRINGS, LEGACY_TERM_POLICIES, TRUE_STRINGS
from .engine import DEFAULT_LIFE_EXPECTANCY, SUPPORTED_SEXES
from .market import INDEX_BASES


@dataclass(frozen=True)
class ValidationIssue:
    level: str  # "warning" | "error"
    code: str
    path: str
    message: str


_KNOWN_TOP_LEVEL_KEYS = {
    "run",
    "assumptions",
    "engine",
    "reference_data",
    "outputs",
}


def _as_mapping(value: object) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        return value
    return {}


def _as_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _add_issue(
    issues: list[ValidationIssue],
    *,
    level: str,
    code: str,
    path: str,
    message: str,
) -> None:
    issues.append(
        ValidationIssue(
            level=level,
            code=code,
            path=path,
            message=message,
        )
    )


def _validate_top_level_keys(config: Mapping[str, object], issues: list[ValidationIssue]) -> None:
    for key in sorted(config.keys()):
        if key not in _KNOWN_TOP_LEVEL_KEYS:
            _add_issue(
                issues,
                level="warning",
                code="unknown_top_level_key",
                path=key,
                message="Unknown top-level key. Check for typos or stale settings.",
            )


def _validate_required_inputs(assumptions: Mapping[str, object], issues: list[ValidationIssue]) -> None:
    age = assumptions.get("age")
    if age is None:
        _add_issue(
            issues,
            level="error",
            code="missing_age",
            path="assumptions.age",
            message="Age is required.",
        )
    elif _as_float(age) is None or float(age) < 0:
        _add_issue(
            issues,
            level="error",
            code="invalid_age",
            path="assumptions.age",
            message="Age must be a non-negative integer.",
        )

    sex = assumptions.get("sex")
    if sex is None or not str(sex).strip():
        _add_issue(
            issues,
            level="error",
            code="missing_sex",
            path="assumptions.sex",
            message="Sex is required.",
        )
    elif str(sex).strip().lower() not in SUPPORTED_SEXES:
        _add_issue(
            issues,
            level="error",
            code="unsupported_sex",
            path="assumptions.sex",
            message="Sex must be 'male' or 'female'.",
        )


def _validate_coverage(assumptions: Mapping[str, object], issues: list[ValidationIssue]) -> None:
    budget = _as_float(assumptions.get("monthly_budget"))
    policy_size = _as_float(assumptions.get("policy_size"))
    if budget and policy_size:
        _add_issue(
            issues,
            level="warning",
            code="budget_and_policy_size_set",
            path="assumptions.monthly_budget/policy_size",
            message=(
                "Both monthly_budget and policy_size are set. "
                "The rate bracket is selected by policy_size and monthly_budget is used as-is."
            ),
        )
    if not budget and not policy_size:
        _add_issue(
            issues,
            level="warning",
            code="no_contribution_source",
            path="assumptions.monthly_budget/policy_size",
            message="Neither monthly_budget nor policy_size is set. Contributions will be zero.",
        )

    term_budget = _as_float(assumptions.get("term_budget"))
    if budget and term_budget and term_budget > budget:
        _add_issue(
            issues,
            level="warning",
            code="term_budget_exceeds_budget",
            path="assumptions.term_budget",
            message="term_budget exceeds monthly_budget. Contributions will be negative during the term.",
        )

    if "term_policy" in assumptions:
        legacy = assumptions.get("term_policy")
        known = legacy is None or isinstance(legacy, (int, float)) or (
            str(legacy).strip().upper() in LEGACY_TERM_POLICIES
        )
        _add_issue(
            issues,
            level="warning",
            code="deprecated_key_used" if known else "unsupported_term_policy",
            path="assumptions.term_policy",
            message=(
                "Deprecated key in use. Migrate to term_policy_length."
                if known
                else f"Unrecognised term_policy {legacy!r}; no term cost will be charged."
            ),
        )


def _validate_horizon(assumptions: Mapping[str, object], issues: list[ValidationIssue]) -> None:
    age = _as_float(assumptions.get("age"))
    if age is None:
        return
    custom = _as_float(assumptions.get("custom_time_horizon"))
    if custom is not None:
        active = custom
    else:
        life_expectancy = _as_float(assumptions.get("life_expectancy"))
        if life_expectancy is None:
            sex = str(assumptions.get("sex", "")).strip().lower()
            life_expectancy = float(DEFAULT_LIFE_EXPECTANCY.get(sex, DEFAULT_LIFE_EXPECTANCY["male"]))
        active = life_expectancy - age
    if active <= 0:
        _add_issue(
            issues,
            level="warning",
            code="non_positive_horizon",
            path="assumptions.custom_time_horizon",
            message=f"Active horizon is {active:g} years. Only the inception year will be projected.",
        )


def _validate_percentile(
    assumptions: Mapping[str, object],
    engine: Mapping[str, object],
    issues: list[ValidationIssue],
) -> None:
    percentile = _as_float(assumptions.get("performance_percentile"))
    if percentile is not None and not 0.0 <= percentile <= 100.0:
        _add_issue(
            issues,
            level="warning",
            code="percentile_out_of_range",
            path="assumptions.performance_percentile",
            message="performance_percentile is outside 0-100 and will be clamped.",
        )
    basis = engine.get("percentile_index_basis")
    if basis is not None and str(basis) not in INDEX_BASES:
        _add_issue(
            issues,
            level="error",
            code="unsupported_percentile_index_basis",
            path="engine.percentile_index_basis",
            message=f"percentile_index_basis must be one of {', '.join(INDEX_BASES)}.",
        )


_NUMERIC_ASSUMPTIONS = (
    "inflation_rate",
    "market_gain_rate",
    "retirement_age",
    "life_expectancy",
    "custom_time_horizon",
    "monthly_budget",
    "policy_size",
    "term_policy_length",
    "term_budget",
    "term_policy_size",
    "performance_percentile",
    "death_benefit",
)


def _is_flag(value: object) -> bool:
    if value is None or isinstance(value, (bool, int, float)):
        return True
    text = str(value).strip().lower()
    return text in TRUE_STRINGS or text in FALSE_STRINGS


def _validate_value_types(
    assumptions: Mapping[str, object],
    engine: Mapping[str, object],
    issues: list[ValidationIssue],
) -> None:
    for key in _NUMERIC_ASSUMPTIONS:
        value = assumptions.get(key)
        if value is None or value == "":
            continue
        if _as_float(value) is None:
            _add_issue(
                issues,
                level="error",
                code="non_numeric_value",
                path=f"assumptions.{key}",
                message=f"{key} must be a number, got {value!r}.",
            )

    for path, value in (
        ("assumptions.tobacco_user", assumptions.get("tobacco_user")),
        ("engine.term_cost_from_inception", engine.get("term_cost_from_inception")),
    ):
        if not _is_flag(value):
            _add_issue(
                issues,
                level="error",
                code="invalid_boolean",
                path=path,
                message=f"Expected true/false, got {value!r}.",
            )


def _validate_rates(assumptions: Mapping[str, object], issues: list[ValidationIssue]) -> None:
    inflation_rate = _as_float(assumptions.get("inflation_rate"))
    if inflation_rate is not None and inflation_rate <= -1.0:
        _add_issue(
            issues,
            level="error",
            code="invalid_inflation_rate",
            path="assumptions.inflation_rate",
            message="inflation_rate must be greater than -1 (1 + i is a divisor).",
        )


def validate_config(config: Mapping[str, object]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    assumptions = _as_mapping(config.get("assumptions"))
    engine = _as_mapping(config.get("engine"))
    _validate_top_level_keys(config, issues)
    _validate_required_inputs(assumptions, issues)
    _validate_value_types(assumptions, engine, issues)
    _validate_rates(assumptions, issues)
    _validate_coverage(assumptions, issues)
    _validate_horizon(assumptions, issues)
    _validate_percentile(assumptions, engine, issues)
    return issues


def has_validation_errors(issues: Iterable[ValidationIssue]) -> bool:
    return any(issue.level == "error" for issue in issues)


def format_validation_issues(
    issues: Iterable[ValidationIssue],
    *,
    prefix: str = "config_validation",
) -> list[str]:
    lines: list[str] = []
    for issue in issues:
        lines.append(
            f"{prefix}:{issue.level}: [{issue.code}] {issue.path} - {issue.message}"
        )
    return lines
