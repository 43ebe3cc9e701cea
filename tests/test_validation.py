from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from projection.validation import (  # noqa: E402
    format_validation_issues,
    has_validation_errors,
    validate_config,
)


def _base_config() -> dict:
    return {
        "assumptions": {
            "age": 40,
            "sex": "male",
            "monthly_budget": 200,
            "term_policy_length": 10,
            "term_budget": 25,
        },
        "engine": {"percentile_index_basis": "n_minus_one"},
        "reference_data": {"data_dir": "data"},
    }


def test_validate_config_accepts_base_config() -> None:
    assert validate_config(_base_config()) == []


def test_validate_config_warns_for_deprecated_and_ambiguous_settings() -> None:
    config = _base_config()
    config["assumptions"]["term_policy"] = "10 YEAR"
    config["assumptions"]["policy_size"] = 50_000
    config["typo_top"] = {}

    issues = validate_config(config)
    codes = {issue.code for issue in issues}

    assert "deprecated_key_used" in codes
    assert "budget_and_policy_size_set" in codes
    assert "unknown_top_level_key" in codes
    assert not has_validation_errors(issues)


def test_validate_config_reports_missing_required_inputs() -> None:
    config = _base_config()
    del config["assumptions"]["age"]
    config["assumptions"]["sex"] = " "

    issues = validate_config(config)
    codes = {issue.code for issue in issues}
    assert has_validation_errors(issues)
    assert {"missing_age", "missing_sex"} <= codes


def test_validate_config_reports_invalid_age_and_sex() -> None:
    config = _base_config()
    config["assumptions"]["age"] = -1
    config["assumptions"]["sex"] = "other"

    issues = validate_config(config)
    codes = {issue.code for issue in issues}
    assert {"invalid_age", "unsupported_sex"} <= codes


def test_validate_config_accepts_age_zero() -> None:
    config = _base_config()
    config["assumptions"]["age"] = 0
    assert not has_validation_errors(validate_config(config))


def test_validate_config_warns_on_contribution_shape() -> None:
    config = _base_config()
    config["assumptions"]["term_budget"] = 300
    codes = {issue.code for issue in validate_config(config)}
    assert "term_budget_exceeds_budget" in codes

    config = _base_config()
    del config["assumptions"]["monthly_budget"]
    codes = {issue.code for issue in validate_config(config)}
    assert "no_contribution_source" in codes


def test_validate_config_flags_unknown_legacy_term_policy() -> None:
    config = _base_config()
    config["assumptions"]["term_policy"] = "20 YEAR"
    issues = validate_config(config)
    assert any(issue.code == "unsupported_term_policy" for issue in issues)
    assert not has_validation_errors(issues)


def test_validate_config_warns_on_non_positive_horizon() -> None:
    config = _base_config()
    config["assumptions"]["age"] = 80
    assert any(issue.code == "non_positive_horizon" for issue in validate_config(config))

    config = _base_config()
    config["assumptions"]["custom_time_horizon"] = 0
    assert any(issue.code == "non_positive_horizon" for issue in validate_config(config))


def test_validate_config_checks_percentile_settings() -> None:
    config = _base_config()
    config["assumptions"]["performance_percentile"] = 120
    config["engine"]["percentile_index_basis"] = "midpoint"

    issues = validate_config(config)
    codes = {issue.code for issue in issues}
    assert "percentile_out_of_range" in codes
    assert "unsupported_percentile_index_basis" in codes
    assert has_validation_errors(issues)


def test_format_validation_issues_contains_prefix() -> None:
    config = _base_config()
    config["typo_top"] = {}
    lines = format_validation_issues(validate_config(config), prefix="projection.cli run")
    assert lines
    assert all(line.startswith("projection.cli run:") for line in lines)


def test_validate_config_rejects_inflation_rate_at_or_below_minus_one() -> None:
    for rate in (-1, -1.5, "-1"):
        config = _base_config()
        config["assumptions"]["inflation_rate"] = rate

        issues = validate_config(config)
        assert has_validation_errors(issues)
        assert any(
            issue.code == "invalid_inflation_rate" and issue.path == "assumptions.inflation_rate"
            for issue in issues
        )

    config = _base_config()
    config["assumptions"]["inflation_rate"] = -0.5
    assert not has_validation_errors(validate_config(config))


def test_validate_config_rejects_non_numeric_values() -> None:
    config = _base_config()
    config["assumptions"]["market_gain_rate"] = "ten"
    config["assumptions"]["monthly_budget"] = "lots"

    issues = validate_config(config)
    paths = {issue.path for issue in issues if issue.code == "non_numeric_value"}
    assert has_validation_errors(issues)
    assert paths == {"assumptions.market_gain_rate", "assumptions.monthly_budget"}


def test_validate_config_rejects_unreadable_flags() -> None:
    config = _base_config()
    config["assumptions"]["tobacco_user"] = "sometimes"
    config["engine"]["term_cost_from_inception"] = "false"

    issues = validate_config(config)
    flagged = [issue.path for issue in issues if issue.code == "invalid_boolean"]
    assert flagged == ["assumptions.tobacco_user"]
