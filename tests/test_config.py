from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from projection.config import (  # noqa: E402
    read_assumptions,
    read_bool,
    read_engine_options,
    read_reference_data_settings,
    read_term_policy_length,
    reference_data_dir,
)
from projection.reference_data import RowRange  # noqa: E402


def test_read_assumptions_applies_defaults() -> None:
    assumptions = read_assumptions({"assumptions": {"age": 40, "sex": "Male", "monthly_budget": 200}})

    assert assumptions.age == 40
    assert assumptions.sex == "male"
    assert assumptions.inflation_rate == 0.0328
    assert assumptions.market_gain_rate == 0.104
    assert assumptions.retirement_age == 65
    assert assumptions.life_expectancy is None
    assert assumptions.resolved_life_expectancy() == 76
    assert assumptions.policy_size is None
    assert assumptions.term_policy_length == 0
    assert assumptions.term_budget == 0.0


def test_read_assumptions_keeps_missing_required_inputs_unset() -> None:
    assumptions = read_assumptions({})
    assert assumptions.age is None
    assert assumptions.sex is None


@pytest.mark.parametrize(
    ("cfg", "expected"),
    [
        ({}, 0),
        ({"term_policy_length": 15}, 15),
        ({"term_policy": "10 YEAR"}, 10),
        ({"term_policy": " 10 year "}, 10),
        ({"term_policy": 20}, 20),
        ({"term_policy": "20 YEAR"}, 0),
        ({"term_policy_length": 5, "term_policy": "10 YEAR"}, 5),
    ],
)
def test_read_term_policy_length(cfg: dict, expected: int) -> None:
    assert read_term_policy_length(cfg) == expected


def test_read_engine_options_defaults_and_overrides() -> None:
    defaults = read_engine_options({})
    assert defaults.term_cost_from_inception is True
    assert defaults.percentile_index_basis == "n_minus_one"

    options = read_engine_options({"engine": {"term_cost_from_inception": False, "percentile_index_basis": "n"}})
    assert options.term_cost_from_inception is False
    assert options.percentile_index_basis == "n"


def test_read_reference_data_settings_row_ranges() -> None:
    settings = read_reference_data_settings(
        {
            "reference_data": {
                "mortality": {"male_rows": [1, 102], "female_rows": [104]},
                "market_history": {"first_row": 1, "last_row": 841},
            }
        }
    )
    assert settings.mortality_male_rows == RowRange(1, 102)
    assert settings.mortality_female_rows == RowRange(104)
    assert settings.market_history_rows == RowRange(1, 841)
    assert settings.rate_table_sheet == "LI_RATES"


def test_read_reference_data_settings_defaults() -> None:
    settings = read_reference_data_settings({})
    assert settings.mortality_female_rows is None
    assert settings.market_history_rows == RowRange(1)
    assert reference_data_dir({}) == "data"


def test_read_reference_data_settings_rejects_bad_row_range() -> None:
    with pytest.raises(ValueError):
        read_reference_data_settings({"reference_data": {"mortality": {"male_rows": [1, 2, 3]}}})


def test_sample_config_reads_cleanly() -> None:
    config = yaml.safe_load((REPO_ROOT / "configs" / "sample.yaml").read_text(encoding="utf-8"))
    assumptions = read_assumptions(config)
    settings = read_reference_data_settings(config)

    assert assumptions.age == 40
    assert assumptions.term_policy_length == 10
    assert settings.mortality_female_rows == RowRange(104, 205)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, True),
        (False, False),
        ("false", False),
        (" No ", False),
        ("0", False),
        (0, False),
        ("yes", True),
        (1, True),
    ],
)
def test_read_bool(raw: object, expected: bool) -> None:
    assert read_bool(raw, True) is expected


def test_quoted_false_disables_term_cost_from_inception() -> None:
    options = read_engine_options({"engine": {"term_cost_from_inception": "false"}})
    assert options.term_cost_from_inception is False
    assumptions = read_assumptions({"assumptions": {"age": 40, "sex": "male", "tobacco_user": "no"}})
    assert assumptions.tobacco_user is False


def test_read_bool_rejects_unknown_text() -> None:
    with pytest.raises(ValueError):
        read_bool("sometimes", False)


def test_read_assumptions_accepts_float_text_for_years() -> None:
    assumptions = read_assumptions(
        {"assumptions": {"age": "40", "sex": "male", "custom_time_horizon": "5.0", "term_policy_length": 10.0}}
    )
    assert assumptions.age == 40
    assert assumptions.custom_time_horizon == 5
    assert assumptions.term_policy_length == 10


def test_read_assumptions_raises_on_non_numeric_rate() -> None:
    with pytest.raises(ValueError):
        read_assumptions({"assumptions": {"age": 40, "sex": "male", "market_gain_rate": "ten"}})
