from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from projection.rate_brackets import (  # noqa: E402
    ADULT_RANGES,
    MINOR_RANGES,
    RateBracket,
    build_rate_brackets,
    coerce_number,
    find_age_row,
    resolve_coverage,
    select_active_bracket,
)


def _row(age: int) -> list[object]:
    # male pairs at 1/2, 5/6, 9/10, 13/14; female pairs at 3/4, 7/8, 11/12, 15/16
    return [
        age,
        1.1, 2.2, 1.3, 2.4,
        1.5, 5.6, 1.7, 5.8,
        1.9, 10.1, 2.1, 10.2,
        2.3, 250_000, 2.5, 9_999_999,
    ]


def test_adult_male_brackets_read_male_columns() -> None:
    brackets = build_rate_brackets(40, "male", _row(40))

    assert brackets is not None
    assert [b.name for b in brackets] == ["Standard", "Preferred", "Executive", "Select"]
    assert [b.range for b in brackets] == list(ADULT_RANGES)
    assert [b.rate_per_thousand for b in brackets] == [1.1, 1.5, 1.9, 2.3]
    assert brackets[0].monthly_cutoff == 2.2
    assert brackets[1].monthly_cutoff == 5.6
    assert brackets[2].monthly_cutoff == 10.1
    assert brackets[3].monthly_cutoff == pytest.approx(250_000 / 1000 * 2.3 / 12)


def test_adult_female_select_with_uncapped_ceiling_has_no_cutoff() -> None:
    brackets = build_rate_brackets(40, "female", _row(40))

    assert brackets is not None
    assert [b.rate_per_thousand for b in brackets] == [1.3, 1.7, 2.1, 2.5]
    assert [b.monthly_cutoff for b in brackets] == [2.4, 5.8, 10.2, None]


def test_minor_brackets_have_empty_select_and_minor_labels() -> None:
    for sex in ("male", "female"):
        brackets = build_rate_brackets(10, sex, _row(10))
        assert brackets is not None
        assert len(brackets) == 4
        assert [b.range for b in brackets] == list(MINOR_RANGES)
        assert brackets[3] == RateBracket(name="Select", range="-", rate_per_thousand=None, monthly_cutoff=None)


def test_range_labels_do_not_depend_on_sex() -> None:
    male = build_rate_brackets(50, "male", _row(50))
    female = build_rate_brackets(50, "female", _row(50))
    assert [b.range for b in male] == [b.range for b in female]


def test_missing_age_row_yields_no_brackets() -> None:
    rows = [_row(30), _row(31)]
    assert find_age_row(rows, 31)[0] == 31
    assert find_age_row(rows, 45) is None
    assert find_age_row([], 45) is None
    assert build_rate_brackets(45, "male", find_age_row(rows, 45)) is None


def test_short_row_treats_missing_cells_as_none() -> None:
    brackets = build_rate_brackets(40, "male", [40, 1.1, 2.2])
    assert brackets is not None
    assert brackets[1].rate_per_thousand is None
    assert brackets[3].monthly_cutoff is None


def test_unsupported_sex_raises() -> None:
    with pytest.raises(ValueError):
        build_rate_brackets(40, "other", _row(40))


@pytest.mark.parametrize(
    ("policy_size", "expected"),
    [
        (10_000, 0),
        (15_099, 0),
        (15_100, 1),
        (30_000, 1),
        (59_999, 1),
        (80_000, 2),
        (119_999, 2),
        (150_000, 3),
    ],
)
def test_select_by_policy_size_uses_fixed_thresholds(policy_size: float, expected: int) -> None:
    brackets = build_rate_brackets(40, "male", _row(40))
    assert select_active_bracket(brackets, policy_size=policy_size) == expected


def test_policy_size_takes_precedence_over_budget() -> None:
    brackets = build_rate_brackets(40, "male", _row(40))
    assert select_active_bracket(brackets, policy_size=10_000, monthly_budget=1_000) == 0


def test_select_by_budget_uses_first_covering_cutoff() -> None:
    male = build_rate_brackets(40, "male", _row(40))
    female = build_rate_brackets(40, "female", _row(40))

    assert select_active_bracket(male, monthly_budget=2.0) == 0
    assert select_active_bracket(male, monthly_budget=5.0) == 1
    assert select_active_bracket(male, monthly_budget=20.0) == 3
    assert select_active_bracket(female, monthly_budget=10.2) == 2
    # no covering cutoff falls through to the uncapped bracket
    assert select_active_bracket(male, monthly_budget=100.0) == 3
    assert select_active_bracket(female, monthly_budget=50.0) == 3


def test_select_without_inputs_or_brackets_is_none() -> None:
    brackets = build_rate_brackets(40, "male", _row(40))
    assert select_active_bracket(brackets) is None
    assert select_active_bracket(None, policy_size=10_000) is None
    assert select_active_bracket(None, monthly_budget=200) is None


def test_resolve_coverage_derives_missing_side() -> None:
    bracket = RateBracket(name="Preferred", range="x", rate_per_thousand=1.5, monthly_cutoff=5.6)

    assert resolve_coverage(50_000, None, bracket) == (pytest.approx(75.0), 50_000.0)
    budget, size = resolve_coverage(None, 75.0, bracket)
    assert budget == 75.0
    assert size == pytest.approx(50_000.0)
    assert resolve_coverage(50_000, None, None) == (0.0, 50_000.0)
    assert resolve_coverage(None, 75.0, None) == (75.0, 0.0)
    assert resolve_coverage(None, None, bracket) == (0.0, 0.0)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (3, 3.0),
        (2.5, 2.5),
        (" 1,250.5 ", 1250.5),
        ("", None),
        ("n/a", None),
        (None, None),
        (True, None),
        (float("nan"), None),
    ],
)
def test_coerce_number_normalises_cells(raw: object, expected: float | None) -> None:
    assert coerce_number(raw) == expected
