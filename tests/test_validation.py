import pytest

from schemas.marks import ScoreKind
from services.validation import (
    ScoreLimits, compute_aggregate_percentage, compute_total, is_failing, validate_score,
)
from conftest import make_record


@pytest.mark.parametrize("internal,external", [(0, 0), (18, 70), (20, 80), (12.5, 33.5)])
def test_total_is_exact_sum_of_valid_scores(limits, internal, external):
    i = validate_score(ScoreKind.INTERNAL, internal, limits)
    e = validate_score(ScoreKind.EXTERNAL, external, limits)
    assert i.valid and e.valid
    assert compute_total(i.value, e.value) == internal + external


@pytest.mark.parametrize("kind,value,max_score", [
    (ScoreKind.INTERNAL, 25, 20),
    (ScoreKind.INTERNAL, -1, 20),
    (ScoreKind.EXTERNAL, 80.5, 80),
    (ScoreKind.EXTERNAL, "81", 80),
])
def test_out_of_range_is_reported_not_clamped(limits, kind, value, max_score):
    check = validate_score(kind, value, limits)
    assert not check.valid
    assert check.value is None
    assert check.raw == value
    assert check.error.kind == kind
    assert check.error.max == max_score


def test_empty_is_not_an_error_and_differs_from_zero(limits):
    empty = validate_score(ScoreKind.INTERNAL, "", limits)
    missing = validate_score(ScoreKind.INTERNAL, None, limits)
    zero = validate_score(ScoreKind.INTERNAL, 0, limits)

    assert empty.valid and missing.valid and zero.valid
    assert not empty.entered and not missing.entered
    assert zero.entered and zero.value == 0
    assert compute_total(empty.value, None) == 0


def test_non_numeric_text_is_a_range_error(limits):
    check = validate_score(ScoreKind.EXTERNAL, "abc", limits)
    assert not check.valid
    assert check.raw == "abc"
    assert "0~80" in check.error.message


def test_maxima_come_from_configuration():
    strict = ScoreLimits(internal_max=10, external_max=40)
    assert not validate_score(ScoreKind.INTERNAL, 15, strict).valid
    assert validate_score(ScoreKind.EXTERNAL, 40, strict).valid
    assert strict.subject_max == 50


def test_aggregate_percentage_example(limits):
    records = [make_record("s1", "math", 18, 70), make_record("s1", "science", 15, 60)]
    assert compute_aggregate_percentage(records, limits) == 81.5


def test_aggregate_percentage_of_nothing_is_zero(limits):
    assert compute_aggregate_percentage([], limits) == 0


def test_failing_threshold(limits):
    assert is_failing(34, limits)
    assert not is_failing(35, limits)
