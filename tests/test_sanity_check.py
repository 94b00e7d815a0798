import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from sanity_check import check


def codes(warnings):
    return [(w.code, w.field) for w in warnings]


def test_heavy_jump_reports_every_warning():
    result = check("strength", {"weight": 1200, "reps": 5}, {"weight": 200, "reps": 5})
    assert codes(result) == [("implausible_weight", "weight"), ("large_jump", "weight")]


def test_all_strength_warnings_together():
    result = check(
        "strength", {"weight": 1200, "reps": 150}, {"weight": 200, "reps": 5}
    )
    assert codes(result) == [
        ("implausible_weight", "weight"),
        ("implausible_reps", "reps"),
        ("large_jump", "weight"),
        ("large_jump", "reps"),
    ]


def test_decrease_is_not_flagged():
    assert check("strength", {"weight": 50, "reps": 1}, {"weight": 200, "reps": 5}) == []


def test_jump_needs_positive_history():
    assert check("strength", {"weight": 300, "reps": 5}, {"weight": 0, "reps": 0}) == []
    assert check("strength", {"weight": 300, "reps": 5}) == []


def test_reps_doubling_is_a_jump():
    result = check("strength", {"weight": 100, "reps": 10}, {"weight": 100, "reps": 5})
    assert codes(result) == [("large_jump", "reps")]


def test_bodyweight_and_endurance_limits():
    assert codes(check("bodyweight", {"reps": 250})) == [("implausible_reps", "reps")]
    assert check("bodyweight", {"reps": 150}) == []
    assert codes(check("endurance", {"duration_seconds": 4000})) == [
        ("implausible_duration", "duration_seconds")
    ]
    assert check("endurance", {"duration_seconds": 3600}) == []


def test_unknown_kind():
    with pytest.raises(ValueError):
        check("cardio", {"reps": 1})


def test_warning_serialises():
    warning = check("bodyweight", {"reps": 201})[0]
    assert warning.to_dict()["code"] == "implausible_reps"
    assert "201" in warning.to_dict()["message"]
