"""Unit tests for metrics.py: validation, canonical form and derived scores."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import ValidationError
from metrics import classify_player, derive_metrics, performance_score, validate_metrics
from models import PlayerMetrics

APM_ERROR = "APM must be a non-negative number"
DODGE_ERROR = "Dodge ratio must be between 0 and 1"
ROUND_ERROR = "Round must be a positive integer"


class TestValidateMetrics:
    def test_canonical_form(self):
        metrics = validate_metrics({"apm": 84.6, "dodgeRatio": 0.61234, "round": 2.4})
        assert metrics == PlayerMetrics(apm=85, dodge_ratio=0.612, round=2)

    def test_half_values_round_up(self):
        metrics = validate_metrics({"apm": 84.5, "dodgeRatio": 0.5, "round": 1.5})
        assert metrics.apm == 85
        assert metrics.round == 2

    def test_snake_case_keys_accepted(self):
        metrics = validate_metrics({"apm": 10, "dodge_ratio": 0.25, "round": 3})
        assert metrics.dodge_ratio == 0.25

    def test_bounds_are_inclusive(self):
        assert validate_metrics({"apm": 0, "dodgeRatio": 0, "round": 1}).apm == 0
        assert validate_metrics({"apm": 0, "dodgeRatio": 1, "round": 1}).dodge_ratio == 1

    def test_dodge_ratio_out_of_range_reports_only_that_error(self):
        with pytest.raises(ValidationError) as excinfo:
            validate_metrics({"apm": 85, "dodgeRatio": 1.5, "round": 2})
        assert excinfo.value.errors == [DODGE_ERROR]
        assert str(excinfo.value) == f"Invalid metrics: {DODGE_ERROR}"

    def test_all_violations_collected(self):
        with pytest.raises(ValidationError) as excinfo:
            validate_metrics({"apm": -1, "dodgeRatio": "high", "round": 0})
        assert excinfo.value.errors == [APM_ERROR, DODGE_ERROR, ROUND_ERROR]

    @pytest.mark.parametrize("raw", [None, [], "apm=5", {}])
    def test_non_object_or_empty_body(self, raw):
        with pytest.raises(ValidationError) as excinfo:
            validate_metrics(raw)
        assert len(excinfo.value.errors) == 3

    @pytest.mark.parametrize("value", [True, float("nan"), float("inf"), "85"])
    def test_non_numbers_rejected(self, value):
        with pytest.raises(ValidationError) as excinfo:
            validate_metrics({"apm": value, "dodgeRatio": 0.5, "round": 1})
        assert excinfo.value.errors == [APM_ERROR]

    def test_huge_integers_are_kept_exact(self):
        metrics = validate_metrics(
            {"apm": 10**400, "dodgeRatio": 0.5, "round": 10**400, "distanceTraveled": 10**400}
        )
        assert metrics.apm == 10**400
        assert metrics.round == 10**400
        assert metrics.distance_traveled == 10**400
        assert performance_score(metrics) == 67

    def test_optional_fields_normalized(self):
        metrics = validate_metrics(
            {
                "apm": 100,
                "dodgeRatio": 0.7,
                "round": 4,
                "distanceTraveled": 1234.5,
                "reactionTime": 0.23456,
                "damageDealt": 151.2,
                "timeSurvived": 29.999,
            }
        )
        assert metrics.distance_traveled == 1235
        assert metrics.reaction_time == 0.235
        assert metrics.damage_dealt == 151
        assert metrics.time_survived == 30.0

    def test_invalid_optional_fields_are_dropped(self):
        metrics = validate_metrics(
            {"apm": 100, "dodgeRatio": 0.7, "round": 4, "distanceTraveled": -3, "reactionTime": "fast"}
        )
        assert metrics.distance_traveled is None
        assert metrics.reaction_time is None
        assert "distance_traveled" not in metrics.to_dict()


class TestDerivedMetrics:
    def test_performance_score_weights(self):
        # 75/150 * 0.4 + 0.5 * 0.5 + min(2/20, 0.2) * 0.1 = 0.46
        metrics = PlayerMetrics(apm=75, dodge_ratio=0.5, round=2)
        assert performance_score(metrics) == 46

    def test_apm_and_round_contributions_are_capped(self):
        metrics = PlayerMetrics(apm=1000, dodge_ratio=1.0, round=100)
        assert performance_score(metrics) == 92

    @pytest.mark.parametrize(
        "apm,dodge,expected",
        [
            (130, 0.9, "expert_aggressive"),
            (50, 0.9, "expert_defensive"),
            (130, 0.3, "aggressive_risky"),
            (50, 0.3, "beginner"),
            (90, 0.6, "intermediate"),
        ],
    )
    def test_classify_player(self, apm, dodge, expected):
        assert classify_player(PlayerMetrics(apm=apm, dodge_ratio=dodge, round=1)) == expected

    def test_suggested_adjustment(self):
        assert derive_metrics(PlayerMetrics(apm=150, dodge_ratio=0.9, round=5)).suggested_adjustment == "increase"
        assert derive_metrics(PlayerMetrics(apm=30, dodge_ratio=0.2, round=1)).suggested_adjustment == "decrease"
        assert derive_metrics(PlayerMetrics(apm=90, dodge_ratio=0.6, round=3)).suggested_adjustment == "maintain"
