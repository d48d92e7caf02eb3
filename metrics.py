"""Validation and normalization of client-submitted player metrics."""

from __future__ import annotations

import math
from collections.abc import Mapping

from errors import ValidationError
from models import DerivedMetrics, PlayerMetrics

# canonical name -> accepted client keys, camelCase first
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "apm": ("apm",),
    "dodge_ratio": ("dodgeRatio", "dodge_ratio"),
    "round": ("round",),
    "distance_traveled": ("distanceTraveled", "distance_traveled"),
    "reaction_time": ("reactionTime", "reaction_time"),
    "damage_dealt": ("damageDealt", "damage_dealt"),
    "time_survived": ("timeSurvived", "time_survived"),
}


def _is_number(value: object) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def _round_half_up(value: float) -> int:
    # Exact for ints of any size.
    if isinstance(value, int):
        return value
    return int(math.floor(value + 0.5))


def _lookup(raw: Mapping[str, object], name: str) -> object:
    for key in _FIELD_ALIASES[name]:
        if key in raw:
            return raw[key]
    return None


def validate_metrics(raw: object) -> PlayerMetrics:
    """Return canonical metrics or raise ``ValidationError`` listing every problem."""
    data: Mapping[str, object] = raw if isinstance(raw, Mapping) else {}
    errors: list[str] = []

    apm = _lookup(data, "apm")
    if not _is_number(apm) or apm < 0:
        errors.append("APM must be a non-negative number")

    dodge_ratio = _lookup(data, "dodge_ratio")
    if not _is_number(dodge_ratio) or not 0 <= dodge_ratio <= 1:
        errors.append("Dodge ratio must be between 0 and 1")

    round_number = _lookup(data, "round")
    if not _is_number(round_number) or round_number < 1:
        errors.append("Round must be a positive integer")

    if errors:
        raise ValidationError(errors)

    optional: dict[str, float | int] = {}
    distance = _lookup(data, "distance_traveled")
    if _is_number(distance) and distance >= 0:
        optional["distance_traveled"] = _round_half_up(distance)
    reaction = _lookup(data, "reaction_time")
    if _is_number(reaction) and reaction >= 0:
        optional["reaction_time"] = round(reaction, 3)
    damage = _lookup(data, "damage_dealt")
    if _is_number(damage) and damage >= 0:
        optional["damage_dealt"] = _round_half_up(damage)
    survived = _lookup(data, "time_survived")
    if _is_number(survived) and survived >= 0:
        optional["time_survived"] = round(survived, 2)

    return PlayerMetrics(
        apm=_round_half_up(apm),
        dodge_ratio=round(dodge_ratio, 3),
        round=_round_half_up(round_number),
        **optional,
    )


def performance_score(metrics: PlayerMetrics) -> int:
    """Weighted 0-100 score; 150 APM counts as excellent."""
    normalized_apm = min(metrics.apm, 150) / 150
    round_bonus = min(metrics.round, 4) / 20
    score = (normalized_apm * 0.4 + metrics.dodge_ratio * 0.5 + round_bonus * 0.1) * 100
    return _round_half_up(score)


def classify_player(metrics: PlayerMetrics) -> str:
    apm, dodge = metrics.apm, metrics.dodge_ratio
    if apm > 120 and dodge > 0.8:
        return "expert_aggressive"
    if apm < 60 and dodge > 0.8:
        return "expert_defensive"
    if apm > 120 and dodge < 0.5:
        return "aggressive_risky"
    if apm < 60 and dodge < 0.5:
        return "beginner"
    return "intermediate"


def derive_metrics(metrics: PlayerMetrics) -> DerivedMetrics:
    score = performance_score(metrics)
    if score > 75:
        suggestion = "increase"
    elif score < 40:
        suggestion = "decrease"
    else:
        suggestion = "maintain"
    return DerivedMetrics(
        performance_score=score,
        suggested_adjustment=suggestion,
        player_type=classify_player(metrics),
    )
