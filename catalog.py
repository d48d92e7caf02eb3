"""Static catalog of terrain variants and boss parameter ranges."""

from __future__ import annotations

import math
from collections.abc import Mapping

from errors import InvalidTerrainError
from models import BossConfig, GameConfig, TerrainConfig

TERRAIN_CONFIGS: dict[str, TerrainConfig] = {
    # Faster movement, less control: the player slips.
    "smooth": TerrainConfig(type="smooth", movement_modifier=1.2),
    # Slower movement, hard to escape attacks.
    "sticky": TerrainConfig(type="sticky", movement_modifier=0.7),
    # Normal control, no bonus or penalty.
    "rugged": TerrainConfig(type="rugged", movement_modifier=1.0),
}

TERRAIN_EFFECTS: dict[str, str] = {
    "smooth": "Player moves faster but has less control (slips around), harder to precisely dodge",
    "sticky": "Player movement is slowed, harder to escape from attacks, defensive disadvantage",
    "rugged": "Normal player control, balanced terrain, no movement penalties or bonuses",
}

BOSS_CONSTRAINTS: dict[str, tuple[int, int]] = {
    "speed": (1, 100),
    "health": (50, 500),
    "damage": (5, 50),
    "shield": (0, 100),
}

DEFAULT_TERRAIN = TERRAIN_CONFIGS["rugged"]
DEFAULT_BOSS = BossConfig(speed=30, health=100, damage=10, shield=0)
DEFAULT_GAME_CONFIG = GameConfig(terrain=DEFAULT_TERRAIN, boss=DEFAULT_BOSS)


def terrain_tags() -> list[str]:
    return list(TERRAIN_CONFIGS)


def resolve_terrain(tag: object) -> TerrainConfig:
    """Return the catalog entry for an exact terrain tag."""
    if not isinstance(tag, str) or tag not in TERRAIN_CONFIGS:
        raise InvalidTerrainError(f"Invalid terrain type: {tag!r}")
    return TERRAIN_CONFIGS[tag]


def _supplied_or_default(value: object, default: float) -> float:
    # Truthy fallback: 0, None and "" all fall back to the default, so a
    # requested shield of 0 yields the default shield.
    if isinstance(value, bool) or not value:
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or (isinstance(value, float) and math.isnan(value)):
        return default
    return value


def _clamp(value: float, bounds: tuple[int, int]) -> float:
    low, high = bounds
    clamped = max(low, min(high, value))
    if isinstance(clamped, float) and clamped.is_integer():
        return int(clamped)
    return clamped


def clamp_boss_config(candidate: Mapping[str, object]) -> BossConfig:
    """Build a ``BossConfig`` from ``boss_*`` fields, forced into range.

    Missing, zero or non-numeric fields take the default value before
    clamping.  The result always satisfies ``BOSS_CONSTRAINTS``.
    """
    fields: dict[str, float] = {}
    for name, bounds in BOSS_CONSTRAINTS.items():
        supplied = candidate.get(f"boss_{name}") if isinstance(candidate, Mapping) else None
        fields[name] = _clamp(_supplied_or_default(supplied, getattr(DEFAULT_BOSS, name)), bounds)
    return BossConfig(**fields)


def constraints_summary() -> dict[str, object]:
    return {
        "terrain": {tag: terrain.movement_modifier for tag, terrain in TERRAIN_CONFIGS.items()},
        "boss": {name: {"min": low, "max": high} for name, (low, high) in BOSS_CONSTRAINTS.items()},
    }
