"""Game state dataclass definitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import UTC, datetime


def _iso(epoch_seconds: float) -> str:
    return datetime.fromtimestamp(epoch_seconds, UTC).isoformat()


@dataclass(frozen=True)
class TerrainConfig:
    type: str
    movement_modifier: float


@dataclass(frozen=True)
class BossConfig:
    speed: float
    health: float
    damage: float
    shield: float

    def as_candidate(self) -> dict[str, object]:
        """Render in the ``boss_*`` shape accepted by the clamp operation."""
        return {
            "boss_speed": self.speed,
            "boss_health": self.health,
            "boss_damage": self.damage,
            "boss_shield": self.shield,
        }


@dataclass(frozen=True)
class GameConfig:
    terrain: TerrainConfig
    boss: BossConfig

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class PlayerMetrics:
    apm: int
    dodge_ratio: float
    round: int
    distance_traveled: int | None = None
    reaction_time: float | None = None
    damage_dealt: int | None = None
    time_survived: float | None = None

    def to_dict(self) -> dict[str, object]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class DerivedMetrics:
    performance_score: int
    suggested_adjustment: str
    player_type: str


@dataclass
class GameSession:
    session_id: str
    player_id: str
    started_at: float
    last_activity: float
    current_round: int = 1
    is_active: bool = True

    @property
    def started_at_iso(self) -> str:
        return _iso(self.started_at)

    @property
    def last_activity_iso(self) -> str:
        return _iso(self.last_activity)


@dataclass
class NegotiationResult:
    config: GameConfig
    used_model: bool
    error: str | None = None
    error_kind: str | None = None
    prompt: str | None = None
    raw_reply: str | None = None
    elapsed_seconds: float = 0.0
