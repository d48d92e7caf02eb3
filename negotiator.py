"""Difficulty negotiation: prompt the model, validate its reply, fall back on failure."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable

import game_config as config
from catalog import BOSS_CONSTRAINTS, TERRAIN_EFFECTS, clamp_boss_config, resolve_terrain, terrain_tags
from errors import ModelCallError, ModelParseError, ModelTimeoutError, NegotiationError
from metrics import derive_metrics
from models import GameConfig, NegotiationResult, PlayerMetrics

log = logging.getLogger(__name__)

CompleteFn = Callable[[str], Awaitable[str]]

CONNECTION_TEST_PROMPT = 'Return only JSON: {"test": "success"}'


def skill_label(metrics: PlayerMetrics) -> str:
    """Qualitative skill level used only to phrase the prompt."""
    if metrics.apm > 120 and metrics.dodge_ratio > 0.7:
        return "expert"
    if metrics.apm > 80 and metrics.dodge_ratio > 0.5:
        return "intermediate"
    return "beginner"


def _apm_band(apm: int) -> str:
    if apm > 100:
        return "High"
    if apm > 60:
        return "Medium"
    return "Low"


def _dodge_band(dodge_percent: int) -> str:
    if dodge_percent > 70:
        return "Excellent"
    if dodge_percent > 50:
        return "Good"
    return "Needs Improvement"


def build_prompt(current: GameConfig, metrics: PlayerMetrics) -> str:
    terrain, boss = current.terrain, current.boss
    dodge_percent = int(metrics.dodge_ratio * 100 + 0.5)
    derived = derive_metrics(metrics)

    performance = [
        f"- Actions Per Minute: {metrics.apm} ({_apm_band(metrics.apm)})",
        f"- Dodge Success Rate: {dodge_percent}% ({_dodge_band(dodge_percent)})",
        f"- Current Round: {metrics.round}",
        f"- Skill Level: {skill_label(metrics)}",
        f"- Player Type: {derived.player_type}",
        f"- Performance Score: {derived.performance_score}/100 (suggested: {derived.suggested_adjustment} difficulty)",
    ]
    if metrics.distance_traveled is not None:
        performance.append(f"- Distance Traveled: {metrics.distance_traveled} units")
    if metrics.reaction_time is not None:
        performance.append(f"- Average Reaction Time: {metrics.reaction_time}s")
    if metrics.damage_dealt is not None:
        performance.append(f"- Damage Dealt To Boss: {metrics.damage_dealt}")
    if metrics.time_survived is not None:
        performance.append(f"- Time Survived: {metrics.time_survived}s")

    terrain_lines = [f'- "{tag}": {effect}' for tag, effect in TERRAIN_EFFECTS.items()]
    speed_lo, speed_hi = BOSS_CONSTRAINTS["speed"]
    health_lo, health_hi = BOSS_CONSTRAINTS["health"]
    damage_lo, damage_hi = BOSS_CONSTRAINTS["damage"]
    shield_lo, shield_hi = BOSS_CONSTRAINTS["shield"]
    terrain_choices = " | ".join(f'"{tag}"' for tag in terrain_tags())

    return (
        "Player Performance Analysis:\n"
        + "\n".join(performance)
        + "\n\nCurrent Game Configuration:\n"
        f"- Terrain: {terrain.type} (movement modifier: {terrain.movement_modifier})\n"
        f"- Boss Speed: {boss.speed}/{speed_hi}\n"
        f"- Boss Health: {boss.health} HP\n"
        f"- Boss Damage: {boss.damage}\n"
        f"- Boss Shield: {boss.shield}\n"
        "\nTERRAIN EFFECTS ON GAMEPLAY:\n"
        + "\n".join(terrain_lines)
        + "\n\nBOSS DIFFICULTY SCALING:\n"
        f"- boss_speed: {speed_lo}-{speed_hi} (higher = boss attacks faster, more pressure)\n"
        f"- boss_health: {health_lo}-{health_hi} (higher = longer fights, more endurance needed)\n"
        f"- boss_damage: {damage_lo}-{damage_hi} (higher = more punishing when hit)\n"
        f"- boss_shield: {shield_lo}-{shield_hi} (higher = boss takes less damage, longer fights)\n"
        "\nTASK: Adjust difficulty to maintain engagement and challenge:\n"
        "- If player performing excellently (high APM + high dodge rate): Increase challenge "
        "with harder terrain and stronger boss\n"
        "- If player struggling (low APM + low dodge rate): Reduce difficulty with easier "
        "terrain and weaker boss\n"
        "- If player improving: Gradually scale up difficulty\n"
        "- Consider terrain choice strategically: smooth for speed challenges, sticky for "
        "precision challenges, rugged for balanced\n"
        "\nCONSTRAINTS:\n"
        f"- terrain: {terrain_choices}\n"
        f"- boss_speed: {speed_lo}-{speed_hi} (current: {boss.speed})\n"
        f"- boss_health: {health_lo}-{health_hi} (current: {boss.health})\n"
        f"- boss_damage: {damage_lo}-{damage_hi} (current: {boss.damage})\n"
        f"- boss_shield: {shield_lo}-{shield_hi} (current: {boss.shield})\n"
        "\nReturn ONLY a single valid JSON object with exactly the keys terrain, boss_speed, "
        "boss_health, boss_damage, boss_shield and nothing else, in this format:\n"
        "{\n"
        '  "terrain": "smooth",\n'
        '  "boss_speed": 45,\n'
        '  "boss_health": 120,\n'
        '  "boss_damage": 15,\n'
        '  "boss_shield": 10\n'
        "}"
    )


def extract_json_object(text: str) -> dict[str, object]:
    """Parse the first balanced ``{...}`` in free-form model output.

    Braces inside JSON string literals are ignored while matching.
    """
    start = text.find("{") if text else -1
    if start < 0:
        raise ModelParseError("No JSON found in LLM response")
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start : index + 1])
                except ValueError as exc:
                    raise ModelParseError(f"Invalid JSON in LLM response: {getattr(exc, 'msg', exc)}") from exc
                if not isinstance(parsed, dict):
                    raise ModelParseError("LLM response JSON is not an object")
                return parsed
    raise ModelParseError("No balanced JSON object found in LLM response")


def parse_model_reply(reply: str) -> GameConfig:
    """Validate a raw reply against the catalog; raises on parse or terrain failure."""
    payload = extract_json_object(reply)
    terrain = resolve_terrain(payload.get("terrain"))
    return GameConfig(terrain=terrain, boss=clamp_boss_config(payload))


def _discard_late_result(task: asyncio.Future[str]) -> None:
    if not task.cancelled():
        task.exception()


class DifficultyNegotiator:
    """Derives a new ``GameConfig`` from the current one plus player metrics."""

    def __init__(self, complete: CompleteFn, timeout_seconds: float | None = None) -> None:
        self._complete = complete
        self.timeout_seconds = config.LLM_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    async def _call_model(self, prompt: str) -> str:
        task = asyncio.ensure_future(self._complete(prompt))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task not in done:
            # Whatever the model returns after this point is dropped.
            task.cancel()
            task.add_done_callback(_discard_late_result)
            raise ModelTimeoutError(f"LLM request timed out after {self.timeout_seconds:g}s")
        try:
            return task.result()
        except NegotiationError:
            raise
        except Exception as exc:
            raise ModelCallError(f"LLM API call failed: {exc}") from exc

    async def negotiate(self, current: GameConfig, metrics: PlayerMetrics) -> NegotiationResult:
        """Never raises: failures return ``current`` with ``used_model=False``."""
        log.info("Generating config for round %s", metrics.round)
        prompt = build_prompt(current, metrics)
        log.debug("LLM prompt:\n%s", prompt)
        started = time.perf_counter()
        reply: str | None = None
        try:
            reply = await self._call_model(prompt)
            log.debug("LLM response:\n%s", reply)
            new_config = parse_model_reply(reply)
        except NegotiationError as exc:
            elapsed = time.perf_counter() - started
            log.warning(
                "LLM negotiation failed (%s): %s | metrics=%s current=%s raw=%r",
                exc.kind, exc, metrics.to_dict(), current.to_dict(), reply,
            )
            return NegotiationResult(
                config=current,
                used_model=False,
                error=f"{exc.kind}: {exc}",
                error_kind=exc.kind,
                elapsed_seconds=elapsed,
            )
        except Exception as exc:
            elapsed = time.perf_counter() - started
            log.exception("Unexpected negotiation failure for round %s", metrics.round)
            return NegotiationResult(
                config=current,
                used_model=False,
                error=f"negotiation: {exc}",
                error_kind="negotiation",
                elapsed_seconds=elapsed,
            )
        elapsed = time.perf_counter() - started
        log.info("LLM generated new config in %.2fs: %s", elapsed, new_config.to_dict())
        return NegotiationResult(
            config=new_config,
            used_model=True,
            prompt=prompt,
            raw_reply=reply,
            elapsed_seconds=elapsed,
        )

    async def test_connection(self) -> bool:
        try:
            reply = await self._call_model(CONNECTION_TEST_PROMPT)
        except NegotiationError as exc:
            log.warning("LLM connection test failed: %s", exc)
            return False
        return "success" in reply
