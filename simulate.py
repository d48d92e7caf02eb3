#!/usr/bin/env python3
"""Game Simulator: plays scripted sessions against a running difficulty server.

Usage:
    python simulate.py profile beginner --rounds 3
    python simulate.py profile expert --rounds 5 --seed 7
    python simulate.py comparison
    python simulate.py health --probe

Talks to the server over HTTP with the standard library only.
"""

from __future__ import annotations

import argparse
import json
import os
import random
import sys
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
BASE_URL = os.environ.get("GAME_API_BASE_URL", "http://localhost:4000/api").rstrip("/")

# ---------------------------------------------------------------------------
# ANSI colours
# ---------------------------------------------------------------------------
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"


def c(text: str, color: str) -> str:
    """Wrap *text* in an ANSI colour code."""
    return f"{color}{text}{RESET}"


BANNER = f"""{c('=' * 52, DIM)}
{c('  Adaptive Difficulty Game Simulator', BOLD + CYAN)}
{c('  Scripted players against the live API.', DIM)}
{c('=' * 52, DIM)}"""

TERRAIN_DESCRIPTIONS = {
    "smooth": "fast movement, less control (slips)",
    "sticky": "slow movement, hard to escape",
    "rugged": "normal control, balanced",
}


# ---------------------------------------------------------------------------
# Player profiles
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PlayerProfile:
    name: str
    base_apm: float
    base_dodge_ratio: float
    improvement: float
    variance: float


PLAYER_PROFILES: dict[str, PlayerProfile] = {
    "beginner": PlayerProfile("Beginner Bob", 45, 0.3, improvement=0.02, variance=0.15),
    "intermediate": PlayerProfile("Intermediate Ian", 85, 0.6, improvement=0.015, variance=0.1),
    "expert": PlayerProfile("Expert Emma", 140, 0.85, improvement=0.005, variance=0.05),
    "inconsistent": PlayerProfile("Inconsistent Jack", 100, 0.5, improvement=0.01, variance=0.25),
}


def generate_metrics(profile: PlayerProfile, round_number: int, rng: random.Random) -> dict[str, object]:
    """Metrics for one round; the player slowly improves, with random noise."""
    skill_progress = 1 + profile.improvement * round_number
    apm_noise = (rng.random() - 0.5) * profile.variance * profile.base_apm
    dodge_noise = (rng.random() - 0.5) * profile.variance

    apm = max(10, round(profile.base_apm * skill_progress + apm_noise))
    dodge_ratio = max(0.1, min(0.95, profile.base_dodge_ratio * skill_progress + dodge_noise))
    reaction_time = max(0.1, 0.5 - dodge_ratio * 0.3 + rng.random() * 0.2)

    return {
        "apm": apm,
        "dodgeRatio": round(dodge_ratio, 3),
        "round": round_number,
        "distanceTraveled": round(500 + apm * 8 + rng.random() * 300),
        "reactionTime": round(reaction_time, 2),
        "damageDealt": round(50 + round_number * 20 + apm * 0.5 + rng.random() * 30),
        "timeSurvived": 30,
    }


# ---------------------------------------------------------------------------
# HTTP helpers (stdlib only)
# ---------------------------------------------------------------------------
def _make_request(method: str, endpoint: str, payload: dict | None = None, timeout: float = 60) -> dict:
    """Send JSON to *endpoint* and return the parsed response body."""
    url = f"{BASE_URL}/{endpoint.lstrip('/')}"
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method=method,
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8")
            return json.loads(body) if body else {}
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        try:
            detail = json.loads(body).get("error", body)
        except (json.JSONDecodeError, AttributeError):
            detail = body
        return {"failed": True, "status": exc.code, "detail": detail}
    except urllib.error.URLError as exc:
        return {"failed": True, "detail": str(exc.reason)}


class SimulationError(RuntimeError):
    pass


def _checked(result: dict, action: str) -> dict:
    if result.get("failed"):
        raise SimulationError(f"{action} failed (status={result.get('status', '?')}): {result.get('detail')}")
    return result


# ---------------------------------------------------------------------------
# Simulator
# ---------------------------------------------------------------------------
@dataclass
class GameSimulator:
    profile: PlayerProfile
    rng: random.Random = field(default_factory=random.Random)
    session_id: str | None = None
    current_round: int = 1
    session_log: list[dict[str, object]] = field(default_factory=list)

    def start_game(self) -> dict:
        print(f"\n  {c('Player:', BOLD)} {self.profile.name}")
        print(
            f"  {c('Base stats:', BOLD)} {self.profile.base_apm:g} APM, "
            f"{round(self.profile.base_dodge_ratio * 100)}% dodge rate"
        )
        player_id = f"sim-{self.profile.name.lower().replace(' ', '-')}-{time.time_ns()}"
        data = _checked(_make_request("POST", "/game/start", {"player_id": player_id}), "start game")
        self.session_id = str(data["session_id"])
        print(c("  OK", GREEN + BOLD) + f"  session={c(self.session_id, CYAN)}")
        self.session_log.append({"round": 0, "action": "start", "config": data["config"], "used_model": False})
        return data

    def simulate_round(self) -> dict:
        if not self.session_id:
            raise SimulationError("game not started")
        metrics = generate_metrics(self.profile, self.current_round, self.rng)
        print(f"\n  {c(f'Round {self.current_round}', BOLD + CYAN)}")
        print(f"    APM: {metrics['apm']}  Dodge: {round(float(metrics['dodgeRatio']) * 100)}%")
        print(f"    Distance: {metrics['distanceTraveled']}  Reaction: {metrics['reactionTime']}s  "
              f"Damage: {metrics['damageDealt']}")

        started = time.perf_counter()
        data = _checked(
            _make_request("POST", f"/game/{self.session_id}/update", metrics),
            f"round {self.current_round}",
        )
        response_ms = (time.perf_counter() - started) * 1000

        used_model = bool(data.get("used_model"))
        label = c("model", GREEN) if used_model else c("fallback", YELLOW)
        print(f"    Response: {response_ms:.0f}ms via {label}")
        if data.get("error"):
            print(c(f"    Warning: {data['error']}", YELLOW))

        config = data["config"]
        terrain = config["terrain"]["type"]
        boss = config["boss"]
        print(f"    Terrain: {terrain} ({TERRAIN_DESCRIPTIONS.get(terrain, 'unknown')})")
        print(f"    Boss: speed {boss['speed']}/100, health {boss['health']} HP, "
              f"damage {boss['damage']}, shield {boss['shield']}")

        self.session_log.append(
            {
                "round": self.current_round,
                "action": "update",
                "metrics": metrics,
                "config": config,
                "used_model": used_model,
                "response_ms": response_ms,
                "error": data.get("error"),
            }
        )
        self.current_round += 1
        return data

    def end_game(self) -> None:
        if not self.session_id:
            return
        data = _make_request("POST", f"/game/{self.session_id}/end")
        ended = bool(data.get("ended"))
        print(f"\n  {c('Ended:', BOLD)} {c('yes', GREEN) if ended else c('no', RED)}")
        self.print_summary()

    def summary(self) -> dict[str, object]:
        updates = [entry for entry in self.session_log if entry["action"] == "update"]
        model_calls = [entry for entry in updates if entry["used_model"]]
        result: dict[str, object] = {
            "rounds": len(updates),
            "model_calls": len(model_calls),
            "fallbacks": len(updates) - len(model_calls),
            "avg_response_ms": (
                sum(float(entry["response_ms"]) for entry in updates) / len(updates) if updates else 0.0
            ),
        }
        if len(updates) > 1:
            first, last = updates[0], updates[-1]
            result["apm"] = (first["metrics"]["apm"], last["metrics"]["apm"])
            result["dodge_ratio"] = (first["metrics"]["dodgeRatio"], last["metrics"]["dodgeRatio"])
            result["boss_speed"] = (first["config"]["boss"]["speed"], last["config"]["boss"]["speed"])
            result["boss_health"] = (first["config"]["boss"]["health"], last["config"]["boss"]["health"])
            result["terrain"] = (first["config"]["terrain"]["type"], last["config"]["terrain"]["type"])
        return result

    def print_summary(self) -> None:
        summary = self.summary()
        print(c(f"\n  SESSION SUMMARY: {self.profile.name}", BOLD))
        print(f"  Rounds: {summary['rounds']}  Model: {summary['model_calls']}  "
              f"Fallbacks: {summary['fallbacks']}  Avg response: {summary['avg_response_ms']:.0f}ms")
        for key in ("apm", "dodge_ratio", "boss_speed", "boss_health", "terrain"):
            if key in summary:
                before, after = summary[key]
                print(f"    {key}: {before} -> {after}")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
def run_profile(profile_name: str, rounds: int, seed: int | None = None, pause: float = 1.0) -> GameSimulator:
    profile = PLAYER_PROFILES[profile_name]
    simulator = GameSimulator(profile=profile, rng=random.Random(seed))
    simulator.start_game()
    try:
        for _ in range(rounds):
            simulator.simulate_round()
            time.sleep(pause)
    finally:
        simulator.end_game()
    return simulator


def run_comparison(rounds: int, seed: int | None = None) -> None:
    for profile_name in PLAYER_PROFILES:
        print(c("\n" + "=" * 52, DIM))
        try:
            run_profile(profile_name, rounds, seed=seed)
        except SimulationError as exc:
            print(c(f"  FAIL  {exc}", RED + BOLD))
        time.sleep(2)


def show_health(probe: bool) -> None:
    result = _make_request("GET", f"/game/health?probe={'true' if probe else 'false'}")
    if result.get("failed"):
        print(c("  FAIL", RED + BOLD) + f"  {result.get('detail')}")
        sys.exit(1)
    print(c("  Health:", GREEN + BOLD))
    print(f"    {json.dumps(result, indent=2)}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simulate.py",
        description="Adaptive Difficulty Game Simulator: play scripted sessions against the API.",
    )
    parser.add_argument("--base-url", default=None, help=f"API base URL (default: {BASE_URL}).")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible metrics.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_profile = subparsers.add_parser("profile", help="Simulate a single player profile.")
    p_profile.add_argument("name", choices=sorted(PLAYER_PROFILES), help="Player profile to simulate.")
    p_profile.add_argument("-r", "--rounds", type=int, default=5, help="Rounds to play (default: 5).")

    p_comparison = subparsers.add_parser("comparison", help="Simulate every profile in turn.")
    p_comparison.add_argument("-r", "--rounds", type=int, default=3, help="Rounds per profile (default: 3).")

    p_health = subparsers.add_parser("health", help="Show service health.")
    p_health.add_argument("--probe", action="store_true", help="Also send a test prompt to the model.")

    return parser


def main() -> None:
    global BASE_URL

    parser = build_parser()
    args = parser.parse_args()
    if args.base_url:
        BASE_URL = args.base_url.rstrip("/")

    print(BANNER)

    match args.command:
        case "profile":
            try:
                run_profile(args.name, args.rounds, seed=args.seed)
            except SimulationError as exc:
                print(c(f"  FAIL  {exc}", RED + BOLD))
                sys.exit(1)
        case "comparison":
            run_comparison(args.rounds, seed=args.seed)
        case "health":
            show_health(args.probe)

    print()


if __name__ == "__main__":
    main()
