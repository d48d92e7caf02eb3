"""API tests for the adaptive difficulty service."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest
from starlette.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

import game_config as config
from app import create_app
from catalog import DEFAULT_GAME_CONFIG
from negotiator import CONNECTION_TEST_PROMPT, DifficultyNegotiator
from session_registry import SessionRegistry
from timers import SessionSweepTimer

STICKY_REPLY = '{"terrain":"sticky","boss_speed":200,"boss_health":40,"boss_damage":15,"boss_shield":10}'


def _post(client: TestClient, path: str, body: object = None) -> tuple[int, dict[str, object]]:
    response = client.post(path, json=body)
    return response.status_code, response.json()


def _get(client: TestClient, path: str) -> tuple[int, dict[str, object]]:
    response = client.get(path)
    return response.status_code, response.json()


def _build(
    complete: Callable[[str], Awaitable[str]],
    timeout_seconds: float = 1,
    sweep_timer: SessionSweepTimer | None = None,
    model_configured: bool = True,
) -> tuple[TestClient, SessionRegistry]:
    registry = SessionRegistry(max_inactive_seconds=3600)
    app = create_app(
        registry=registry,
        negotiator=DifficultyNegotiator(complete, timeout_seconds=timeout_seconds),
        sweep_timer=sweep_timer,
        model_configured=model_configured,
    )
    return TestClient(app, raise_server_exceptions=False), registry


async def _sticky_model(prompt: str) -> str:
    if prompt == CONNECTION_TEST_PROMPT:
        return '{"test": "success"}'
    return f"Adjusted config:\n{STICKY_REPLY}"


@pytest.fixture()
def service() -> tuple[TestClient, SessionRegistry]:
    return _build(_sticky_model)


def _start(client: TestClient, player_id: str = "p1") -> str:
    status, data = _post(client, "/api/game/start", {"player_id": player_id})
    assert status == 200, data
    return str(data["session_id"])


# ---------------------------------------------------------------------------
# Service routes
# ---------------------------------------------------------------------------


def test_index_lists_endpoints(service):
    client, _ = service
    status, data = _get(client, "/")
    assert status == 200
    assert data["endpoints"]["start_game"] == "POST /api/game/start"
    assert data["documentation"] == "/docs"


def test_health(service):
    client, _ = service
    status, data = _get(client, "/health")
    assert status == 200
    assert data["status"] == "healthy"
    assert data["environment"] == config.APP_ENV


def test_catalog(service):
    client, _ = service
    status, data = _get(client, "/api/game/catalog")
    assert status == 200
    assert data["terrain"]["sticky"] == 0.7
    assert data["boss"]["speed"] == {"min": 1, "max": 100}


# ---------------------------------------------------------------------------
# Game lifecycle
# ---------------------------------------------------------------------------


def test_start_returns_default_config(service):
    client, registry = service
    status, data = _post(client, "/api/game/start", {"player_id": "p1"})
    assert status == 200
    assert data["config"] == DEFAULT_GAME_CONFIG.to_dict()
    assert data["message"] == "Game session created successfully"
    assert registry.get(data["session_id"]).player_id == "p1"


def test_start_accepts_camel_case_player_id(service):
    client, registry = service
    status, data = _post(client, "/api/game/start", {"playerId": "p2"})
    assert status == 200
    assert registry.get(data["session_id"]).player_id == "p2"


@pytest.mark.parametrize("body", [{}, {"player_id": ""}, {"player_id": 42}])
def test_start_requires_player_id(service, body):
    client, _ = service
    status, data = _post(client, "/api/game/start", body)
    assert status == 400
    assert data["details"] == ["player_id must be a non-empty string"]


def test_update_applies_clamped_model_config(service):
    client, registry = service
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 2})
    assert status == 200, data
    assert data["used_model"] is True
    assert data["round"] == 2
    assert data["config"] == {
        "terrain": {"type": "sticky", "movement_modifier": 0.7},
        "boss": {"speed": 100, "health": 50, "damage": 15, "shield": 10},
    }
    assert "error" not in data
    assert "Current Round: 2" in data["prompt"]
    assert data["raw_model_reply"].endswith(STICKY_REPLY)
    assert registry.get(session_id).current_round == 2

    status, data = _get(client, f"/api/game/{session_id}/config")
    assert status == 200
    assert data["config"]["terrain"]["type"] == "sticky"


def test_update_unknown_session(service):
    client, _ = service
    status, data = _post(client, "/api/game/never-created/update", {"apm": 85, "dodgeRatio": 0.6, "round": 2})
    assert status == 404
    assert data == {"error": "Game session not found or expired", "session_id": "never-created"}


def test_update_rejects_bad_dodge_ratio(service):
    client, _ = service
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 1.5, "round": 2})
    assert status == 400
    assert data["details"] == ["Dodge ratio must be between 0 and 1"]
    assert data["error"] == "Invalid metrics: Dodge ratio must be between 0 and 1"


def test_update_without_body(service):
    client, _ = service
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update")
    assert status == 400
    assert len(data["details"]) == 3


def test_update_falls_back_on_timeout():
    async def slow(prompt: str) -> str:
        await asyncio.sleep(5)
        return STICKY_REPLY

    client, registry = _build(slow, timeout_seconds=0.05)
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 3})
    assert status == 200
    assert data["used_model"] is False
    assert data["error_kind"] == "model_timeout"
    assert data["config"] == DEFAULT_GAME_CONFIG.to_dict()
    assert "prompt" not in data
    assert registry.get(session_id).current_round == 3


def test_update_falls_back_on_unknown_terrain():
    async def lava(prompt: str) -> str:
        return '{"terrain": "lava", "boss_speed": 90}'

    client, _ = _build(lava)
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 2})
    assert status == 200
    assert data["used_model"] is False
    assert data["error_kind"] == "invalid_terrain"
    assert data["config"] == DEFAULT_GAME_CONFIG.to_dict()


def test_session_ended_during_negotiation_is_not_revived():
    holder: dict[str, object] = {}

    async def end_then_reply(prompt: str) -> str:
        holder["registry"].end(holder["session_id"])
        return STICKY_REPLY

    client, registry = _build(end_then_reply)
    holder["registry"] = registry
    holder["session_id"] = _start(client)
    status, _ = _post(client, f"/api/game/{holder['session_id']}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 2})
    assert status == 404
    assert registry.get_config(str(holder["session_id"])) is None


def test_end_and_stats(service):
    client, _ = service
    session_id = _start(client)
    _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 4})

    status, data = _get(client, f"/api/game/{session_id}/stats")
    assert status == 200
    stats = data["stats"]
    assert stats["current_round"] == 4
    assert stats["max_rounds"] == config.MAX_ROUNDS_PER_SESSION
    assert stats["current_config"]["terrain"]["type"] == "sticky"

    status, data = _post(client, f"/api/game/{session_id}/end")
    assert status == 200
    assert data == {"session_id": session_id, "ended": True}

    status, data = _post(client, f"/api/game/{session_id}/end")
    assert status == 200
    assert data["ended"] is False

    assert _get(client, f"/api/game/{session_id}/stats")[0] == 404
    assert _get(client, f"/api/game/{session_id}/config")[0] == 404


# ---------------------------------------------------------------------------
# Game health and sweep status
# ---------------------------------------------------------------------------


def test_game_health(service):
    client, _ = service
    _start(client)
    _start(client, "p2")
    status, data = _get(client, "/api/game/health")
    assert status == 200
    assert data["active_session_count"] == 2
    assert data["model_configured"] is True
    assert data["model_reachable"] is True


def test_game_health_probe_failure():
    async def broken(prompt: str) -> str:
        raise RuntimeError("upstream down")

    client, _ = _build(broken)
    status, data = _get(client, "/api/game/health?probe=true")
    assert status == 200
    assert data["model_configured"] is True
    assert data["model_reachable"] is False


def test_game_health_without_credentials():
    client, _ = _build(_sticky_model, model_configured=False)
    status, data = _get(client, "/api/game/health")
    assert data["model_configured"] is False
    assert data["model_reachable"] is False


def test_sweep_status_without_timer(service):
    client, _ = service
    status, data = _get(client, "/api/game/sweep/status")
    assert status == 200
    assert data["enabled"] is False
    assert data["is_running"] is False


def test_sweep_status_reports_last_run():
    registry = SessionRegistry(max_inactive_seconds=3600)
    timer = SessionSweepTimer(registry=registry, interval_seconds=300)
    timer.run_once()
    app = create_app(
        registry=registry,
        negotiator=DifficultyNegotiator(_sticky_model, timeout_seconds=1),
        sweep_timer=timer,
        model_configured=True,
    )
    client = TestClient(app, raise_server_exceptions=False)
    status, data = _get(client, "/api/game/sweep/status")
    assert status == 200
    assert data["enabled"] is True
    assert data["interval_seconds"] == 300
    assert data["last_result"] == {"expired_removed": 0, "active_sessions": 0}


def test_round_beyond_advisory_max_is_accepted(service, monkeypatch, caplog):
    client, registry = service
    monkeypatch.setattr(config, "MAX_ROUNDS_PER_SESSION", 3)
    session_id = _start(client)
    with caplog.at_level("WARNING", logger="handler"):
        status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 85, "dodgeRatio": 0.6, "round": 5})
    assert status == 200
    assert data["round"] == 5
    assert registry.get(session_id).current_round == 5
    assert "beyond the advisory maximum of 3" in caplog.text


def test_update_with_huge_apm_is_accepted(service):
    client, _ = service
    session_id = _start(client)
    status, data = _post(client, f"/api/game/{session_id}/update", {"apm": 10**400, "dodgeRatio": 0.5, "round": 2})
    assert status == 200, data
    assert data["used_model"] is True
    assert data["config"]["boss"]["speed"] == 100
