"""FastAPI router for the adaptive difficulty game API."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

import game_config as config
from catalog import constraints_summary
from errors import InternalError, SessionNotFoundError, ValidationError
from metrics import validate_metrics
from negotiator import DifficultyNegotiator
from session_registry import SessionRegistry
from timers import SessionSweepTimer

log = logging.getLogger(__name__)

router = APIRouter()

API_PREFIX = "/api/game"

# ---------------------------------------------------------------------------
# Dependency providers
# ---------------------------------------------------------------------------


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


def get_negotiator(request: Request) -> DifficultyNegotiator:
    return request.app.state.negotiator  # type: ignore[no-any-return]


def get_sweep_timer(request: Request) -> SessionSweepTimer | None:
    return getattr(request.app.state, "sweep_timer", None)


def get_model_configured(request: Request) -> bool:
    return bool(getattr(request.app.state, "model_configured", False))


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _required_player_id(data: object) -> str:
    value = None
    if isinstance(data, dict):
        value = data.get("player_id", data.get("playerId"))
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(["player_id must be a non-empty string"], prefix="Invalid request")
    return value.strip()


def _require_session(registry: SessionRegistry, session_id: str) -> None:
    if registry.get(session_id) is None:
        raise SessionNotFoundError(session_id)


# ---------------------------------------------------------------------------
# Service routes
# ---------------------------------------------------------------------------


@router.get("/")
def route_index() -> JSONResponse:
    return JSONResponse(
        {
            "name": "Adaptive Difficulty Game API",
            "description": "Real-time AI-powered game difficulty adjustment",
            "documentation": "/docs",
            "endpoints": {
                "start_game": f"POST {API_PREFIX}/start",
                "update_game": f"POST {API_PREFIX}/{{session_id}}/update",
                "get_config": f"GET {API_PREFIX}/{{session_id}}/config",
                "end_game": f"POST {API_PREFIX}/{{session_id}}/end",
                "game_stats": f"GET {API_PREFIX}/{{session_id}}/stats",
                "catalog": f"GET {API_PREFIX}/catalog",
                "health": f"GET {API_PREFIX}/health",
            },
            "usage": [
                f"Start a game with POST {API_PREFIX}/start",
                f"Send player metrics after every round to POST {API_PREFIX}/{{session_id}}/update",
                "Apply the adjusted configuration returned in the response",
                f"End the game with POST {API_PREFIX}/{{session_id}}/end",
            ],
        }
    )


@router.get("/health")
def route_health(request: Request) -> JSONResponse:
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return JSONResponse(
        {
            "status": "healthy",
            "uptime_seconds": round(time.monotonic() - started_at, 3),
            "environment": config.APP_ENV,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )


# ---------------------------------------------------------------------------
# Game routes (fixed paths first so they never match as a session id)
# ---------------------------------------------------------------------------


@router.get(f"{API_PREFIX}/health")
async def route_game_health(
    probe: bool = Query(default=False),
    registry: SessionRegistry = Depends(get_registry),
    negotiator: DifficultyNegotiator = Depends(get_negotiator),
    model_configured: bool = Depends(get_model_configured),
) -> JSONResponse:
    model_reachable = model_configured
    if probe:
        model_reachable = await negotiator.test_connection()
    return JSONResponse(
        {
            "status": "healthy",
            "active_session_count": registry.active_count(),
            "model_reachable": model_reachable,
            "model_configured": model_configured,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )


@router.get(f"{API_PREFIX}/catalog")
def route_catalog() -> JSONResponse:
    return JSONResponse(constraints_summary())


@router.get(f"{API_PREFIX}/sweep/status")
def route_sweep_status(
    sweep_timer: SessionSweepTimer | None = Depends(get_sweep_timer),
) -> JSONResponse:
    return JSONResponse(
        {
            "enabled": sweep_timer is not None,
            "is_running": sweep_timer.is_running if sweep_timer else False,
            "interval_seconds": (
                sweep_timer.interval_seconds if sweep_timer else config.SESSION_SWEEP_INTERVAL_SECONDS
            ),
            "last_run_at": sweep_timer.last_run_at if sweep_timer else None,
            "last_result": sweep_timer.last_result if sweep_timer else None,
        }
    )


@router.post(f"{API_PREFIX}/start")
def route_start_game(
    body: dict[str, object] = Body(default={}),
    registry: SessionRegistry = Depends(get_registry),
) -> JSONResponse:
    player_id = _required_player_id(body)
    session_id, game_config = registry.create(player_id)
    return JSONResponse(
        {
            "session_id": session_id,
            "config": game_config.to_dict(),
            "message": "Game session created successfully",
        }
    )


@router.post(API_PREFIX + "/{session_id}/update")
async def route_update_game(
    session_id: str,
    body: Any = Body(default=None),
    registry: SessionRegistry = Depends(get_registry),
    negotiator: DifficultyNegotiator = Depends(get_negotiator),
) -> JSONResponse:
    _require_session(registry, session_id)
    metrics = validate_metrics(body)

    current = registry.get_config(session_id)
    if current is None:
        raise InternalError("Session configuration not found")

    registry.touch_activity(session_id, metrics.round)
    if metrics.round > config.MAX_ROUNDS_PER_SESSION:
        log.warning(
            "Session %s reported round %s beyond the advisory maximum of %s",
            session_id, metrics.round, config.MAX_ROUNDS_PER_SESSION,
        )

    result = await negotiator.negotiate(current, metrics)

    # The session may have ended or expired while the model was thinking.
    if not registry.set_config(session_id, result.config):
        raise SessionNotFoundError(session_id)

    response: dict[str, object] = {
        "session_id": session_id,
        "config": result.config.to_dict(),
        "round": metrics.round,
        "used_model": result.used_model,
    }
    if result.error:
        response["error"] = result.error
        response["error_kind"] = result.error_kind
    if result.prompt:
        response["prompt"] = result.prompt
    if result.raw_reply:
        response["raw_model_reply"] = result.raw_reply
    log.info(
        "Game updated for session %s, round %s, LLM used: %s",
        session_id, metrics.round, result.used_model,
    )
    return JSONResponse(response)


@router.get(API_PREFIX + "/{session_id}/config")
def route_game_config(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> JSONResponse:
    _require_session(registry, session_id)
    game_config = registry.get_config(session_id)
    if game_config is None:
        raise InternalError("Session configuration not found")
    return JSONResponse({"session_id": session_id, "config": game_config.to_dict()})


@router.post(API_PREFIX + "/{session_id}/end")
def route_end_game(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> JSONResponse:
    return JSONResponse({"session_id": session_id, "ended": registry.end(session_id)})


@router.get(API_PREFIX + "/{session_id}/stats")
def route_game_stats(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> JSONResponse:
    stats = registry.stats(session_id)
    if stats is None:
        raise SessionNotFoundError(session_id)
    return JSONResponse({"stats": stats})
