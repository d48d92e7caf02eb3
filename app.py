"""FastAPI application factory for the adaptive difficulty service."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import game_config as config
from errors import InternalError, SessionNotFoundError, ValidationError
from llm_client import ModelClient
from negotiator import DifficultyNegotiator
from session_registry import SessionRegistry
from timers import SessionSweepTimer

log = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "details": exc.errors})

    @app.exception_handler(SessionNotFoundError)
    async def _session_not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc), "session_id": exc.session_id})

    @app.exception_handler(InternalError)
    async def _internal_error(request: Request, exc: InternalError) -> JSONResponse:
        log.error("Internal error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def _generic(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": f"internal server error: {exc}"})


def _register_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def _log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response


def create_app(
    registry: SessionRegistry | None = None,
    negotiator: DifficultyNegotiator | None = None,
    sweep_timer: SessionSweepTimer | None = None,
    model_configured: bool | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    When called without arguments (production), the registry, model client,
    negotiator and sweep timer are created inside the lifespan context.  When
    called with explicit arguments (tests), those objects are used directly and
    no timer is managed.
    """
    _provided_registry = registry
    _provided_negotiator = negotiator
    _provided_sweep_timer = sweep_timer

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if _provided_registry is not None:
            # State was set synchronously below.
            yield
            return

        _registry = SessionRegistry(max_inactive_seconds=config.SESSION_MAX_INACTIVE_SECONDS)
        _model = ModelClient()
        _negotiator = DifficultyNegotiator(_model.complete, timeout_seconds=config.LLM_TIMEOUT_SECONDS)
        _sweep_timer = SessionSweepTimer(
            registry=_registry, interval_seconds=config.SESSION_SWEEP_INTERVAL_SECONDS
        )
        _sweep_timer.start()
        app.state.registry = _registry
        app.state.negotiator = _negotiator
        app.state.sweep_timer = _sweep_timer
        app.state.model_configured = _model.is_configured
        if not _model.is_configured:
            log.warning("OPENROUTER_API_KEY is not set; every update will use the fallback config")
        log.info("Game API initialized; sessions are managed in memory")
        yield
        _sweep_timer.stop()
        await _model.close()

    app = FastAPI(
        title="Adaptive Difficulty Game API",
        description="Real-time AI-powered game difficulty adjustment",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.started_at = time.monotonic()

    # When explicit dependencies are provided (e.g. tests), set state immediately
    # so the app works without triggering the lifespan context.
    if _provided_registry is not None:
        app.state.registry = _provided_registry
        app.state.negotiator = _provided_negotiator
        app.state.sweep_timer = _provided_sweep_timer
        app.state.model_configured = bool(model_configured)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )
    _register_request_logging(app)
    _register_exception_handlers(app)

    from handler import router  # noqa: PLC0415

    app.include_router(router)

    return app
