#!/usr/bin/env python3
"""Adaptive difficulty game server.

Sessions live in memory only; restarting the process forgets every game.

Usage:
    python3 server.py
    # Then open http://localhost:4000/docs
"""

from __future__ import annotations

import logging

import uvicorn

import game_config as config
from app import create_app

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app()


if __name__ == "__main__":
    print(
        f"""
  Adaptive Difficulty Game server
  http://localhost:{config.PORT}
  API docs:  http://localhost:{config.PORT}/docs
  Health:    http://localhost:{config.PORT}/health
  POST /api/game/start
  POST /api/game/{{session_id}}/update
  GET  /api/game/{{session_id}}/config
  POST /api/game/{{session_id}}/end
  GET  /api/game/{{session_id}}/stats
  GET  /api/game/health
"""
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
