"""Service configuration constants and environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

APP_DIR = Path(__file__).parent
APP_ENV = os.environ.get("APP_ENV", "development").strip()
HOST = os.environ.get("HOST", "0.0.0.0").strip()
PORT = int(os.environ.get("PORT", "4000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]

OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "").strip()
OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1").rstrip("/")
OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "meta-llama/llama-3.3-70b-instruct").strip()
LLM_TIMEOUT_SECONDS = float(os.environ.get("LLM_TIMEOUT_SECONDS", "15"))

SESSION_MAX_INACTIVE_SECONDS = int(os.environ.get("SESSION_MAX_INACTIVE_SECONDS", "3600"))
SESSION_SWEEP_INTERVAL_SECONDS = int(os.environ.get("SESSION_SWEEP_INTERVAL_SECONDS", "600"))
# Advisory only: the update path reports overruns but never rejects them.
MAX_ROUNDS_PER_SESSION = int(os.environ.get("MAX_ROUNDS_PER_SESSION", "100"))
