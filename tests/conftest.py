"""Pytest fixtures for the difficulty service tests. Sets env before any service import."""

import os
import sys
from pathlib import Path

# Ensure the service modules are on path and env is set before game_config is imported
sys.path.insert(0, str(Path(__file__).parent.parent))
os.environ.setdefault("OPENROUTER_API_KEY", "test-key-for-unit-tests")
os.environ.setdefault("LLM_TIMEOUT_SECONDS", "2")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
