"""Background timer runner for periodic session expiry sweeps."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from session_registry import SessionRegistry

log = logging.getLogger(__name__)


class SessionSweepTimer:
    """Background timer that purges expired sessions periodically (default 10 min)."""

    def __init__(self, registry: SessionRegistry, interval_seconds: int) -> None:
        self._registry = registry
        self._interval_seconds = max(1, interval_seconds)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_run_at: str | None = None
        self.last_result: dict[str, object] | None = None

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        removed = self._registry.sweep_expired()
        self.last_run_at = datetime.now(UTC).isoformat()
        self.last_result = {
            "expired_removed": removed,
            "active_sessions": self._registry.active_count(),
        }
        return removed

    def start(self) -> None:
        if self.is_running:
            return

        def _loop() -> None:
            while not self._stop_event.is_set():
                self._stop_event.wait(self._interval_seconds)
                if self._stop_event.is_set():
                    break
                try:
                    self.run_once()
                except Exception:
                    log.exception("Session sweep failed")

        self._stop_event.clear()
        self._thread = threading.Thread(target=_loop, name="session-sweep", daemon=True)
        self._thread.start()
        log.info("Session sweep timer started (every %ss)", self._interval_seconds)

    def stop(self) -> None:
        if not self.is_running:
            return
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2)
