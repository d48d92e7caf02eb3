"""In-memory session registry: session metadata, current configs and expiry."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable

import game_config as config
from catalog import DEFAULT_GAME_CONFIG
from models import GameConfig, GameSession

log = logging.getLogger(__name__)


class SessionRegistry:
    """Single owner of all session state.

    Every operation runs under one lock, so overlapping requests against the
    same session never lose updates.  Expiry is lazy: an expired session is
    purged when it is next looked up, or by ``sweep_expired``.
    """

    def __init__(
        self,
        max_inactive_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
        default_config: GameConfig = DEFAULT_GAME_CONFIG,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._default_config = default_config
        self.max_inactive_seconds = (
            config.SESSION_MAX_INACTIVE_SECONDS if max_inactive_seconds is None else max_inactive_seconds
        )
        self.sessions: dict[str, GameSession] = {}
        self.configs: dict[str, GameConfig] = {}

    def _is_expired_locked(self, session: GameSession, now: float) -> bool:
        return now - session.last_activity > self.max_inactive_seconds

    def _end_locked(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        self.configs.pop(session_id, None)
        if session is None:
            return False
        session.is_active = False
        log.info("Game session ended: %s", session_id)
        return True

    def _get_locked(self, session_id: str) -> GameSession | None:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        if self._is_expired_locked(session, self._clock()):
            self._end_locked(session_id)
            return None
        return session

    def _touch_locked(self, session_id: str, new_round: int | None) -> bool:
        session = self._get_locked(session_id)
        if session is None:
            return False
        session.last_activity = self._clock()
        if new_round is not None and new_round > session.current_round:
            session.current_round = new_round
        return True

    def create(self, player_id: str) -> tuple[str, GameConfig]:
        with self._lock:
            session_id = str(uuid.uuid4())
            while session_id in self.sessions:
                session_id = str(uuid.uuid4())
            now = self._clock()
            self.sessions[session_id] = GameSession(
                session_id=session_id,
                player_id=player_id,
                started_at=now,
                last_activity=now,
            )
            self.configs[session_id] = self._default_config
            log.info("Game session created: %s for player: %s", session_id, player_id)
            return session_id, self._default_config

    def get(self, session_id: str) -> GameSession | None:
        with self._lock:
            return self._get_locked(session_id)

    def touch_activity(self, session_id: str, new_round: int | None = None) -> bool:
        with self._lock:
            return self._touch_locked(session_id, new_round)

    def get_config(self, session_id: str) -> GameConfig | None:
        with self._lock:
            if self._get_locked(session_id) is None:
                return None
            return self.configs.get(session_id)

    def set_config(self, session_id: str, game_config: GameConfig) -> bool:
        with self._lock:
            if self._get_locked(session_id) is None:
                return False
            self.configs[session_id] = game_config
            self._touch_locked(session_id, None)
            log.info("Config updated for session %s: %s", session_id, game_config.to_dict())
            return True

    def end(self, session_id: str) -> bool:
        with self._lock:
            return self._end_locked(session_id)

    def active_count(self) -> int:
        with self._lock:
            return len(self.sessions)

    def stats(self, session_id: str) -> dict[str, object] | None:
        with self._lock:
            session = self._get_locked(session_id)
            if session is None:
                return None
            game_config = self.configs.get(session_id)
            now = self._clock()
            return {
                "session_id": session.session_id,
                "player_id": session.player_id,
                "current_round": session.current_round,
                "max_rounds": config.MAX_ROUNDS_PER_SESSION,
                "started_at": session.started_at_iso,
                "last_activity_at": session.last_activity_iso,
                "session_duration_seconds": round(now - session.started_at, 3),
                "seconds_since_last_activity": round(now - session.last_activity, 3),
                "current_config": game_config.to_dict() if game_config else None,
                "is_active": session.is_active,
            }

    def sweep_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [
                session_id
                for session_id, session in self.sessions.items()
                if self._is_expired_locked(session, now)
            ]
            for session_id in expired:
                self._end_locked(session_id)
        if expired:
            log.info("Cleaned up %d expired sessions", len(expired))
        return len(expired)
