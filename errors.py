"""Exception taxonomy for the difficulty service.

Client-facing errors (``ValidationError``, ``SessionNotFoundError``) abort a
request and are mapped to HTTP status codes by the app factory.  Negotiation
errors never leave the negotiator: they are caught there and downgraded to a
fallback configuration plus a warning string.
"""

from __future__ import annotations


class DifficultyServiceError(Exception):
    """Base class for every error raised by the service."""


class ValidationError(DifficultyServiceError, ValueError):
    """Client input failed validation. ``errors`` lists every violation."""

    def __init__(self, errors: list[str], prefix: str = "Invalid metrics") -> None:
        self.errors = list(errors)
        super().__init__(f"{prefix}: {', '.join(self.errors)}")


class SessionNotFoundError(DifficultyServiceError, LookupError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__("Game session not found or expired")


class InternalError(DifficultyServiceError):
    """Unexpected server-side inconsistency."""


class NegotiationError(DifficultyServiceError):
    kind = "negotiation"


class ModelTimeoutError(NegotiationError):
    kind = "model_timeout"


class ModelCallError(NegotiationError):
    kind = "model_call"


class ModelUnavailableError(ModelCallError):
    """No model credentials are configured."""


class ModelParseError(NegotiationError):
    kind = "model_parse"


class InvalidTerrainError(NegotiationError):
    kind = "invalid_terrain"
