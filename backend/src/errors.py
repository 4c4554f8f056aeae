"""Error types raised by the tournament engine and its provider clients."""

from __future__ import annotations


class TournamentError(Exception):
    status_code: int = 500


class ConfigurationError(TournamentError, RuntimeError):
    pass


class ProviderError(TournamentError, RuntimeError):
    pass


class InvalidArgument(TournamentError, ValueError):
    status_code = 400


class LocationNotFound(TournamentError, ValueError):
    status_code = 400


class InsufficientShops(TournamentError, ValueError):
    status_code = 400

    def __init__(self, found: int) -> None:
        self.found = found
        super().__init__(
            f"Only found {found} highly-rated coffee shops. "
            "Try a different location with more options."
        )


class JudgmentFailure(TournamentError):
    """LLM verdict unavailable; always recovered by the fallback judge."""


class BracketError(TournamentError):
    pass


class InvalidSeeding(BracketError, ValueError):
    status_code = 400


class BracketOverflow(BracketError):
    pass


class InvalidPairing(BracketError, ValueError):
    status_code = 400


class SessionNotFound(TournamentError, KeyError):
    status_code = 404

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "session not found"
