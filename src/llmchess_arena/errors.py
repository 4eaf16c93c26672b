"""Error taxonomy shared by the suggestion protocol, the orchestrator and the HTTP layer."""
from __future__ import annotations


class ArenaError(RuntimeError):
    """Base class for match and provider errors."""

    code: str = "arena_error"


class TransientProviderError(ArenaError):
    """Network/provider failure; retried by the backoff executor."""

    code = "provider_failure"


class MalformedSuggestionError(ArenaError):
    """Reply present, but its coordinates fail the square grammar."""

    code = "malformed_suggestion"

    def __init__(self, origin: str, destination: str):
        super().__init__(f"Invalid square format: from={origin}, to={destination}")
        self.origin = origin
        self.destination = destination


class IllegalSuggestionError(ArenaError):
    """Well-formed move that is not legal in the current position."""

    code = "illegal_suggestion"

    def __init__(self, move: str, reason: str = "not in legal move set"):
        super().__init__(f"Illegal move {move}: {reason}")
        self.move = move
        self.reason = reason


class ConfigurationError(ArenaError):
    code = "configuration_error"


class MatchStateError(ArenaError):
    """Operation not valid in the match's current state."""

    code = "invalid_match_state"


class MatchNotFoundError(ArenaError):
    code = "match_not_found"

    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id
