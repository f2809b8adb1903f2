# src/spygame_engine/errors.py

from typing import Any, Dict

# Specific error codes
INVALID_STATE = "INVALID_STATE"
NOT_LEADER = "NOT_LEADER"
WRONG_TEAM_SIZE = "WRONG_TEAM_SIZE"
DUPLICATE_VOTE = "DUPLICATE_VOTE"
NOT_ELIGIBLE = "NOT_ELIGIBLE"
CONFIGURATION = "CONFIGURATION"
DUPLICATE_GAME = "DUPLICATE_GAME"
NO_ACTIVE_GAME = "NO_ACTIVE_GAME"
LOCK_TIMEOUT = "LOCK_TIMEOUT"
CORRUPT_STATE = "CORRUPT_STATE"
ALREADY_JOINED = "ALREADY_JOINED"
GAME_FULL = "GAME_FULL"


class GameError(Exception):
    """Base exception for game-related errors.

    ``message`` is safe to show to the acting player, ``context`` holds the ids
    needed for a diagnostic log line.
    """
    code = "GAME_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        details = f" ({self.context})" if self.context else ""
        super().__init__(f"[{self.code}] {message}{details}")


class InvalidStateError(GameError):
    code = INVALID_STATE


class NotLeaderError(GameError):
    code = NOT_LEADER


class WrongTeamSizeError(GameError):
    code = WRONG_TEAM_SIZE


class DuplicateVoteError(GameError):
    code = DUPLICATE_VOTE


class NotEligibleError(GameError):
    code = NOT_ELIGIBLE


class ConfigurationError(GameError):
    code = CONFIGURATION


class DuplicateGameError(GameError):
    code = DUPLICATE_GAME


class NoActiveGameError(GameError):
    code = NO_ACTIVE_GAME


class LockTimeoutError(GameError):
    code = LOCK_TIMEOUT


class CorruptStateError(GameError):
    """A stored value could not be parsed back into the game model."""
    code = CORRUPT_STATE


class AlreadyJoinedError(GameError):
    code = ALREADY_JOINED


class GameFullError(GameError):
    code = GAME_FULL
