"""Game constants and stage enums"""

from enum import Enum

from .errors import CorruptStateError

MIN_NUM_PLAYERS = 5
MAX_NUM_PLAYERS = 10

# Advisory session lock
LOCK_RETRY_INTERVAL = 0.05  # seconds
LOCK_MAX_RETRIES = 100

VOTE_YES = "yes"
VOTE_NO = "no"


class GameStage(str, Enum):
    """Lifecycle of a game."""
    WAITING_FOR_PLAYERS = "WAITING_FOR_PLAYERS"
    IN_PROGRESS = "IN_PROGRESS"
    GAME_SUCCESS = "GAME_SUCCESS"
    GAME_FAIL = "GAME_FAIL"
    GAME_CANCELLED = "GAME_CANCELLED"


class RoundStage(str, Enum):
    """Lifecycle of a single round (mission)."""
    CHOOSING_TEAM = "CHOOSING_TEAM"
    VOTING_ON_TEAM = "VOTING_ON_TEAM"
    TEAM_DENIED = "TEAM_DENIED"
    VOTING_ON_MISSION = "VOTING_ON_MISSION"
    MISSION_SUCCESS = "MISSION_SUCCESS"
    MISSION_FAIL = "MISSION_FAIL"


TERMINAL_GAME_STAGES = frozenset({
    GameStage.GAME_SUCCESS,
    GameStage.GAME_FAIL,
    GameStage.GAME_CANCELLED,
})

TERMINAL_ROUND_STAGES = frozenset({
    RoundStage.TEAM_DENIED,
    RoundStage.MISSION_SUCCESS,
    RoundStage.MISSION_FAIL,
})


def parse_game_stage(value: str, **context) -> GameStage:
    try:
        return GameStage(value)
    except ValueError:
        raise CorruptStateError(f"Unknown game stage {value!r}", **context)


def parse_round_stage(value: str, **context) -> RoundStage:
    try:
        return RoundStage(value)
    except ValueError:
        raise CorruptStateError(f"Unknown round stage {value!r}", **context)


def encode_vote(vote: bool) -> str:
    return VOTE_YES if vote else VOTE_NO


def parse_vote(value: str, **context) -> bool:
    if value == VOTE_YES:
        return True
    if value == VOTE_NO:
        return False
    raise CorruptStateError(f"Unknown vote value {value!r}", **context)
