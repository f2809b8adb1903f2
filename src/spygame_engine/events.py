"""
Action event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import GameError


class ActionType(str, Enum):
    """Inbound action types."""
    NEW_GAME = "new_game"
    JOIN_GAME = "join_game"
    CANCEL_GAME = "cancel_game"
    START_GAME = "start_game"
    CHOOSE_TEAM = "choose_team"
    VOTE_ON_TEAM = "vote_on_team"
    VOTE_ON_MISSION = "vote_on_mission"


# Inbound action models
class BaseAction(BaseModel):
    """Base action model."""
    type: ActionType
    player_id: str = Field(..., min_length=1, max_length=64)


class NewGameAction(BaseAction):
    type: ActionType = ActionType.NEW_GAME


class JoinGameAction(BaseAction):
    type: ActionType = ActionType.JOIN_GAME


class CancelGameAction(BaseAction):
    type: ActionType = ActionType.CANCEL_GAME


class StartGameAction(BaseAction):
    type: ActionType = ActionType.START_GAME


class ChooseTeamAction(BaseAction):
    """Leader's team selection."""
    type: ActionType = ActionType.CHOOSE_TEAM
    team: List[str] = Field(..., min_length=1, max_length=10)


class VoteOnTeamAction(BaseAction):
    """Public vote to accept or reject the proposed team."""
    type: ActionType = ActionType.VOTE_ON_TEAM
    vote: bool


class VoteOnMissionAction(BaseAction):
    """Secret vote to succeed (True) or fail (False) the mission."""
    type: ActionType = ActionType.VOTE_ON_MISSION
    vote: bool


# Union type for all inbound actions
InboundAction = Union[
    NewGameAction,
    JoinGameAction,
    CancelGameAction,
    StartGameAction,
    ChooseTeamAction,
    VoteOnTeamAction,
    VoteOnMissionAction,
]

ACTION_MODELS = {
    ActionType.NEW_GAME: NewGameAction,
    ActionType.JOIN_GAME: JoinGameAction,
    ActionType.CANCEL_GAME: CancelGameAction,
    ActionType.START_GAME: StartGameAction,
    ActionType.CHOOSE_TEAM: ChooseTeamAction,
    ActionType.VOTE_ON_TEAM: VoteOnTeamAction,
    ActionType.VOTE_ON_MISSION: VoteOnMissionAction,
}


# Outbound models
class ErrorEvent(BaseModel):
    """Error reported back to the acting player."""
    type: str = "error"
    code: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float


def parse_action(data: Dict[str, Any]) -> InboundAction:
    """
    Parse raw action data into the matching action model.

    Raises:
        ValueError: If the action type is unknown or the data is malformed
    """
    action_type = data.get("type")

    if not action_type:
        raise ValueError("Missing action type")

    try:
        action_type = ActionType(action_type)
    except ValueError:
        raise ValueError(f"Invalid action type: {action_type}")

    try:
        return ACTION_MODELS[action_type](**data)
    except ValidationError as e:
        raise ValueError(f"Invalid action data: {e}")


def create_error_event(error: GameError) -> ErrorEvent:
    return ErrorEvent(
        code=error.code,
        message=error.message,
        context={k: (v if isinstance(v, (str, int, float, bool, list)) else str(v))
                 for k, v in error.context.items()},
        timestamp=time.time(),
    )
