"""FastAPI application exposing the Spy Game engine to a chat dispatcher"""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .config import EngineSettings
from .engine import ActionResult, SpyGameEngine
from .errors import (
    AlreadyJoinedError, ConfigurationError, CorruptStateError, DuplicateGameError,
    DuplicateVoteError, GameError, GameFullError, InvalidStateError, LockTimeoutError,
    NoActiveGameError, NotEligibleError, NotLeaderError, WrongTeamSizeError,
)
from .events import (
    CancelGameAction, ChooseTeamAction, ErrorEvent, InboundAction, JoinGameAction,
    NewGameAction, StartGameAction, VoteOnMissionAction, VoteOnTeamAction,
    create_error_event, parse_action,
)
from .serialization import session_view, to_json, who_am_i
from .session import make_session_key
from .store import MemoryStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidStateError: 409,
    DuplicateVoteError: 409,
    DuplicateGameError: 409,
    AlreadyJoinedError: 409,
    GameFullError: 409,
    NotLeaderError: 403,
    NotEligibleError: 403,
    NoActiveGameError: 404,
    WrongTeamSizeError: 422,
    ConfigurationError: 422,
    LockTimeoutError: 503,
    CorruptStateError: 500,
}


def _json(data: Any, status_code: int = 200) -> Response:
    return Response(content=to_json(data), status_code=status_code, media_type="application/json")


def handle_action(engine: SpyGameEngine, session_key: str, action: InboundAction) -> ActionResult:
    """Route an inbound action to the engine."""
    if isinstance(action, NewGameAction):
        return engine.new_game(session_key, action.player_id)
    elif isinstance(action, JoinGameAction):
        return engine.join_game(session_key, action.player_id)
    elif isinstance(action, CancelGameAction):
        return engine.cancel_game(session_key, action.player_id)
    elif isinstance(action, StartGameAction):
        return engine.start_game(session_key, action.player_id)
    elif isinstance(action, ChooseTeamAction):
        return engine.choose_team(session_key, action.player_id, action.team)
    elif isinstance(action, VoteOnTeamAction):
        return engine.vote_on_team(session_key, action.player_id, action.vote)
    elif isinstance(action, VoteOnMissionAction):
        return engine.vote_on_mission(session_key, action.player_id, action.vote)
    else:
        raise ValueError(f"Unhandled action type: {type(action)}")


def create_app(engine: Optional[SpyGameEngine] = None) -> FastAPI:
    engine = engine or SpyGameEngine(MemoryStore(), EngineSettings.from_env())

    app = FastAPI(title="Spy Game Engine API", version="1.0.0")
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        if isinstance(exc, (LockTimeoutError, CorruptStateError)):
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        status_code = ERROR_STATUS.get(type(exc), 400)
        return _json(create_error_event(exc).model_dump(), status_code=status_code)

    @app.get("/")
    def root():
        return {"message": "Spy Game Engine API", "version": "1.0.0"}

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    @app.post("/sessions/{team_id}/{channel_id}/actions")
    def post_action(team_id: str, channel_id: str, payload: Dict[str, Any] = Body(...)):
        session_key = make_session_key(team_id, channel_id)
        try:
            action = parse_action(payload)
        except ValueError as e:
            logger.warning(f"Session {session_key}: invalid action: {e}")
            error = ErrorEvent(code="INVALID_ACTION", message=str(e), timestamp=time.time())
            return _json(error.model_dump(), status_code=400)

        logger.info(f"Session {session_key}: {action.type.value} from {action.player_id}")
        result = handle_action(engine, session_key, action)
        return _json(session_view(result.game, result.round, action.player_id, result.next_round))

    @app.get("/sessions/{team_id}/{channel_id}/state")
    def get_state(team_id: str, channel_id: str, viewer: Optional[str] = None):
        result = engine.load(make_session_key(team_id, channel_id))
        return _json(session_view(result.game, result.round, viewer))

    @app.get("/sessions/{team_id}/{channel_id}/whoami/{player_id}")
    def get_who_am_i(team_id: str, channel_id: str, player_id: str):
        result = engine.load(make_session_key(team_id, channel_id))
        return _json(who_am_i(result.game, player_id))

    return app


app = create_app()
