"""Action dispatcher: runs each player action inside the session lock."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .config import EngineSettings
from .constants import MAX_NUM_PLAYERS
from .errors import (
    AlreadyJoinedError, GameFullError, InvalidStateError,
    NoActiveGameError, NotEligibleError,
)
from .game import Game
from .rounds import Round
from .session import SessionRegistry
from .shuffle import RandomSource, default_random_source
from .store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class SessionModels:
    """Everything loaded for one session at the start of a transaction."""
    session_key: str
    registry: SessionRegistry
    game: Optional[Game] = None
    round: Optional[Round] = None

    def require_game(self) -> Game:
        if self.game is None:
            raise NoActiveGameError("There is no game in this channel", session_key=self.session_key)
        return self.game

    def require_round(self) -> Round:
        game = self.require_game()
        if self.round is None:
            raise InvalidStateError("There is no mission in progress", session_key=self.session_key, game_id=game.game_id)
        return self.round


@dataclass
class ActionResult:
    game: Optional[Game]
    round: Optional[Round] = None
    next_round: Optional[Round] = None


class SpyGameEngine:
    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[EngineSettings] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.store = store
        self.settings = settings or EngineSettings()
        self.rng = rng or default_random_source
        self.registry = SessionRegistry(store)

    @contextmanager
    def transaction(self, session_key: str) -> Iterator[SessionModels]:
        """Lock the session and load its game and current round."""
        with self.registry.lock(
            session_key,
            retry_interval=self.settings.lock_retry_interval,
            max_retries=self.settings.lock_max_retries,
        ):
            game = self.registry.fetch_game(session_key)
            current = game.fetch_current_round() if game else None
            yield SessionModels(session_key=session_key, registry=self.registry, game=game, round=current)

    def load(self, session_key: str) -> ActionResult:
        with self.transaction(session_key) as models:
            return ActionResult(game=models.game, round=models.round)

    # ---------------------------------------------------------------
    # Lobby
    # ---------------------------------------------------------------
    def new_game(self, session_key: str, player_id: str) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.registry.create_game(session_key)
            game.add_player(player_id)
            return ActionResult(game=game)

    def join_game(self, session_key: str, player_id: str) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.require_game()
            context = dict(session_key=session_key, game_id=game.game_id, player_id=player_id)
            if player_id in game.players:
                raise AlreadyJoinedError("You have already joined this game", **context)
            if len(game.players) >= MAX_NUM_PLAYERS:
                raise GameFullError(f"This game already has {MAX_NUM_PLAYERS} players", **context)
            game.add_player(player_id)
            logger.info(f"Session {session_key}: {player_id} joined ({len(game.players)} players)")
            return ActionResult(game=game)

    def cancel_game(self, session_key: str, player_id: str) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.require_game()
            game.cancel_game(player_id)
            models.registry.remove_game(session_key)
            return ActionResult(game=game, round=models.round)

    def start_game(self, session_key: str, player_id: str) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.require_game()
            if player_id not in game.players:
                raise NotEligibleError(
                    "Only players in the game can start it",
                    session_key=session_key, game_id=game.game_id, player_id=player_id)
            game.start_game(self.rng)
            first_round = game.start_new_round()
            return ActionResult(game=game, round=first_round)

    # ---------------------------------------------------------------
    # Rounds
    # ---------------------------------------------------------------
    def choose_team(self, session_key: str, player_id: str, team: Iterable[str]) -> ActionResult:
        team = list(team)
        with self.transaction(session_key) as models:
            game = models.require_game()
            current = models.require_round()
            outsiders = sorted(set(team) - game.players)
            if outsiders:
                raise NotEligibleError(
                    "Only players in the game can go on the mission",
                    session_key=session_key, game_id=game.game_id, player_id=player_id, outsiders=outsiders)
            current.choose_team(player_id, team)
            return ActionResult(game=game, round=current)

    def vote_on_team(self, session_key: str, player_id: str, vote: bool) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.require_game()
            current = models.require_round()
            current.add_team_vote(player_id, vote)

            next_round = None
            if current.is_team_vote_complete and not current.is_team_accepted:
                game.discard_current_round()
                next_round = game.start_new_round()
            return ActionResult(game=game, round=current, next_round=next_round)

    def vote_on_mission(self, session_key: str, player_id: str, vote: bool) -> ActionResult:
        with self.transaction(session_key) as models:
            game = models.require_game()
            current = models.require_round()
            current.add_mission_vote(player_id, vote)

            next_round = None
            if current.is_mission_complete:
                game.complete_round(current)
                if game.is_game_over:
                    models.registry.remove_game(session_key)
                else:
                    next_round = game.start_new_round()
            return ActionResult(game=game, round=current, next_round=next_round)
