"""Game: roster, factions, leader rotation and round sequencing."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Set

from .constants import GameStage, RoundStage, TERMINAL_GAME_STAGES, parse_game_stage
from .errors import ConfigurationError, CorruptStateError, InvalidStateError, NotEligibleError
from .rounds import Round
from .rules import GameConfig, get_game_config, has_game_config
from .shuffle import RandomSource, default_random_source
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def game_key(game_id: str, name: str) -> str:
    return f"game:{game_id}:{name}"


@dataclass
class Game:
    store: KeyValueStore = field(repr=False, compare=False)
    game_id: str
    stage: GameStage = GameStage.WAITING_FOR_PLAYERS
    players: Set[str] = field(default_factory=set)
    spies: Set[str] = field(default_factory=set)
    leader_queue: List[str] = field(default_factory=list)  # tail is the current leader
    rounds: List[str] = field(default_factory=list)
    current_round_id: Optional[str] = None
    rounds_completed: Set[str] = field(default_factory=set)
    rounds_won: Set[str] = field(default_factory=set)
    rounds_lost: Set[str] = field(default_factory=set)

    def _key(self, name: str) -> str:
        return game_key(self.game_id, name)

    # ---------------------------------------------------------------
    # Persistence
    # ---------------------------------------------------------------
    @classmethod
    def create(cls, store: KeyValueStore, game_id: Optional[str] = None) -> 'Game':
        """Allocate a new game waiting for players."""
        game_id = game_id or str(uuid.uuid4())
        if not store.set_if_absent(game_key(game_id, 'stage'), GameStage.WAITING_FOR_PLAYERS.value):
            raise InvalidStateError("A game with this id already exists", game_id=game_id)
        logger.info(f"Game {game_id} created")
        return cls(store=store, game_id=game_id)

    @classmethod
    def fetch(cls, store: KeyValueStore, game_id: str) -> Optional['Game']:
        """Load a game, or None if no game exists under ``game_id``."""
        stage = store.get(game_key(game_id, 'stage'))
        if stage is None:
            return None
        return cls(
            store=store,
            game_id=game_id,
            stage=parse_game_stage(stage, game_id=game_id),
            players=store.smembers(game_key(game_id, 'players')),
            spies=store.smembers(game_key(game_id, 'spies')),
            leader_queue=store.lrange(game_key(game_id, 'leader_queue'), 0, -1),
            rounds=store.lrange(game_key(game_id, 'rounds'), 0, -1),
            current_round_id=store.get(game_key(game_id, 'current_round')),
            rounds_completed=store.smembers(game_key(game_id, 'rounds_completed')),
            rounds_won=store.smembers(game_key(game_id, 'rounds_won')),
            rounds_lost=store.smembers(game_key(game_id, 'rounds_lost')),
        )

    def fetch_current_round(self) -> Optional[Round]:
        if not self.current_round_id:
            return None
        current = Round.fetch(self.store, self.current_round_id)
        if current is None:
            raise CorruptStateError("Current round is missing", game_id=self.game_id, round_id=self.current_round_id)
        return current

    # ---------------------------------------------------------------
    # Roster
    # ---------------------------------------------------------------
    def add_player(self, player_id: str):
        if self.stage != GameStage.WAITING_FOR_PLAYERS:
            raise InvalidStateError(
                "Cannot add player. Game has already started or been cancelled.",
                game_id=self.game_id, player_id=player_id, stage=self.stage.value)
        self.store.sadd(self._key('players'), player_id)
        self.players.add(player_id)

    def start_game(self, rng: Optional[RandomSource] = None):
        """Assign factions and leader order, then move the game in progress."""
        if self.stage != GameStage.WAITING_FOR_PLAYERS:
            raise InvalidStateError(
                "Cannot start game. Game has already started or been cancelled.",
                game_id=self.game_id, stage=self.stage.value)
        if not has_game_config(len(self.players)):
            raise ConfigurationError(
                f"Cannot start a game with {len(self.players)} players",
                game_id=self.game_id, num_players=len(self.players))

        rng = rng or default_random_source
        spies = rng.choose_spies(self.players, self.config.num_spies)
        leader_queue = rng.shuffle_players(self.players)

        with self.store.pipeline() as pipe:
            pipe.delete(self._key('spies'), self._key('leader_queue'))
            pipe.sadd(self._key('spies'), *spies)
            pipe.rpush(self._key('leader_queue'), *leader_queue)
            pipe.set(self._key('stage'), GameStage.IN_PROGRESS.value)

        self.spies = set(spies)
        self.leader_queue = leader_queue
        self.stage = GameStage.IN_PROGRESS
        logger.info(f"Game {self.game_id} started with {len(self.players)} players")

    # ---------------------------------------------------------------
    # Rounds
    # ---------------------------------------------------------------
    def start_new_round(self) -> Round:
        """Open the next round, rotating the leader queue."""
        context = dict(game_id=self.game_id)
        if self.stage != GameStage.IN_PROGRESS:
            raise InvalidStateError("The game is not in progress", stage=self.stage.value, **context)
        if self.current_round_id:
            raise InvalidStateError("A mission is already in progress", round_id=self.current_round_id, **context)
        if self.is_game_over:
            raise InvalidStateError("The game is over", **context)
        if not self.leader_queue:
            raise CorruptStateError("Game has no leader queue", **context)

        round_id = str(uuid.uuid4())
        if not self.store.set_if_absent(self._key('current_round'), round_id):
            raise InvalidStateError("A mission is already in progress", **context)

        round_index = self.num_rounds_completed
        leader = self.leader_queue[0]
        new_round = Round(
            store=self.store,
            round_id=round_id,
            game_id=self.game_id,
            round_index=round_index,
            leader=leader,
            team_size=self.config.team_size(round_index),
            min_fail_votes=self.config.min_fail_votes(round_index),
            eligible_voters=set(self.players),
        )
        try:
            with self.store.pipeline() as pipe:
                pipe.lpop(self._key('leader_queue'))
                pipe.rpush(self._key('leader_queue'), leader)
                pipe.rpush(self._key('rounds'), round_id)
                new_round.write_new(pipe)
        except Exception:
            # Release the in-flight slot so the operation can be retried
            self.store.delete(self._key('current_round'))
            raise

        self.leader_queue = self.leader_queue[1:] + [leader]
        self.rounds.append(round_id)
        self.current_round_id = round_id
        logger.info(f"Game {self.game_id}: round {round_index + 1} started, leader {leader}")
        return new_round

    def discard_current_round(self):
        """Drop the in-flight round after its team was denied; it stays in history."""
        current = self.fetch_current_round()
        if current is None:
            raise InvalidStateError("There is no mission in progress", game_id=self.game_id)
        if current.stage != RoundStage.TEAM_DENIED:
            raise InvalidStateError(
                "Only a mission whose team was denied can be discarded",
                game_id=self.game_id, round_id=current.round_id, stage=current.stage.value)
        self.store.delete(self._key('current_round'))
        self.current_round_id = None

    def complete_round(self, completed_round: Round):
        """Record a finished mission and decide whether the game is over."""
        context = dict(game_id=self.game_id, round_id=completed_round.round_id)
        if not completed_round.is_complete:
            raise InvalidStateError("The mission is not complete yet", stage=completed_round.stage.value, **context)
        if completed_round.round_id != self.current_round_id:
            raise InvalidStateError("This mission is not the current mission", **context)
        if self.stage != GameStage.IN_PROGRESS:
            raise InvalidStateError("The game is not in progress", stage=self.stage.value, **context)

        round_id = completed_round.round_id
        won = completed_round.is_mission_successful
        rounds_completed = self.rounds_completed | {round_id}
        rounds_won = self.rounds_won | ({round_id} if won else set())
        rounds_lost = self.rounds_lost | (set() if won else {round_id})

        stage = self.stage
        if len(rounds_lost) >= self.config.max_round_failures:
            stage = GameStage.GAME_FAIL
        elif len(rounds_completed) >= self.config.num_rounds:
            stage = GameStage.GAME_SUCCESS

        with self.store.pipeline() as pipe:
            pipe.sadd(self._key('rounds_completed'), round_id)
            pipe.sadd(self._key('rounds_won' if won else 'rounds_lost'), round_id)
            pipe.delete(self._key('current_round'))
            if stage != self.stage:
                pipe.set(self._key('stage'), stage.value)

        self.rounds_completed = rounds_completed
        self.rounds_won = rounds_won
        self.rounds_lost = rounds_lost
        self.current_round_id = None
        self.stage = stage
        logger.info(f"Game {self.game_id}: round {completed_round.round_index + 1} {'won' if won else 'lost'}, "
                    f"{len(rounds_won)} won / {len(rounds_lost)} lost")
        if self.is_game_over:
            logger.info(f"Game {self.game_id} over: {stage.value}")

    def cancel_game(self, player_id: str):
        context = dict(game_id=self.game_id, player_id=player_id)
        if self.stage == GameStage.GAME_CANCELLED:
            raise InvalidStateError("The game has already been cancelled", **context)
        if self.stage in TERMINAL_GAME_STAGES:
            raise InvalidStateError("The game is already over", stage=self.stage.value, **context)
        if player_id not in self.players:
            raise NotEligibleError("Only players in the game can cancel it", **context)
        self.store.set(self._key('stage'), GameStage.GAME_CANCELLED.value)
        self.stage = GameStage.GAME_CANCELLED
        logger.info(f"Game {self.game_id} cancelled by {player_id}")

    # ---------------------------------------------------------------
    # Derived state
    # ---------------------------------------------------------------
    @property
    def config(self) -> GameConfig:
        return get_game_config(len(self.players))

    @property
    def has_config(self) -> bool:
        return has_game_config(len(self.players))

    @property
    def num_spies(self) -> int:
        return self.config.num_spies

    @property
    def num_rounds(self) -> int:
        return self.config.num_rounds

    @property
    def max_round_failures(self) -> int:
        return self.config.max_round_failures

    @property
    def num_rounds_completed(self) -> int:
        return len(self.rounds_completed)

    @property
    def rounds_completed_in_order(self) -> List[str]:
        return [round_id for round_id in self.rounds if round_id in self.rounds_completed]

    @property
    def current_leader(self) -> Optional[str]:
        return self.leader_queue[-1] if self.leader_queue else None

    @property
    def current_round_team_size(self) -> Optional[int]:
        if not self.has_config or self.num_rounds_completed >= self.num_rounds:
            return None
        return self.config.team_size(self.num_rounds_completed)

    @property
    def current_round_min_fail_votes(self) -> Optional[int]:
        if not self.has_config or self.num_rounds_completed >= self.num_rounds:
            return None
        return self.config.min_fail_votes(self.num_rounds_completed)

    @property
    def is_game_over(self) -> bool:
        if self.stage in TERMINAL_GAME_STAGES:
            return True
        if self.stage != GameStage.IN_PROGRESS or not self.has_config:
            return False
        return (len(self.rounds_lost) >= self.max_round_failures
                or self.num_rounds_completed >= self.num_rounds)

    @property
    def is_game_successful(self) -> bool:
        return self.stage == GameStage.GAME_SUCCESS

    def is_spy(self, player_id: str) -> bool:
        return player_id in self.spies
