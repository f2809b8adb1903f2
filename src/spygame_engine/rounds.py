"""Round (mission) state machine: team proposal, ratification vote, mission vote."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .constants import (
    RoundStage, TERMINAL_ROUND_STAGES,
    encode_vote, parse_round_stage, parse_vote,
)
from .errors import (
    CorruptStateError, DuplicateVoteError, InvalidStateError,
    NotEligibleError, NotLeaderError, WrongTeamSizeError,
)
from .store import KeyValueStore, Pipeline

logger = logging.getLogger(__name__)


def round_key(round_id: str, name: str) -> str:
    return f"round:{round_id}:{name}"


def _parse_int(value: Optional[str], name: str, round_id: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CorruptStateError(f"Round field {name} is not an integer: {value!r}", round_id=round_id)


def _parse_votes(raw: Dict[str, str], round_id: str) -> Dict[str, bool]:
    return {voter: parse_vote(value, round_id=round_id, player_id=voter) for voter, value in raw.items()}


@dataclass
class Round:
    store: KeyValueStore = field(repr=False, compare=False)
    round_id: str
    game_id: str
    round_index: int
    leader: str
    team_size: int
    min_fail_votes: int
    stage: RoundStage = RoundStage.CHOOSING_TEAM
    team: Set[str] = field(default_factory=set)
    eligible_voters: Set[str] = field(default_factory=set)
    team_votes: Dict[str, bool] = field(default_factory=dict)
    mission_votes: Dict[str, bool] = field(default_factory=dict)

    def _key(self, name: str) -> str:
        return round_key(self.round_id, name)

    # ---------------------------------------------------------------
    # Persistence
    # ---------------------------------------------------------------
    def write_new(self, pipe: Pipeline):
        """Queue the writes for a freshly created round."""
        pipe.set(self._key('game'), self.game_id)
        pipe.set(self._key('index'), str(self.round_index))
        pipe.set(self._key('stage'), self.stage.value)
        pipe.set(self._key('leader'), self.leader)
        pipe.set(self._key('team_size'), str(self.team_size))
        pipe.set(self._key('min_fail_votes'), str(self.min_fail_votes))
        if self.eligible_voters:
            pipe.sadd(self._key('voters'), *sorted(self.eligible_voters))

    @classmethod
    def fetch(cls, store: KeyValueStore, round_id: str) -> Optional['Round']:
        """Load a round, or None if no round exists under ``round_id``."""
        stage = store.get(round_key(round_id, 'stage'))
        if stage is None:
            return None
        leader = store.get(round_key(round_id, 'leader'))
        game_id = store.get(round_key(round_id, 'game'))
        if leader is None or game_id is None:
            raise CorruptStateError("Round is missing its leader or game", round_id=round_id)

        return cls(
            store=store,
            round_id=round_id,
            game_id=game_id,
            round_index=_parse_int(store.get(round_key(round_id, 'index')), 'index', round_id),
            leader=leader,
            team_size=_parse_int(store.get(round_key(round_id, 'team_size')), 'team_size', round_id),
            min_fail_votes=_parse_int(store.get(round_key(round_id, 'min_fail_votes')), 'min_fail_votes', round_id),
            stage=parse_round_stage(stage, round_id=round_id),
            team=store.smembers(round_key(round_id, 'team')),
            eligible_voters=store.smembers(round_key(round_id, 'voters')),
            team_votes=_parse_votes(store.hgetall(round_key(round_id, 'team_votes')), round_id),
            mission_votes=_parse_votes(store.hgetall(round_key(round_id, 'mission_votes')), round_id),
        )

    def _record_vote(self, name: str, player_id: str, vote: bool) -> Optional[Dict[str, bool]]:
        """
        Store a vote unless the player already has one.

        Returns:
            All stored votes including this one, or None if a vote was already stored
        """
        key = self._key(name)
        if not self.store.hset_if_absent(key, player_id, encode_vote(vote)):
            return None
        # Tally from the store so a stale copy still sees every recorded vote
        return _parse_votes(self.store.hgetall(key), self.round_id)

    # ---------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------
    def choose_team(self, player_id: str, team: Iterable[str]):
        """Leader proposes the team for this round."""
        chosen = set(team)
        context = dict(round_id=self.round_id, player_id=player_id)

        if player_id != self.leader:
            raise NotLeaderError("Only the round leader can choose the team", leader=self.leader, **context)
        if len(chosen) != self.team_size:
            raise WrongTeamSizeError(
                f"Choose exactly {self.team_size} players for this mission",
                team_size=self.team_size, chosen=len(chosen), **context)
        if self.stage != RoundStage.CHOOSING_TEAM:
            raise InvalidStateError("The team for this mission has already been chosen", stage=self.stage.value, **context)
        outsiders = chosen - self.eligible_voters
        if outsiders:
            raise NotEligibleError("Only players in the game can go on the mission", outsiders=sorted(outsiders), **context)

        with self.store.pipeline() as pipe:
            pipe.sadd(self._key('team'), *sorted(chosen))
            pipe.set(self._key('stage'), RoundStage.VOTING_ON_TEAM.value)
        self.team = chosen
        self.stage = RoundStage.VOTING_ON_TEAM
        logger.info(f"Round {self.round_id}: {player_id} chose team {sorted(chosen)}")

    def add_team_vote(self, player_id: str, vote: bool):
        """Record one player's ratification vote; resolves the round when everyone has voted."""
        context = dict(round_id=self.round_id, player_id=player_id)
        if self.stage != RoundStage.VOTING_ON_TEAM:
            raise InvalidStateError("This team is not being voted on", stage=self.stage.value, **context)
        if player_id not in self.eligible_voters:
            raise NotEligibleError("You are not a voter in this game", **context)
        if player_id in self.team_votes:
            raise DuplicateVoteError("You have already voted on this team", **context)

        votes = self._record_vote('team_votes', player_id, vote)
        if votes is None:
            raise DuplicateVoteError("You have already voted on this team", **context)
        self.team_votes = votes
        if len(votes) < len(self.eligible_voters):
            return

        yes_votes = sum(1 for v in votes.values() if v)
        no_votes = len(votes) - yes_votes
        # Ties reject the team
        stage = RoundStage.VOTING_ON_MISSION if yes_votes > no_votes else RoundStage.TEAM_DENIED

        self.store.set(self._key('stage'), stage.value)
        self.stage = stage
        logger.info(f"Round {self.round_id}: team vote {yes_votes} yes / {no_votes} no -> {stage.value}")

    def add_mission_vote(self, player_id: str, vote: bool):
        """Record one team member's secret success/fail vote."""
        context = dict(round_id=self.round_id, player_id=player_id)
        if self.stage != RoundStage.VOTING_ON_MISSION:
            raise InvalidStateError("This mission is not being voted on", stage=self.stage.value, **context)
        if player_id not in self.team:
            raise NotEligibleError("Only members of the mission team can vote on the mission", **context)
        if player_id in self.mission_votes:
            raise DuplicateVoteError("You have already voted on this mission", **context)

        votes = self._record_vote('mission_votes', player_id, vote)
        if votes is None:
            raise DuplicateVoteError("You have already voted on this mission", **context)
        self.mission_votes = votes
        if len(votes) < len(self.team):
            return

        fail_votes = sum(1 for v in votes.values() if not v)
        if fail_votes >= self.min_fail_votes:
            stage = RoundStage.MISSION_FAIL
        else:
            stage = RoundStage.MISSION_SUCCESS

        self.store.set(self._key('stage'), stage.value)
        self.stage = stage
        logger.info(f"Round {self.round_id}: {fail_votes} fail vote(s), {self.min_fail_votes} needed -> {stage.value}")

    # ---------------------------------------------------------------
    # Derived state
    # ---------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_ROUND_STAGES

    @property
    def is_team_vote_complete(self) -> bool:
        return bool(self.eligible_voters) and len(self.team_votes) == len(self.eligible_voters)

    @property
    def is_team_accepted(self) -> bool:
        if not self.is_team_vote_complete:
            return False
        return len(self.players_voted_yes_for_team) > len(self.players_voted_no_for_team)

    @property
    def is_mission_complete(self) -> bool:
        return self.stage in (RoundStage.MISSION_SUCCESS, RoundStage.MISSION_FAIL)

    @property
    def is_complete(self) -> bool:
        return self.is_mission_complete

    @property
    def is_mission_successful(self) -> bool:
        return self.stage == RoundStage.MISSION_SUCCESS

    @property
    def players_voted_yes_for_team(self) -> List[str]:
        return sorted(p for p, v in self.team_votes.items() if v)

    @property
    def players_voted_no_for_team(self) -> List[str]:
        return sorted(p for p, v in self.team_votes.items() if not v)

    @property
    def players_not_voted_on_team(self) -> List[str]:
        return sorted(self.eligible_voters - set(self.team_votes))

    @property
    def players_voted_no_for_mission(self) -> List[str]:
        return sorted(p for p, v in self.mission_votes.items() if not v)

    @property
    def players_not_voted_on_mission(self) -> List[str]:
        return sorted(self.team - set(self.mission_votes))

    @property
    def num_fail_votes(self) -> int:
        return len(self.players_voted_no_for_mission)
