"""
End-to-end tests for the action dispatcher.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from spygame_engine.config import EngineSettings
from spygame_engine.constants import GameStage, RoundStage
from spygame_engine.engine import SpyGameEngine
from spygame_engine.errors import (
    AlreadyJoinedError, ConfigurationError, DuplicateGameError, GameFullError,
    InvalidStateError, LockTimeoutError, NoActiveGameError, NotEligibleError, NotLeaderError,
)
from spygame_engine.game import Game
from spygame_engine.locking import lock_key

SESSION = "T1:C1"


def _lobby(engine, player_ids):
    engine.new_game(SESSION, player_ids[0])
    for player_id in player_ids[1:]:
        engine.join_game(SESSION, player_id)


def _started(engine, player_ids):
    _lobby(engine, player_ids)
    return engine.start_game(SESSION, player_ids[0])


def _accept_team(engine, player_ids, current):
    team = sorted(player_ids)[:current.team_size]
    engine.choose_team(SESSION, current.leader, team)
    result = None
    for player_id in player_ids:
        result = engine.vote_on_team(SESSION, player_id, True)
    return team, result


def test_new_game_adds_creator(engine):
    result = engine.new_game(SESSION, "U01")
    assert result.game.players == {"U01"}
    assert result.game.stage == GameStage.WAITING_FOR_PLAYERS
    assert engine.registry.fetch(SESSION) == result.game.game_id


def test_duplicate_new_game(engine):
    engine.new_game(SESSION, "U01")
    with pytest.raises(DuplicateGameError):
        engine.new_game(SESSION, "U02")


def test_join_errors(engine, players):
    with pytest.raises(NoActiveGameError):
        engine.join_game(SESSION, "U01")

    _lobby(engine, players(10))
    with pytest.raises(AlreadyJoinedError):
        engine.join_game(SESSION, "U03")
    with pytest.raises(GameFullError):
        engine.join_game(SESSION, "U11")
    assert len(engine.load(SESSION).game.players) == 10


def test_start_requires_player(engine, players):
    _lobby(engine, players(5))
    with pytest.raises(NotEligibleError):
        engine.start_game(SESSION, "stranger")


def test_start_requires_enough_players(engine, players):
    _lobby(engine, players(4))
    with pytest.raises(ConfigurationError):
        engine.start_game(SESSION, "U01")
    assert engine.load(SESSION).game.stage == GameStage.WAITING_FOR_PLAYERS


def test_start_game_opens_first_round(engine, players):
    result = _started(engine, players(5))
    assert result.game.stage == GameStage.IN_PROGRESS
    assert result.round.stage == RoundStage.CHOOSING_TEAM
    assert result.round.leader == result.game.current_leader

    loaded = engine.load(SESSION)
    assert loaded.round == result.round


def test_cancel_detaches_game(store, engine, players):
    created = engine.new_game(SESSION, "U01").game
    result = engine.cancel_game(SESSION, "U01")
    assert result.game.stage == GameStage.GAME_CANCELLED
    assert engine.registry.fetch(SESSION) is None
    assert Game.fetch(store, created.game_id).stage == GameStage.GAME_CANCELLED
    with pytest.raises(NoActiveGameError):
        engine.cancel_game(SESSION, "U01")


def test_actions_without_round(engine, players):
    with pytest.raises(NoActiveGameError):
        engine.vote_on_team(SESSION, "U01", True)
    _lobby(engine, players(5))
    with pytest.raises(InvalidStateError):
        engine.choose_team(SESSION, "U01", ["U01", "U02"])


def test_team_must_be_players(engine, players):
    current = _started(engine, players(5)).round
    with pytest.raises(NotEligibleError):
        engine.choose_team(SESSION, current.leader, [current.leader, "stranger"])


def test_only_leader_chooses(engine, players):
    current = _started(engine, players(5)).round
    other = next(p for p in players(5) if p != current.leader)
    with pytest.raises(NotLeaderError):
        engine.choose_team(SESSION, other, players(2))


def test_denied_team_starts_next_round(engine, players):
    player_ids = players(5)
    first = _started(engine, player_ids).round
    engine.choose_team(SESSION, first.leader, player_ids[:2])

    result = None
    for player_id in player_ids:
        result = engine.vote_on_team(SESSION, player_id, False)

    assert result.round.stage == RoundStage.TEAM_DENIED
    assert result.next_round is not None
    assert result.next_round.round_index == 0
    assert result.next_round.leader != first.leader
    assert engine.load(SESSION).round == result.next_round


def test_full_game_ends_in_failure(store, engine, players):
    player_ids = players(7)
    current = _started(engine, player_ids).round

    for mission in range(2):
        team, result = _accept_team(engine, player_ids, current)
        assert result.round.stage == RoundStage.VOTING_ON_MISSION
        for i, player_id in enumerate(team):
            result = engine.vote_on_mission(SESSION, player_id, i != 0)
        assert result.round.stage == RoundStage.MISSION_FAIL
        current = result.next_round

    game = result.game
    assert current is None
    assert game.stage == GameStage.GAME_FAIL
    assert len(game.rounds_lost) == 2
    assert engine.registry.fetch(SESSION) is None
    assert Game.fetch(store, game.game_id).stage == GameStage.GAME_FAIL

    # The channel is free for a new game
    assert engine.new_game(SESSION, "U01").game.game_id != game.game_id


def test_won_mission_starts_next_round(engine, players):
    player_ids = players(7)
    current = _started(engine, player_ids).round
    team, _ = _accept_team(engine, player_ids, current)
    for player_id in team:
        result = engine.vote_on_mission(SESSION, player_id, True)

    assert result.round.stage == RoundStage.MISSION_SUCCESS
    assert result.next_round.round_index == 1
    assert result.next_round.team_size == 3
    assert result.game.rounds_won == {current.round_id}


def test_busy_session_times_out(store, players):
    engine = SpyGameEngine(store, EngineSettings(lock_retry_interval=0, lock_max_retries=3))
    store.set(lock_key(SESSION), "someone-else")
    with pytest.raises(LockTimeoutError):
        engine.new_game(SESSION, "U01")
    assert engine.registry.fetch(SESSION) is None


def test_concurrent_team_votes(engine, players):
    player_ids = players(9)
    current = _started(engine, player_ids).round
    engine.choose_team(SESSION, current.leader, player_ids[:current.team_size])
    barrier = threading.Barrier(len(player_ids))

    def vote(player_id):
        barrier.wait()
        return engine.vote_on_team(SESSION, player_id, True)

    with ThreadPoolExecutor(max_workers=len(player_ids)) as pool:
        list(pool.map(vote, player_ids))

    loaded = engine.load(SESSION).round
    assert loaded.team_votes == {player_id: True for player_id in player_ids}
    assert loaded.stage == RoundStage.VOTING_ON_MISSION
