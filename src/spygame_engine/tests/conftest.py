"""
Shared fixtures for the Spy Game engine tests.
"""

import pytest

from spygame_engine.config import EngineSettings
from spygame_engine.engine import SpyGameEngine
from spygame_engine.game import Game
from spygame_engine.rounds import Round
from spygame_engine.shuffle import RandomSource
from spygame_engine.store import MemoryStore

PLAYER_IDS = [f"U{i:02d}" for i in range(1, 12)]


@pytest.fixture
def players():
    """Return the first ``n`` player ids."""
    def _players(n):
        return PLAYER_IDS[:n]
    return _players


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def rng():
    return RandomSource(seed=1234)


@pytest.fixture
def new_game(store, players):
    def _new_game(num_players=0):
        game = Game.create(store)
        for player_id in players(num_players):
            game.add_player(player_id)
        return game
    return _new_game


@pytest.fixture
def started_game(new_game, rng):
    def _started_game(num_players=7):
        game = new_game(num_players)
        game.start_game(rng)
        return game
    return _started_game


@pytest.fixture
def make_round(store):
    """Persist a standalone round with the given voters."""
    def _make_round(voters, leader=None, team_size=2, min_fail_votes=1, round_index=0, round_id="round-1"):
        voters = list(voters)
        new_round = Round(
            store=store,
            round_id=round_id,
            game_id="game-1",
            round_index=round_index,
            leader=leader or voters[0],
            team_size=team_size,
            min_fail_votes=min_fail_votes,
            eligible_voters=set(voters),
        )
        with store.pipeline() as pipe:
            new_round.write_new(pipe)
        return new_round
    return _make_round


@pytest.fixture
def play_mission():
    """Start a round, get its team accepted, vote and complete it."""
    def _play_mission(game, fail_votes=0):
        current = game.start_new_round()
        team = sorted(game.players)[:current.team_size]
        current.choose_team(current.leader, team)
        for player_id in sorted(game.players):
            current.add_team_vote(player_id, True)
        for i, player_id in enumerate(team):
            current.add_mission_vote(player_id, i >= fail_votes)
        game.complete_round(current)
        return current
    return _play_mission


@pytest.fixture
def deny_round():
    """Start a round, have its team rejected by everyone and discard it."""
    def _deny_round(game):
        current = game.start_new_round()
        team = sorted(game.players)[:current.team_size]
        current.choose_team(current.leader, team)
        for player_id in sorted(game.players):
            current.add_team_vote(player_id, False)
        game.discard_current_round()
        return current
    return _deny_round


@pytest.fixture
def settings():
    return EngineSettings(lock_retry_interval=0.001, lock_max_retries=5000)


@pytest.fixture
def engine(store, settings, rng):
    return SpyGameEngine(store, settings, rng)
