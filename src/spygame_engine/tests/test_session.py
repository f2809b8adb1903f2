"""
Tests for the per-channel session registry.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from spygame_engine.errors import CorruptStateError, DuplicateGameError, NoActiveGameError
from spygame_engine.game import Game
from spygame_engine.session import SessionRegistry, make_session_key


def test_session_key():
    assert make_session_key("T1", "C1") == "T1:C1"


def test_create_and_fetch(store):
    registry = SessionRegistry(store)
    assert registry.fetch("T1:C1") is None
    assert registry.fetch_game("T1:C1") is None

    game = registry.create_game("T1:C1")
    assert registry.fetch("T1:C1") == game.game_id
    assert registry.fetch_game("T1:C1") == game
    assert Game.fetch(store, game.game_id) == game


def test_one_game_per_session(store):
    registry = SessionRegistry(store)
    game = registry.create_game("T1:C1")
    with pytest.raises(DuplicateGameError) as exc_info:
        registry.create_game("T1:C1")
    assert exc_info.value.context["game_id"] == game.game_id

    # Other channels are independent
    other = registry.create_game("T1:C2")
    assert other.game_id != game.game_id


def test_remove_game(store):
    registry = SessionRegistry(store)
    game = registry.create_game("T1:C1")
    registry.remove_game("T1:C1")
    assert registry.fetch("T1:C1") is None
    # The game record outlives its association
    assert Game.fetch(store, game.game_id) is not None

    with pytest.raises(NoActiveGameError):
        registry.remove_game("T1:C1")
    assert registry.create_game("T1:C1").game_id != game.game_id


def test_concurrent_create_yields_one_game(store):
    registry = SessionRegistry(store)
    barrier = threading.Barrier(8)

    def create():
        barrier.wait()
        try:
            return registry.create_game("T1:C1")
        except DuplicateGameError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: create(), range(8)))

    created = [game for game in results if game is not None]
    assert len(created) == 1
    assert registry.fetch("T1:C1") == created[0].game_id


def test_dangling_session_pointer(store):
    registry = SessionRegistry(store)
    store.set("session:T1:C1:game", "vanished")
    with pytest.raises(CorruptStateError):
        registry.fetch_game("T1:C1")
