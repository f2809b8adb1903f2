"""
Tests for spy selection and leader order randomization.
"""

from collections import Counter
from itertools import combinations

import pytest

from spygame_engine.shuffle import RandomSource

PLAYERS = ["U01", "U02", "U03", "U04", "U05"]


def test_seeded_source_is_reproducible():
    first = RandomSource(seed=7)
    second = RandomSource(seed=7)
    assert first.choose_spies(PLAYERS, 2) == second.choose_spies(reversed(PLAYERS), 2)
    assert first.shuffle_players(PLAYERS) == second.shuffle_players(set(PLAYERS))


def test_choose_spies_returns_distinct_players():
    spies = RandomSource().choose_spies(PLAYERS, 3)
    assert len(set(spies)) == 3
    assert set(spies) <= set(PLAYERS)


def test_choose_spies_needs_enough_players():
    with pytest.raises(ValueError):
        RandomSource(seed=1).choose_spies(PLAYERS, 6)


def test_shuffle_is_a_permutation():
    order = RandomSource(seed=3).shuffle_players(PLAYERS)
    assert sorted(order) == PLAYERS


def test_spy_selection_is_uniform():
    source = RandomSource(seed=42)
    counts = Counter(frozenset(source.choose_spies(PLAYERS, 2)) for _ in range(5000))

    # Each of the 10 pairs is expected 500 times
    assert set(counts) == {frozenset(pair) for pair in combinations(PLAYERS, 2)}
    for pair, count in counts.items():
        assert 400 <= count <= 600, pair
