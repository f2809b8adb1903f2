"""
Faction and leader-order randomization.
"""

import random
from typing import Iterable, List, Optional


class RandomSource:
    """
    Source of randomness for spy selection and leader order.

    Uses the OS CSPRNG unless a seed is given; seeded sources are for
    deterministic tests only.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        if seed is not None:
            self._rng = random.Random(seed)
        else:
            self._rng = random.SystemRandom()

    def choose_spies(self, players: Iterable[str], count: int) -> List[str]:
        """
        Pick ``count`` distinct players uniformly at random.

        Args:
            players: Player ids to choose from
            count: Number of spies

        Returns:
            List of chosen player ids
        """
        # Sorted so a seeded source gives the same result regardless of set order
        pool = sorted(players)
        if count > len(pool):
            raise ValueError(f"Cannot choose {count} spies from {len(pool)} players")
        return self._rng.sample(pool, count)

    def shuffle_players(self, players: Iterable[str]) -> List[str]:
        """Return a uniformly shuffled copy of the players (Fisher-Yates)."""
        order = sorted(players)
        self._rng.shuffle(order)
        return order


default_random_source = RandomSource()
