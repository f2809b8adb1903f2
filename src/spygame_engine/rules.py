"""
Game rule configuration by player count.
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import MAX_NUM_PLAYERS, MIN_NUM_PLAYERS
from .errors import ConfigurationError


class GameConfig(BaseModel):
    """Ruleset for one player count."""

    model_config = ConfigDict(frozen=True)

    num_spies: int = Field(
        ...,
        ge=1,
        description="Number of players secretly assigned to the spy faction"
    )
    num_rounds: int = Field(
        default=5,
        ge=1,
        description="Number of rounds (missions) in a full game"
    )
    round_team_sizes: List[int] = Field(
        ...,
        description="Team size for each round"
    )
    round_min_fail_votes: List[int] = Field(
        ...,
        description="Minimum number of fail votes that fails each round"
    )
    max_round_failures: int = Field(
        default=2,
        ge=1,
        description="Lost rounds before the spies win outright"
    )

    @field_validator('round_team_sizes', 'round_min_fail_votes')
    @classmethod
    def validate_positive(cls, v):
        """Every per-round entry must be at least 1."""
        if any(value < 1 for value in v):
            raise ValueError(f'per-round values must be >= 1, got {v}')
        return v

    @model_validator(mode='after')
    def validate_round_lengths(self):
        """Per-round tables must cover exactly ``num_rounds`` rounds."""
        for name in ('round_team_sizes', 'round_min_fail_votes'):
            values = getattr(self, name)
            if len(values) != self.num_rounds:
                raise ValueError(f'{name} has {len(values)} entries, expected {self.num_rounds}')
        for size, fails in zip(self.round_team_sizes, self.round_min_fail_votes):
            if fails > size:
                raise ValueError(f'round needs {fails} fail votes but team size is only {size}')
        return self

    def team_size(self, round_index: int) -> int:
        return self.round_team_sizes[round_index]

    def min_fail_votes(self, round_index: int) -> int:
        return self.round_min_fail_votes[round_index]


GAME_CONFIG_BY_NUM_PLAYERS: Dict[int, GameConfig] = {
    5: GameConfig(num_spies=2, round_team_sizes=[2, 3, 2, 3, 3], round_min_fail_votes=[1, 1, 1, 2, 1]),
    6: GameConfig(num_spies=2, round_team_sizes=[2, 3, 4, 3, 4], round_min_fail_votes=[1, 1, 1, 2, 1]),
    7: GameConfig(num_spies=3, round_team_sizes=[2, 3, 3, 4, 4], round_min_fail_votes=[1, 1, 1, 2, 1]),
    8: GameConfig(num_spies=3, round_team_sizes=[3, 4, 4, 5, 5], round_min_fail_votes=[1, 1, 1, 2, 1]),
    9: GameConfig(num_spies=3, round_team_sizes=[3, 4, 4, 5, 5], round_min_fail_votes=[1, 1, 1, 2, 1]),
    10: GameConfig(num_spies=4, round_team_sizes=[3, 4, 4, 5, 5], round_min_fail_votes=[1, 1, 1, 2, 1]),
}


def has_game_config(num_players: int) -> bool:
    return num_players in GAME_CONFIG_BY_NUM_PLAYERS


def get_game_config(num_players: int) -> GameConfig:
    """
    Look up the ruleset for a player count.

    Raises:
        ConfigurationError: if no ruleset exists for ``num_players``.
    """
    config = GAME_CONFIG_BY_NUM_PLAYERS.get(num_players)
    if config is None:
        raise ConfigurationError(
            f"Games need between {MIN_NUM_PLAYERS} and {MAX_NUM_PLAYERS} players",
            num_players=num_players,
        )
    return config
