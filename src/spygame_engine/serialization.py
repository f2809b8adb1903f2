"""
State serialization and sanitization utilities.

Views are built per viewer: spies are only revealed to spies, and individual
mission votes are never revealed to anyone (only the number of fail votes).
"""

from typing import Any, Dict, List, Optional

import orjson

from .constants import GameStage, MAX_NUM_PLAYERS, MIN_NUM_PLAYERS, RoundStage
from .game import Game
from .rounds import Round

# Pending actions reported by what_do_i_do
ACTION_NEW_GAME = "new_game"
ACTION_JOIN_GAME = "join_game"
ACTION_START_GAME = "start_game"
ACTION_WAIT_FOR_PLAYERS = "wait_for_players"
ACTION_CHOOSE_TEAM = "choose_team"
ACTION_VOTE_ON_TEAM = "vote_on_team"
ACTION_VOTE_ON_MISSION = "vote_on_mission"
ACTION_WAIT = "wait"
ACTION_NONE = "none"


def sanitize_game(game: Game, viewer_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Sanitize a game for transmission to a client.

    Args:
        game: Game to sanitize
        viewer_id: ID of the player viewing the game (spies see the other spies)

    Returns:
        Sanitized game dictionary safe for JSON transmission
    """
    sanitized = {
        "game_id": game.game_id,
        "stage": game.stage.value,
        "players": sorted(game.players),
        "num_players": len(game.players),
        "leader_queue": list(game.leader_queue),
        "current_leader": game.current_leader if game.current_round_id else None,
        "current_round_id": game.current_round_id,
        "rounds_completed": game.rounds_completed_in_order,
        "rounds_won": [r for r in game.rounds_completed_in_order if r in game.rounds_won],
        "rounds_lost": [r for r in game.rounds_completed_in_order if r in game.rounds_lost],
        "is_game_over": game.is_game_over,
        "is_game_successful": game.is_game_successful,
        "config": None,
        "spies": [],
    }

    if game.has_config:
        sanitized["config"] = game.config.model_dump()
        sanitized["current_round_team_size"] = game.current_round_team_size
        sanitized["current_round_min_fail_votes"] = game.current_round_min_fail_votes

    # Spies are public once the game is over
    if game.is_game_over or (viewer_id and game.is_spy(viewer_id)):
        sanitized["spies"] = sorted(game.spies)

    return sanitized


def sanitize_round(current: Round) -> Dict[str, Any]:
    """Sanitize a round. Team votes are public once complete, mission votes never are."""
    sanitized = {
        "round_id": current.round_id,
        "round_index": current.round_index,
        "stage": current.stage.value,
        "leader": current.leader,
        "team_size": current.team_size,
        "min_fail_votes": current.min_fail_votes,
        "team": sorted(current.team),
        "waiting_on_team_votes": [],
        "team_votes": None,
        "waiting_on_mission_votes": [],
        "num_fail_votes": None,
    }

    if current.stage == RoundStage.VOTING_ON_TEAM:
        sanitized["waiting_on_team_votes"] = current.players_not_voted_on_team
    if current.is_team_vote_complete:
        sanitized["team_votes"] = {
            "yes": current.players_voted_yes_for_team,
            "no": current.players_voted_no_for_team,
            "accepted": current.is_team_accepted,
        }
    if current.stage == RoundStage.VOTING_ON_MISSION:
        sanitized["waiting_on_mission_votes"] = current.players_not_voted_on_mission
    if current.is_mission_complete:
        sanitized["num_fail_votes"] = current.num_fail_votes

    return sanitized


def who_am_i(game: Optional[Game], player_id: str) -> Dict[str, Any]:
    """Faction information for one player."""
    if game is None or player_id not in game.players:
        return {"in_game": False, "faction": None, "other_spies": []}
    if game.stage == GameStage.WAITING_FOR_PLAYERS:
        return {"in_game": True, "faction": None, "other_spies": []}
    if game.is_spy(player_id):
        return {
            "in_game": True,
            "faction": "spy",
            "other_spies": sorted(p for p in game.spies if p != player_id),
        }
    return {"in_game": True, "faction": "good", "other_spies": []}


def what_do_i_do(game: Optional[Game], current: Optional[Round], player_id: str) -> str:
    """The action a player is expected to take next."""
    if game is None or game.is_game_over:
        return ACTION_NEW_GAME

    if game.stage == GameStage.WAITING_FOR_PLAYERS:
        if player_id not in game.players:
            return ACTION_JOIN_GAME if len(game.players) < MAX_NUM_PLAYERS else ACTION_NONE
        if len(game.players) >= MIN_NUM_PLAYERS:
            return ACTION_START_GAME
        return ACTION_WAIT_FOR_PLAYERS

    if player_id not in game.players:
        return ACTION_NONE
    if current is None:
        return ACTION_WAIT

    if current.stage == RoundStage.CHOOSING_TEAM:
        return ACTION_CHOOSE_TEAM if player_id == current.leader else ACTION_WAIT
    if current.stage == RoundStage.VOTING_ON_TEAM:
        return ACTION_VOTE_ON_TEAM if player_id not in current.team_votes else ACTION_WAIT
    if current.stage == RoundStage.VOTING_ON_MISSION:
        if player_id in current.team and player_id not in current.mission_votes:
            return ACTION_VOTE_ON_MISSION
        return ACTION_WAIT
    return ACTION_WAIT


def game_summary(game: Game) -> List[Dict[str, Any]]:
    """Per-round overview: team size, votes needed to fail and outcome so far."""
    if not game.has_config:
        return []
    completed = game.rounds_completed_in_order
    summary = []
    for index in range(game.num_rounds):
        round_id = completed[index] if index < len(completed) else None
        if round_id is None:
            status = "pending"
        elif round_id in game.rounds_won:
            status = "success"
        else:
            status = "fail"
        summary.append({
            "round": index + 1,
            "status": status,
            "team_size": game.config.team_size(index),
            "votes_to_fail": game.config.min_fail_votes(index),
        })
    return summary


def session_view(
    game: Optional[Game],
    current: Optional[Round] = None,
    viewer_id: Optional[str] = None,
    next_round: Optional[Round] = None,
) -> Dict[str, Any]:
    """Full per-viewer snapshot of a session."""
    view = {
        "game": sanitize_game(game, viewer_id) if game else None,
        "round": sanitize_round(current) if current else None,
        "next_round": sanitize_round(next_round) if next_round else None,
        "summary": game_summary(game) if game else [],
    }
    if viewer_id:
        view["you"] = who_am_i(game, viewer_id)
        active = next_round or current
        view["you"]["next_action"] = what_do_i_do(game, active, viewer_id)
    return view


def to_json(data: Any) -> bytes:
    return orjson.dumps(data, option=orjson.OPT_SORT_KEYS)
