"""Session registry: which game, if any, is active in a chat room."""

import logging
import uuid
from typing import Optional

from .errors import CorruptStateError, DuplicateGameError, NoActiveGameError
from .game import Game
from .locking import session_lock
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def make_session_key(team_id: str, channel_id: str) -> str:
    """Session key for a chat channel within a workspace."""
    return f"{team_id}:{channel_id}"


def session_game_key(session_key: str) -> str:
    return f"session:{session_key}:game"


class SessionRegistry:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def create_game(self, session_key: str) -> Game:
        """
        Start a new game in the session.

        Raises:
            DuplicateGameError: if the session already has an active game
        """
        game_id = str(uuid.uuid4())
        if not self.store.set_if_absent(session_game_key(session_key), game_id):
            raise DuplicateGameError(
                "A game already exists in this channel",
                session_key=session_key, game_id=self.fetch(session_key))
        try:
            game = Game.create(self.store, game_id)
        except Exception:
            self.store.delete(session_game_key(session_key))
            raise
        logger.info(f"Session {session_key}: game {game_id} created")
        return game

    def remove_game(self, session_key: str):
        if not self.store.delete(session_game_key(session_key)):
            raise NoActiveGameError("There is no game in this channel", session_key=session_key)
        logger.info(f"Session {session_key}: game detached")

    def fetch(self, session_key: str) -> Optional[str]:
        """Id of the session's active game, or None."""
        return self.store.get(session_game_key(session_key))

    def fetch_game(self, session_key: str) -> Optional[Game]:
        game_id = self.fetch(session_key)
        if game_id is None:
            return None
        game = Game.fetch(self.store, game_id)
        if game is None:
            raise CorruptStateError("Session points to a missing game", session_key=session_key, game_id=game_id)
        return game

    def lock(self, session_key: str, **kwargs):
        """Scoped advisory lock for the session, see ``locking.session_lock``."""
        return session_lock(self.store, session_key, **kwargs)
