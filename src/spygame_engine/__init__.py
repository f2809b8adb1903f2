"""
Rules engine for a spies vs. good guys hidden-role game played over chat.
"""

from .engine import ActionResult, SpyGameEngine
from .game import Game
from .rounds import Round
from .session import SessionRegistry, make_session_key
from .store import KeyValueStore, MemoryStore

__version__ = "1.0.0"

__all__ = [
    "ActionResult",
    "Game",
    "KeyValueStore",
    "MemoryStore",
    "Round",
    "SessionRegistry",
    "SpyGameEngine",
    "make_session_key",
]
