"""
Key-value storage port.

Game state is persisted as plain string values under namespaced keys
(``game:<id>:stage``, ``round:<id>:team`` ...). Every command is atomic on
its own; multi-key updates go through a ``Pipeline`` which applies its queued
commands all-or-nothing.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple


class KeyValueStore(ABC):
    """Abstract key-value store with Redis-like primitives."""

    # Scalars
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def set_if_absent(self, key: str, value: str) -> bool:
        """Set ``key`` only if it does not exist. Returns True if it was set."""

    @abstractmethod
    def delete(self, *keys: str) -> int:
        """Delete keys of any type. Returns the number of keys removed."""

    # Sets
    @abstractmethod
    def sadd(self, key: str, *members: str) -> int:
        """Add members to a set. Returns the number of members that were new."""

    @abstractmethod
    def srem(self, key: str, *members: str) -> int:
        pass

    @abstractmethod
    def smembers(self, key: str) -> Set[str]:
        pass

    # Lists
    @abstractmethod
    def lpush(self, key: str, *values: str) -> int:
        pass

    @abstractmethod
    def rpush(self, key: str, *values: str) -> int:
        pass

    @abstractmethod
    def lpop(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        """Inclusive range; negative indices count from the end."""

    # Hashes
    @abstractmethod
    def hset(self, key: str, field: str, value: str) -> int:
        pass

    @abstractmethod
    def hset_if_absent(self, key: str, field: str, value: str) -> bool:
        pass

    @abstractmethod
    def hget(self, key: str, field: str) -> Optional[str]:
        pass

    @abstractmethod
    def hgetall(self, key: str) -> Dict[str, str]:
        pass

    @abstractmethod
    def pipeline(self) -> 'Pipeline':
        pass


class Pipeline:
    """
    Queue of write commands applied atomically by the owning store.

    Used as a context manager: commands run on a clean exit and are dropped if
    the block raises.
    """

    COMMANDS = frozenset({
        'set', 'set_if_absent', 'delete', 'sadd', 'srem',
        'lpush', 'rpush', 'lpop', 'hset', 'hset_if_absent',
    })

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._commands: List[Tuple[str, tuple]] = []

    def __getattr__(self, name: str):
        if name not in self.COMMANDS:
            raise AttributeError(f"{name!r} is not a pipeline command")

        def queue(*args):
            self._commands.append((name, args))
            return self
        return queue

    def __len__(self) -> int:
        return len(self._commands)

    def __enter__(self) -> 'Pipeline':
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.execute()
        else:
            self._commands.clear()
        return False

    def execute(self) -> List[Any]:
        commands, self._commands = self._commands, []
        return self._store._execute_pipeline(commands)


class MemoryStore(KeyValueStore):
    """Thread-safe in-process store, used for single-process deployments and tests."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def _typed(self, key: str, kind: type, create: bool = False):
        value = self._data.get(key)
        if value is None:
            if not create:
                return None
            value = kind()
            self._data[key] = value
        elif not isinstance(value, kind):
            raise TypeError(f"Key {key!r} holds a {type(value).__name__}, not a {kind.__name__}")
        return value

    def _drop_if_empty(self, key: str):
        if key in self._data and not self._data[key] and not isinstance(self._data[key], str):
            del self._data[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._typed(key, str)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._typed(key, str)
            self._data[key] = str(value)

    def set_if_absent(self, key: str, value: str) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = str(value)
            return True

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
            return removed

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            existing = self._typed(key, set, create=True)
            added = {str(m) for m in members} - existing
            existing.update(added)
            self._drop_if_empty(key)
            return len(added)

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            existing = self._typed(key, set)
            if existing is None:
                return 0
            removed = existing & {str(m) for m in members}
            existing.difference_update(removed)
            self._drop_if_empty(key)
            return len(removed)

    def smembers(self, key: str) -> Set[str]:
        with self._lock:
            return set(self._typed(key, set) or ())

    def lpush(self, key: str, *values: str) -> int:
        with self._lock:
            existing = self._typed(key, list, create=True)
            for value in values:
                existing.insert(0, str(value))
            self._drop_if_empty(key)
            return len(existing)

    def rpush(self, key: str, *values: str) -> int:
        with self._lock:
            existing = self._typed(key, list, create=True)
            existing.extend(str(v) for v in values)
            self._drop_if_empty(key)
            return len(existing)

    def lpop(self, key: str) -> Optional[str]:
        with self._lock:
            existing = self._typed(key, list)
            if not existing:
                return None
            value = existing.pop(0)
            self._drop_if_empty(key)
            return value

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        with self._lock:
            existing = self._typed(key, list) or []
            size = len(existing)
            if start < 0:
                start = max(size + start, 0)
            if stop < 0:
                stop = size + stop
                if stop < 0:
                    return []
            return list(existing[start:stop + 1])

    def hset(self, key: str, field: str, value: str) -> int:
        with self._lock:
            existing = self._typed(key, dict, create=True)
            is_new = field not in existing
            existing[field] = str(value)
            return int(is_new)

    def hset_if_absent(self, key: str, field: str, value: str) -> bool:
        with self._lock:
            existing = self._typed(key, dict, create=True)
            if field in existing:
                return False
            existing[field] = str(value)
            return True

    def hget(self, key: str, field: str) -> Optional[str]:
        with self._lock:
            return (self._typed(key, dict) or {}).get(field)

    def hgetall(self, key: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._typed(key, dict) or {})

    def pipeline(self) -> Pipeline:
        return Pipeline(self)

    def _execute_pipeline(self, commands: List[Tuple[str, tuple]]) -> List[Any]:
        with self._lock:
            # Save only the keys the commands touch so a failing command leaves nothing behind
            touched = set()
            for name, args in commands:
                touched.update(args if name == 'delete' else args[:1])
            saved = {}
            for key in touched:
                value = self._data.get(key)
                if value is not None:
                    saved[key] = value.copy() if not isinstance(value, str) else value
            try:
                return [getattr(self, name)(*args) for name, args in commands]
            except Exception:
                for key in touched:
                    if key in saved:
                        self._data[key] = saved[key]
                    else:
                        self._data.pop(key, None)
                raise
