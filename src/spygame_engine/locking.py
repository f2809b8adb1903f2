"""
Advisory per-session lock.

Every mutating action holds the lock of its session for the whole
read-modify-write span. Acquisition retries an atomic set-if-absent with a
fixed backoff and gives up with ``LockTimeoutError`` after a bounded number of
attempts, so a stuck lock shows up in the logs instead of hanging a request.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator

from .constants import LOCK_MAX_RETRIES, LOCK_RETRY_INTERVAL
from .errors import LockTimeoutError
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def lock_key(session_key: str) -> str:
    return f"session:{session_key}:lock"


def acquire_lock(
    store: KeyValueStore,
    key: str,
    token: str,
    retry_interval: float = LOCK_RETRY_INTERVAL,
    max_retries: int = LOCK_MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
):
    for attempt in range(max_retries):
        if store.set_if_absent(key, token):
            if attempt:
                logger.debug(f"Acquired {key} after {attempt} retries")
            return
        sleep(retry_interval)

    logger.error(f"Failed to obtain lock {key} after {max_retries} attempts; it may need manual cleanup")
    raise LockTimeoutError("The game is busy, please try again", lock=key, attempts=max_retries)


def release_lock(store: KeyValueStore, key: str, token: str):
    holder = store.get(key)
    if holder != token:
        logger.warning(f"Lock {key} no longer held by this request (holder={holder})")
        return
    store.delete(key)


@contextmanager
def session_lock(
    store: KeyValueStore,
    session_key: str,
    retry_interval: float = LOCK_RETRY_INTERVAL,
    max_retries: int = LOCK_MAX_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[str]:
    """
    Hold the advisory lock of ``session_key`` for the duration of the block.

    Yields:
        The token identifying this holder
    """
    key = lock_key(session_key)
    token = uuid.uuid4().hex
    acquire_lock(store, key, token, retry_interval, max_retries, sleep)
    try:
        yield token
    finally:
        release_lock(store, key, token)
