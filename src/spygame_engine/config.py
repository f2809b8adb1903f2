"""
Runtime settings for the engine and its HTTP server.
"""

import os

from pydantic import BaseModel, Field

from .constants import LOCK_MAX_RETRIES, LOCK_RETRY_INTERVAL


class EngineSettings(BaseModel):
    """Settings read once at startup."""

    lock_retry_interval: float = Field(
        default=LOCK_RETRY_INTERVAL,
        ge=0,
        description="Seconds to wait between session lock attempts"
    )
    lock_max_retries: int = Field(
        default=LOCK_MAX_RETRIES,
        ge=1,
        description="Lock attempts before giving up with LockTimeoutError"
    )
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = "info"
    reload: bool = False

    @classmethod
    def from_env(cls) -> 'EngineSettings':
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            lock_retry_interval=os.getenv("SPYGAME_LOCK_RETRY_INTERVAL", LOCK_RETRY_INTERVAL),
            lock_max_retries=os.getenv("SPYGAME_LOCK_MAX_RETRIES", LOCK_MAX_RETRIES),
            host=os.getenv("HOST", "0.0.0.0"),
            port=os.getenv("PORT", 8000),
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
            reload=os.getenv("RELOAD", "false").lower() == "true",
        )
