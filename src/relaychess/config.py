"""Runtime settings and logging setup.

Values come from ``RELAYCHESS_*`` environment variables or a ``.env`` file.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from relaychess.core.colors import ColorScheme

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RELAYCHESS_",
        env_file=".env",
        extra="ignore",
    )

    # Relay I/O
    broadcast_timeout: float = Field(default=5.0, gt=0)
    poll_interval: float = Field(default=3.0, gt=0)
    resubscribe_delay: float = Field(default=1.0, ge=0)
    game_query_limit: int = Field(default=20, gt=0)
    challenge_query_limit: int = Field(default=10, gt=0)
    listing_limit: int = Field(default=50, gt=0)

    # Game
    color_scheme: ColorScheme = ColorScheme.DIGEST
    event_name: str = "Nostr Chess Game"
    site: str = "nostr"

    # Logging
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | int | None = None) -> None:
    """Install a root handler at *level* (defaults to ``Settings.log_level``)."""
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    logging.getLogger("relaychess").setLevel(level)
