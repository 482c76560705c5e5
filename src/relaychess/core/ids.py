"""Game identifier generation."""

from __future__ import annotations

import secrets

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
GAME_ID_LENGTH = 26


def generate_game_id(length: int = GAME_ID_LENGTH) -> str:
    """Return a collision-resistant lowercase base-36 identifier."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def declined_id(game_id: str) -> str:
    """Identifier used by decline events, distinct from any move-event use."""
    return f"{game_id}-declined"
