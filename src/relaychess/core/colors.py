"""Deterministic color assignment for a challenge.

Neither party is trusted to report a fair coin flip, so a ``random``
preference is resolved by a pure function of public inputs that both sides
evaluate independently.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum

from relaychess.core.enums import Color, ColorPreference

_DIGEST_KEY = b"relaychess/color-assignment/v1"


class ColorScheme(str, Enum):
    """How a ``random`` preference is resolved."""

    DIGEST = "digest"
    LEGACY = "legacy"


@dataclass(frozen=True, slots=True)
class ColorAssignment:
    white: str
    black: str

    def color_of(self, identity: str) -> Color | None:
        """Color played by *identity*, or ``None`` for a spectator."""
        if identity == self.white:
            return Color.WHITE
        if identity == self.black:
            return Color.BLACK
        return None


def _legacy_challenger_is_white(challenger: str, challenged: str) -> bool:
    # Compatible with the first clients: odd character-code sum means white.
    return sum(ord(ch) for ch in challenger + challenged) % 2 == 1


def _digest_white(challenger: str, challenged: str, game_id: str) -> str:
    first, second = sorted((challenger, challenged))
    message = "\n".join((first, second, game_id)).encode("utf-8")
    digest = hmac.new(_DIGEST_KEY, message, hashlib.sha256).digest()
    return second if digest[0] & 1 else first


def resolve_colors(
    challenger: str,
    challenged: str,
    preference: ColorPreference,
    *,
    scheme: ColorScheme = ColorScheme.DIGEST,
    game_id: str = "",
) -> ColorAssignment:
    """Resolve who plays white and black.

    Args:
        challenger: Identity that proposed the game.
        challenged: Identity that received the challenge.
        preference: Challenger's requested color.
        scheme: Resolution of ``RANDOM``; both parties must use the same one.
        game_id: Mixed into the digest so one pair does not always get the
            same colors.  Ignored by the legacy scheme.
    """
    if preference == ColorPreference.WHITE:
        return ColorAssignment(white=challenger, black=challenged)
    if preference == ColorPreference.BLACK:
        return ColorAssignment(white=challenged, black=challenger)

    if scheme == ColorScheme.LEGACY:
        if _legacy_challenger_is_white(challenger, challenged):
            return ColorAssignment(white=challenger, black=challenged)
        return ColorAssignment(white=challenged, black=challenger)

    white = _digest_white(challenger, challenged, game_id)
    black = challenged if white == challenger else challenger
    return ColorAssignment(white=white, black=black)
