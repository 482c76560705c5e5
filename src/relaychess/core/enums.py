"""Core enumerations for the relay chess domain."""

from __future__ import annotations

from enum import Enum, IntEnum


class Color(IntEnum):
    """Side color."""

    WHITE = 0
    BLACK = 1

    @property
    def opposite(self) -> Color:
        return Color(1 - self.value)

    @property
    def letter(self) -> str:
        """Single-letter form used on the wire (``w`` / ``b``)."""
        return "w" if self is Color.WHITE else "b"

    def __str__(self) -> str:
        return self.name.lower()


class GameResult(IntEnum):
    """Outcome of a game."""

    IN_PROGRESS = 0
    WHITE_WINS = 1
    BLACK_WINS = 2
    DRAW = 3

    @property
    def is_terminal(self) -> bool:
        return self is not GameResult.IN_PROGRESS

    @classmethod
    def loss_for(cls, color: Color) -> GameResult:
        """Result when *color* loses (resignation, flag fall, checkmate)."""
        return cls.BLACK_WINS if color == Color.WHITE else cls.WHITE_WINS


class ColorPreference(str, Enum):
    """Challenger's requested color, encoded as in challenge payloads."""

    WHITE = "w"
    BLACK = "b"
    RANDOM = "random"


class ChallengeStatus(str, Enum):
    """Lifecycle state of a challenge, as carried in the ``status`` tag."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self is not ChallengeStatus.PENDING
