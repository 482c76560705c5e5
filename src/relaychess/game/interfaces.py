"""Abstract interfaces and value types for the game layer."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

from relaychess.core.enums import Color

_TC_HEADER_RE = re.compile(r"^(\d+)(?:\+(\d+))?$")


# ── Time control presets ─────────────────────────────────────────────────────


class TimeControl:
    """Immutable time-control definition.

    Args:
        initial_seconds: Starting time per player; ``0`` means untimed.
        increment_seconds: Per-move increment (Fischer).
    """

    __slots__ = ("initial_seconds", "increment_seconds")

    def __init__(self, initial_seconds: int = 0, increment_seconds: int = 0) -> None:
        if initial_seconds < 0 or increment_seconds < 0:
            raise ValueError("Time control values must be >= 0")
        object.__setattr__(self, "initial_seconds", int(initial_seconds))
        object.__setattr__(self, "increment_seconds", int(increment_seconds))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("TimeControl is immutable")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeControl):
            return NotImplemented
        return (self.initial_seconds, self.increment_seconds) == (
            other.initial_seconds,
            other.increment_seconds,
        )

    def __hash__(self) -> int:
        return hash((self.initial_seconds, self.increment_seconds))

    @property
    def is_untimed(self) -> bool:
        return self.initial_seconds == 0

    # Common presets
    @classmethod
    def bullet_1m(cls) -> TimeControl:
        return cls(60, 0)

    @classmethod
    def bullet_1m1s(cls) -> TimeControl:
        return cls(60, 1)

    @classmethod
    def blitz_3m(cls) -> TimeControl:
        return cls(180, 0)

    @classmethod
    def blitz_3m2s(cls) -> TimeControl:
        return cls(180, 2)

    @classmethod
    def blitz_5m(cls) -> TimeControl:
        return cls(300, 0)

    @classmethod
    def blitz_5m3s(cls) -> TimeControl:
        return cls(300, 3)

    @classmethod
    def rapid_10m(cls) -> TimeControl:
        return cls(600, 0)

    @classmethod
    def rapid_10m5s(cls) -> TimeControl:
        return cls(600, 5)

    @classmethod
    def rapid_15m10s(cls) -> TimeControl:
        return cls(900, 10)

    @classmethod
    def classical_30m(cls) -> TimeControl:
        return cls(1800, 0)

    @classmethod
    def unlimited(cls) -> TimeControl:
        """No time limit."""
        return cls(0, 0)

    # ── Wire / header forms ──────────────────────────────────────────────

    def to_payload(self) -> dict[str, int]:
        """Challenge-content form: ``{"initial": 300, "increment": 0}``."""
        return {"initial": self.initial_seconds, "increment": self.increment_seconds}

    @classmethod
    def from_payload(cls, data: Any) -> TimeControl:
        """Inverse of :meth:`to_payload`; raises ``ValueError`` on junk."""
        if not isinstance(data, dict):
            raise ValueError(f"Invalid time control payload: {data!r}")
        initial = data.get("initial", 0)
        increment = data.get("increment", 0)
        if isinstance(initial, bool) or isinstance(increment, bool):
            raise ValueError(f"Invalid time control payload: {data!r}")
        if not isinstance(initial, (int, float)) or not isinstance(increment, (int, float)):
            raise ValueError(f"Invalid time control payload: {data!r}")
        return cls(int(initial), int(increment))

    def to_header(self) -> str:
        """PGN ``TimeControl`` header value (``-`` when untimed)."""
        if self.is_untimed:
            return "-"
        if self.increment_seconds > 0:
            return f"{self.initial_seconds}+{self.increment_seconds}"
        return f"{self.initial_seconds}"

    @classmethod
    def from_header(cls, value: str | None) -> TimeControl | None:
        """Parse ``300+5`` / ``300`` / ``-`` (untimed); ``None`` for ``?``, empty or junk."""
        if not value:
            return None
        value = value.strip()
        if value == "-":
            return cls.unlimited()
        match = _TC_HEADER_RE.match(value)
        if match is None:
            return None
        return cls(int(match.group(1)), int(match.group(2) or 0))

    def describe(self) -> str:
        """Human label, e.g. ``5+3``, ``10 min`` or ``Unlimited``."""
        if self.is_untimed:
            return "Unlimited"
        mins = self.initial_seconds // 60
        if self.increment_seconds > 0:
            return f"{mins}+{self.increment_seconds}"
        return f"{mins} min"

    def __repr__(self) -> str:
        return f"TimeControl({self.initial_seconds}+{self.increment_seconds})"


DEFAULT_TIME_CONTROL = TimeControl.blitz_5m()

# Offered when creating a challenge, fastest first.
TIME_CONTROL_PRESETS: tuple[TimeControl, ...] = (
    TimeControl.bullet_1m(),
    TimeControl.bullet_1m1s(),
    TimeControl.blitz_3m(),
    TimeControl.blitz_3m2s(),
    TimeControl.blitz_5m(),
    TimeControl.blitz_5m3s(),
    TimeControl.rapid_10m(),
    TimeControl.rapid_10m5s(),
    TimeControl.rapid_15m10s(),
    TimeControl.classical_30m(),
    TimeControl.unlimited(),
)


# ── Abstract interfaces ─────────────────────────────────────────────────────


class IClock(ABC):
    """Interface for a chess clock."""

    @abstractmethod
    def start(self, color: Color) -> None:
        """Start the clock for *color*."""

    @abstractmethod
    def stop(self) -> None:
        """Pause the running clock."""

    @abstractmethod
    def switch(self) -> None:
        """Switch to the other player's clock."""

    @abstractmethod
    def tick(self) -> None:
        """Charge the wall-clock time since the last sample to the side to move."""

    @abstractmethod
    def remaining(self, color: Color) -> float:
        """Seconds remaining for *color*."""

    @abstractmethod
    def is_flag_fallen(self, color: Color) -> bool:
        """Has *color* run out of time?"""

    @abstractmethod
    def add_increment(self, color: Color) -> None:
        """Add Fischer increment after a move."""
