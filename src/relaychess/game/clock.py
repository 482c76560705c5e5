"""Chess clock driven by sampled wall-clock deltas.

Relay timestamps are too coarse and too skewed for sub-second accuracy, so
the clock charges the time measured between :meth:`Clock.tick` calls to the
side to move.  Event data only enters through :meth:`Clock.sync` /
:meth:`Clock.restore` checkpoints.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from relaychess.core.enums import Color
from relaychess.game.interfaces import IClock, TimeControl

TimeoutCallback = Callable[[Color], None]


@dataclass(frozen=True, slots=True)
class ClockSnapshot:
    """Serializable clock state used as a reconciliation checkpoint."""

    white_remaining: float
    black_remaining: float
    active_color: Color | None
    is_running: bool


class Clock(IClock):
    """Dual chess clock tracking remaining time for both players.

    Uses an injectable monotonic time source.  Supports Fischer increment,
    credited to the mover at the instant the turn flips.  A time control
    with ``initial_seconds == 0`` is untimed: nothing counts down and the
    timeout callback never fires.
    """

    __slots__ = (
        "_time_control",
        "_remaining",
        "_active_color",
        "_last_tick",
        "_running",
        "_now",
        "on_timeout",
    )

    def __init__(
        self,
        time_control: TimeControl,
        *,
        on_timeout: TimeoutCallback | None = None,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._time_control = time_control
        self._remaining: dict[Color, float] = {
            Color.WHITE: float(time_control.initial_seconds),
            Color.BLACK: float(time_control.initial_seconds),
        }
        self._active_color: Color | None = None
        self._last_tick: float = 0.0
        self._running: bool = False
        self._now = now
        self.on_timeout = on_timeout

    # ── IClock implementation ────────────────────────────────────────────

    def start(self, color: Color) -> None:
        self._active_color = color
        self._last_tick = self._now()
        self._running = not self.is_untimed

    def stop(self) -> None:
        if self._running:
            self.tick()
            self._running = False

    def switch(self) -> None:
        """Stop current player's clock, credit their increment, start the other's."""
        if self._active_color is None:
            return
        self.set_turn(self._active_color.opposite)

    def set_turn(self, color: Color) -> None:
        """Make *color* the side to move.

        When this flips the turn, the side that just moved is charged its
        final delta and receives the increment.
        """
        previous = self._active_color
        if previous == color:
            return
        if self._running:
            self.tick()
        if previous is not None and not self.is_untimed:
            self.add_increment(previous)
        self._active_color = color
        self._last_tick = self._now()

    def tick(self) -> None:
        if not self._running or self._active_color is None:
            return
        now = self._now()
        elapsed = max(0.0, now - self._last_tick)
        self._last_tick = now

        color = self._active_color
        before = self._remaining[color]
        after = max(0.0, before - elapsed)
        self._remaining[color] = after
        # Edge-triggered: only the crossing into zero fires.
        if before > 0.0 and after == 0.0 and self.on_timeout is not None:
            self.on_timeout(color)

    def remaining(self, color: Color) -> float:
        if self.is_untimed:
            return math.inf
        return max(0.0, self._remaining[color])

    def is_flag_fallen(self, color: Color) -> bool:
        if self.is_untimed:
            return False
        return self._remaining[color] <= 0.0

    def add_increment(self, color: Color) -> None:
        self._remaining[color] += self._time_control.increment_seconds

    # ── Extra helpers ────────────────────────────────────────────────────

    @property
    def time_control(self) -> TimeControl:
        return self._time_control

    @property
    def is_untimed(self) -> bool:
        return self._time_control.is_untimed

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_color(self) -> Color | None:
        return self._active_color

    def sync(self, white_remaining: float, black_remaining: float) -> None:
        """Reconcile both sides to an externally supplied checkpoint."""
        self._remaining[Color.WHITE] = max(0.0, white_remaining)
        self._remaining[Color.BLACK] = max(0.0, black_remaining)
        self._last_tick = self._now()

    def snapshot(self) -> ClockSnapshot:
        """Capture current clock state (including active side and running flag)."""
        self.tick()
        return ClockSnapshot(
            white_remaining=self._remaining[Color.WHITE],
            black_remaining=self._remaining[Color.BLACK],
            active_color=self._active_color,
            is_running=self._running,
        )

    def restore(self, snapshot: ClockSnapshot) -> None:
        """Restore clock state previously captured with :meth:`snapshot`."""
        self._remaining[Color.WHITE] = snapshot.white_remaining
        self._remaining[Color.BLACK] = snapshot.black_remaining
        self._active_color = snapshot.active_color
        self._running = (
            snapshot.is_running
            and snapshot.active_color is not None
            and not self.is_untimed
        )
        self._last_tick = self._now()
