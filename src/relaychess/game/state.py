"""Canonical game state: the projector's output value."""

from __future__ import annotations

from dataclasses import dataclass, replace

import chess

from relaychess.core.enums import Color, GameResult
from relaychess.core.notation import decode_game
from relaychess.game.interfaces import TimeControl


@dataclass(frozen=True, slots=True)
class CanonicalGameState:
    """The single state every correct client converges to for one game.

    Never mutated: an accepted move or an adopted snapshot produces a new
    value (see :meth:`advanced`).  ``source_event_id`` / ``source_timestamp``
    name the event the state was read from; an optimistic local state
    carries the event it is about to publish.
    """

    game_id: str
    white: str
    black: str
    pgn: str
    moves: tuple[str, ...]
    time_control: TimeControl
    result: GameResult
    source_event_id: str
    source_timestamp: int

    @property
    def ply_count(self) -> int:
        return len(self.moves)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.source_timestamp, self.source_event_id)

    @property
    def is_game_over(self) -> bool:
        return self.result.is_terminal

    @property
    def side_to_move(self) -> Color:
        return Color.WHITE if self.ply_count % 2 == 0 else Color.BLACK

    def color_of(self, identity: str) -> Color | None:
        if identity == self.white:
            return Color.WHITE
        if identity == self.black:
            return Color.BLACK
        return None

    def player(self, color: Color) -> str:
        return self.white if color == Color.WHITE else self.black

    def board(self) -> chess.Board:
        """Replay the history into a fresh board."""
        return decode_game(self.pgn).board

    def advanced(
        self,
        *,
        pgn: str,
        moves: tuple[str, ...],
        result: GameResult,
        source_event_id: str,
        source_timestamp: int,
    ) -> CanonicalGameState:
        """A new state with a longer (or equal) history."""
        return replace(
            self,
            pgn=pgn,
            moves=moves,
            result=result,
            source_event_id=source_event_id,
            source_timestamp=source_timestamp,
        )
