"""Shared notation-layer data models."""

from __future__ import annotations

from dataclasses import dataclass, field

import chess

from relaychess.core.enums import GameResult


@dataclass(slots=True)
class PgnMove:
    """A single mainline move extracted from PGN movetext."""

    san: str
    comment: str = ""


@dataclass(slots=True)
class ParsedPgn:
    """Structured PGN payload before moves are replayed."""

    headers: dict[str, str]
    moves: list[PgnMove]
    result_token: str


@dataclass(slots=True)
class DecodedGame:
    """A snapshot's notation text replayed into a board.

    ``moves`` holds the SAN mainline, ``result`` the header/movetext result
    token mapped to :class:`GameResult`.
    """

    headers: dict[str, str]
    board: chess.Board
    moves: list[str] = field(default_factory=list)
    result: GameResult = GameResult.IN_PROGRESS

    @property
    def ply_count(self) -> int:
        return len(self.moves)
