"""Legality oracle: move application and terminal detection.

Thin adapter over :mod:`chess` (python-chess).  Boards are never mutated in
place; :func:`apply_move` always returns a new board.
"""

from __future__ import annotations

import chess

from relaychess.core.enums import GameResult
from relaychess.core.errors import IllegalMove

_PROMOTION_PIECES = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
}


def initial_board() -> chess.Board:
    """Standard starting position."""
    return chess.Board()


def _parse_square(name: str) -> chess.Square:
    try:
        return chess.parse_square(name.strip().lower())
    except ValueError:
        raise IllegalMove(f"Invalid square name: {name!r}") from None


def _promotion_for(
    board: chess.Board,
    from_sq: chess.Square,
    to_sq: chess.Square,
    promotion: str | None,
) -> chess.PieceType | None:
    if promotion:
        piece_type = _PROMOTION_PIECES.get(promotion.strip().lower())
        if piece_type is None:
            raise IllegalMove(f"Invalid promotion piece: {promotion!r}")
        return piece_type
    # No hint: a pawn reaching the last rank promotes to a queen.
    if board.piece_type_at(from_sq) == chess.PAWN and chess.square_rank(to_sq) in (0, 7):
        return chess.QUEEN
    return None


def apply_move(
    board: chess.Board,
    from_sq: str,
    to_sq: str,
    promotion: str | None = None,
) -> tuple[chess.Board, str]:
    """Apply ``from_sq -> to_sq`` to a copy of *board*.

    Returns:
        The new board and the SAN of the move played.

    Raises:
        IllegalMove: if the squares are invalid or the move is not legal.
    """
    origin = _parse_square(from_sq)
    target = _parse_square(to_sq)
    move = chess.Move(origin, target, promotion=_promotion_for(board, origin, target, promotion))
    if not board.is_legal(move):
        raise IllegalMove(f"Illegal move: {from_sq}{to_sq}{promotion or ''}")

    san = board.san(move)
    new_board = board.copy()
    new_board.push(move)
    return new_board, san


def terminal_result(board: chess.Board) -> GameResult:
    """Checkmate, stalemate and drawn positions (claimable draws included)."""
    outcome = board.outcome(claim_draw=True)
    if outcome is None:
        return GameResult.IN_PROGRESS
    if outcome.winner is None:
        return GameResult.DRAW
    return GameResult.WHITE_WINS if outcome.winner == chess.WHITE else GameResult.BLACK_WINS
