"""Snapshot codec: full PGN text <-> replayed python-chess board."""

from __future__ import annotations

import chess

from relaychess.core.enums import GameResult
from relaychess.core.errors import DecodeFailure
from relaychess.core.notation.models import DecodedGame
from relaychess.core.notation.pgn import (
    build_pgn,
    game_result_from_pgn,
    ordered_headers,
    parse_pgn_game,
    pgn_result_token,
)


def _start_board(headers: dict[str, str]) -> chess.Board:
    fen = headers.get("FEN")
    if headers.get("SetUp") != "1" or not fen:
        return chess.Board()
    try:
        return chess.Board(fen)
    except ValueError as exc:
        raise DecodeFailure(f"Invalid FEN header: {fen!r}") from exc


def decode_game(text: str) -> DecodedGame:
    """Decode snapshot text into headers, board and SAN history.

    An empty text or a bare ``*`` decodes to the starting position.

    Raises:
        DecodeFailure: on a malformed header or an illegal/ambiguous SAN.
    """
    stripped = text.strip()
    if not stripped or stripped == "*":
        return DecodedGame(headers={}, board=chess.Board())

    parsed = parse_pgn_game(text)
    board = _start_board(parsed.headers)
    sans: list[str] = []
    for ply, pgn_move in enumerate(parsed.moves):
        try:
            move = board.parse_san(pgn_move.san)
        except ValueError as exc:
            raise DecodeFailure(f"Illegal move at ply {ply + 1}: {pgn_move.san}") from exc
        sans.append(board.san(move))
        board.push(move)

    return DecodedGame(
        headers=parsed.headers,
        board=board,
        moves=sans,
        result=game_result_from_pgn(parsed.result_token),
    )


def history_sans(board: chess.Board) -> list[str]:
    """SAN list of every move on *board*'s stack."""
    replay = board.root()
    sans: list[str] = []
    for move in board.move_stack:
        sans.append(replay.san(move))
        replay.push(move)
    return sans


def encode_game(
    board: chess.Board,
    headers: dict[str, str],
    result: GameResult = GameResult.IN_PROGRESS,
) -> str:
    """Encode the full history of *board* plus headers as PGN text."""
    token = pgn_result_token(result)
    merged = dict(headers)
    merged["Result"] = token
    root = board.root()
    if root.fen() != chess.STARTING_FEN:
        merged["SetUp"] = "1"
        merged["FEN"] = root.fen()
    return build_pgn(ordered_headers(merged), history_sans(board), token)
