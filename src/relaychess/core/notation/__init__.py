"""Notation package: PGN parsing/serialization and the snapshot codec."""

from relaychess.core.notation.codec import decode_game, encode_game, history_sans
from relaychess.core.notation.models import DecodedGame, ParsedPgn, PgnMove
from relaychess.core.notation.pgn import (
    SEVEN_TAG_ROSTER,
    build_pgn,
    game_result_from_pgn,
    ordered_headers,
    parse_pgn,
    parse_pgn_game,
    pgn_movetext_from_sans,
    pgn_result_token,
)

__all__ = [
    "SEVEN_TAG_ROSTER",
    "DecodedGame",
    "PgnMove",
    "ParsedPgn",
    "build_pgn",
    "decode_game",
    "encode_game",
    "game_result_from_pgn",
    "history_sans",
    "ordered_headers",
    "parse_pgn",
    "parse_pgn_game",
    "pgn_movetext_from_sans",
    "pgn_result_token",
]
