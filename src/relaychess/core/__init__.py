"""Core domain layer: enums, errors, notation codec, legality oracle.

Quick start::

    from relaychess.core import apply_move, decode_game, encode_game, initial_board

    board, san = apply_move(initial_board(), "e2", "e4")
    text = encode_game(board, {"White": "alice", "Black": "bob"})
    assert decode_game(text).moves == ["e4"]
"""

from relaychess.core.colors import ColorAssignment, ColorScheme, resolve_colors
from relaychess.core.enums import ChallengeStatus, Color, ColorPreference, GameResult
from relaychess.core.errors import (
    BroadcastError,
    BroadcastTimeout,
    DecodeFailure,
    GameAlreadyOver,
    IllegalMove,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    NotYourTurn,
    Outcome,
    QueryFailed,
    RelayChessError,
    SigningFailed,
    StaleSnapshot,
    SubmissionInFlight,
)
from relaychess.core.ids import declined_id, generate_game_id
from relaychess.core.notation import decode_game, encode_game
from relaychess.core.rules import apply_move, initial_board, terminal_result

__all__ = [
    # Enums
    "ChallengeStatus",
    "Color",
    "ColorPreference",
    "GameResult",
    # Errors
    "BroadcastError",
    "BroadcastTimeout",
    "DecodeFailure",
    "GameAlreadyOver",
    "IllegalMove",
    "NotAuthenticated",
    "NotAuthorized",
    "NotFound",
    "NotYourTurn",
    "Outcome",
    "QueryFailed",
    "RelayChessError",
    "SigningFailed",
    "StaleSnapshot",
    "SubmissionInFlight",
    # Identifiers / colors
    "ColorAssignment",
    "ColorScheme",
    "declined_id",
    "generate_game_id",
    "resolve_colors",
    # Notation / rules
    "apply_move",
    "decode_game",
    "encode_game",
    "initial_board",
    "terminal_result",
]
