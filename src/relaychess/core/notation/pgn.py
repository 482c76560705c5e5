"""PGN parsing and serialization helpers."""

from __future__ import annotations

import re

from relaychess.core.enums import GameResult
from relaychess.core.errors import DecodeFailure
from relaychess.core.notation.models import ParsedPgn, PgnMove

SEVEN_TAG_ROSTER = ("Event", "Site", "Date", "Round", "White", "Black", "Result")

_RESULT_BY_TOKEN = {
    "1-0": GameResult.WHITE_WINS,
    "0-1": GameResult.BLACK_WINS,
    "1/2-1/2": GameResult.DRAW,
    "*": GameResult.IN_PROGRESS,
}
_TOKEN_BY_RESULT = {result: token for token, result in _RESULT_BY_TOKEN.items()}

_HEADER_RE = re.compile(r'^\[(\w+)\s+"((?:[^"\\]|\\.)*)"\]$')
_HEADER_ESCAPE_RE = re.compile(r"\\(.)")

# One movetext lexeme per match; whitespace between matches is skipped.
_MOVETEXT_RE = re.compile(
    r"""
      \{(?P<brace>[^}]*)\}?
    | ;(?P<line>[^\n]*)
    | (?P<open>\()
    | (?P<close>\))
    | (?P<word>[^\s{};()]+)
    """,
    re.VERBOSE,
)
_MOVE_NUMBER_RE = re.compile(r"^\d+\.+")
_NAG_RE = re.compile(r"^\$\d+$")


def pgn_result_token(result: GameResult) -> str:
    """Convert :class:`GameResult` to a PGN result token."""
    return _TOKEN_BY_RESULT.get(result, "*")


def game_result_from_pgn(token: str | None) -> GameResult:
    """Convert PGN result token to :class:`GameResult`."""
    if token is None:
        return GameResult.IN_PROGRESS
    return _RESULT_BY_TOKEN.get(token, GameResult.IN_PROGRESS)


def pgn_movetext_from_sans(sans: list[str], result_token: str) -> str:
    """Numbered movetext, e.g. ``1. e4 e5 2. Nf3 *``."""
    words: list[str] = []
    for index in range(0, len(sans), 2):
        words.append(f"{index // 2 + 1}.")
        words.extend(sans[index : index + 2])
    words.append(result_token)
    return " ".join(words)


def ordered_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return *headers* with the Seven Tag Roster first, in roster order.

    Missing roster tags are filled with ``?`` (``*`` for Result); any other
    non-empty header follows in its original order.
    """
    ordered = {
        tag: headers.get(tag) or ("*" if tag == "Result" else "?") for tag in SEVEN_TAG_ROSTER
    }
    ordered.update(
        (key, value) for key, value in headers.items() if key not in ordered and value
    )
    return ordered


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_pgn(headers: dict[str, str], sans: list[str], result_token: str) -> str:
    """Build a single-game PGN document."""
    header_block = "\n".join(f'[{key} "{_escape(value)}"]' for key, value in headers.items())
    return f"{header_block}\n\n{pgn_movetext_from_sans(sans, result_token)}"


def _read_movetext(movetext: str) -> tuple[list[PgnMove], str | None]:
    """Mainline moves (with their comments) and the result token, if any."""
    moves: list[PgnMove] = []
    result_token: str | None = None
    depth = 0

    for match in _MOVETEXT_RE.finditer(movetext):
        kind = match.lastgroup
        if kind == "open":
            depth += 1
            continue
        if kind == "close":
            depth = max(0, depth - 1)
            continue
        if depth:
            continue

        if kind in ("brace", "line"):
            comment = " ".join(match.group(kind).split())
            if comment and moves:
                last = moves[-1]
                last.comment = f"{last.comment} {comment}" if last.comment else comment
            continue

        word = match.group("word")
        if word in _RESULT_BY_TOKEN:
            result_token = word
            continue
        if _NAG_RE.match(word):
            continue
        # "1.", "3...", and glued forms such as "1.e4" or "3...Nf6".
        san = _MOVE_NUMBER_RE.sub("", word)
        if san:
            moves.append(PgnMove(san=san))

    return moves, result_token


def parse_pgn_game(pgn_text: str) -> ParsedPgn:
    """Parse a single PGN game into structured headers/moves/result.

    Raises:
        DecodeFailure: if a header line is malformed.
    """
    headers: dict[str, str] = {}
    movetext: list[str] = []

    for raw_line in pgn_text.splitlines():
        line = raw_line.strip()
        if not movetext and line.startswith("["):
            match = _HEADER_RE.match(line)
            if match is None:
                raise DecodeFailure(f"Invalid PGN header line: {line}")
            key, raw_value = match.groups()
            headers[key] = _HEADER_ESCAPE_RE.sub(r"\1", raw_value)
        elif line and not line.startswith("%"):
            movetext.append(line)

    moves, result_token = _read_movetext("\n".join(movetext))
    if result_token is None:
        header_result = headers.get("Result")
        result_token = header_result if header_result in _RESULT_BY_TOKEN else "*"
    return ParsedPgn(headers=headers, moves=moves, result_token=result_token)


def parse_pgn(pgn_text: str) -> tuple[dict[str, str], list[str], str]:
    """Parse PGN returning headers + SAN mainline + result token."""
    parsed = parse_pgn_game(pgn_text)
    return parsed.headers, [move.san for move in parsed.moves], parsed.result_token
