"""Tests for the PGN helpers and the snapshot codec."""

import chess
import pytest

from relaychess.core.enums import GameResult
from relaychess.core.errors import DecodeFailure
from relaychess.core.notation import (
    SEVEN_TAG_ROSTER,
    ParsedPgn,
    build_pgn,
    decode_game,
    encode_game,
    game_result_from_pgn,
    history_sans,
    ordered_headers,
    parse_pgn,
    parse_pgn_game,
    pgn_result_token,
)


def _board_after(*sans: str) -> chess.Board:
    board = chess.Board()
    for san in sans:
        board.push_san(san)
    return board


class TestPGN:
    def test_build_and_parse_roundtrip(self) -> None:
        headers = {
            "Event": "Relay Game",
            "Site": "nostr",
            "Date": "2026.01.01",
            "Round": "?",
            "White": "alice",
            "Black": "bob",
            "Result": "1-0",
        }
        pgn_text = build_pgn(headers=headers, sans=["e4", "e5", "Qh5"], result_token="1-0")
        parsed_headers, parsed_sans, result_token = parse_pgn(pgn_text)

        assert parsed_headers["Event"] == "Relay Game"
        assert parsed_headers["White"] == "alice"
        assert parsed_sans == ["e4", "e5", "Qh5"]
        assert result_token == "1-0"

    def test_parse_pgn_ignores_comments_and_variations(self) -> None:
        pgn_text = """
[Event "Variation Test"]
[Result "*"]

1. e4 {main} (1. d4 d5) e5 2. Nf3 $1 Nc6 *
"""
        _headers, sans, result_token = parse_pgn(pgn_text)
        assert sans == ["e4", "e5", "Nf3", "Nc6"]
        assert result_token == "*"

    def test_parse_pgn_game_keeps_mainline_comments(self) -> None:
        pgn_text = """
[Event "Comments"]
[Result "*"]

1. e4 {Best by test} e5 2. Nf3 ; Developing move
*
"""
        parsed = parse_pgn_game(pgn_text)

        assert isinstance(parsed, ParsedPgn)
        assert [move.san for move in parsed.moves] == ["e4", "e5", "Nf3"]
        assert parsed.moves[0].comment == "Best by test"
        assert parsed.moves[1].comment == ""
        assert parsed.moves[2].comment == "Developing move"

    def test_parse_pgn_uses_header_result_when_movetext_omits_it(self) -> None:
        pgn_text = """
[Event "NoResultToken"]
[Result "0-1"]

1. d4 d5
"""
        headers, sans, result_token = parse_pgn(pgn_text)
        assert headers["Result"] == "0-1"
        assert sans == ["d4", "d5"]
        assert result_token == "0-1"

    def test_move_numbers_glued_to_san(self) -> None:
        _headers, sans, _token = parse_pgn("1.e4 e5 2.Nf3 2...Nc6 *")
        assert sans == ["e4", "e5", "Nf3", "Nc6"]

    def test_header_escapes_roundtrip(self) -> None:
        pgn_text = build_pgn({"Event": 'Say "hi" \\ bye'}, [], "*")
        headers, _sans, _token = parse_pgn(pgn_text)
        assert headers["Event"] == 'Say "hi" \\ bye'

    def test_malformed_header_raises(self) -> None:
        with pytest.raises(DecodeFailure, match="header"):
            parse_pgn_game('[Event "unterminated]\n\n1. e4 *')

    def test_result_token_mapping(self) -> None:
        assert pgn_result_token(GameResult.WHITE_WINS) == "1-0"
        assert pgn_result_token(GameResult.BLACK_WINS) == "0-1"
        assert pgn_result_token(GameResult.DRAW) == "1/2-1/2"
        assert pgn_result_token(GameResult.IN_PROGRESS) == "*"
        assert game_result_from_pgn("1-0") == GameResult.WHITE_WINS
        assert game_result_from_pgn("0-1") == GameResult.BLACK_WINS
        assert game_result_from_pgn("1/2-1/2") == GameResult.DRAW
        assert game_result_from_pgn("*") == GameResult.IN_PROGRESS
        assert game_result_from_pgn(None) == GameResult.IN_PROGRESS


class TestOrderedHeaders:
    def test_roster_first_and_filled(self) -> None:
        ordered = ordered_headers({"TimeControl": "300", "White": "alice"})
        assert tuple(ordered)[:7] == SEVEN_TAG_ROSTER
        assert ordered["Event"] == "?"
        assert ordered["Result"] == "*"
        assert ordered["White"] == "alice"
        assert list(ordered)[-1] == "TimeControl"

    def test_empty_extra_headers_dropped(self) -> None:
        ordered = ordered_headers({"Annotator": ""})
        assert "Annotator" not in ordered


class TestDecodeGame:
    def test_star_is_initial_position(self) -> None:
        decoded = decode_game("*")
        assert decoded.board.fen() == chess.STARTING_FEN
        assert decoded.moves == []
        assert decoded.result == GameResult.IN_PROGRESS

    def test_blank_is_initial_position(self) -> None:
        assert decode_game("  \n").ply_count == 0

    def test_replays_mainline(self) -> None:
        decoded = decode_game('[White "a"]\n[Black "b"]\n\n1. e4 e5 2. Nf3 *')
        assert decoded.moves == ["e4", "e5", "Nf3"]
        assert decoded.board.turn == chess.BLACK
        assert decoded.headers["White"] == "a"

    def test_result_from_header(self) -> None:
        decoded = decode_game('[Result "0-1"]\n\n1. e4 e5 0-1')
        assert decoded.result == GameResult.BLACK_WINS

    def test_illegal_san_raises(self) -> None:
        with pytest.raises(DecodeFailure, match="ply 2"):
            decode_game("1. e4 e4 *")

    def test_garbage_raises(self) -> None:
        with pytest.raises(DecodeFailure):
            decode_game("this is not chess")

    def test_setup_fen(self) -> None:
        fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
        decoded = decode_game(f'[SetUp "1"]\n[FEN "{fen}"]\n\n1. e4 *')
        assert decoded.moves == ["e4"]
        assert decoded.board.root().fen() == fen

    def test_bad_fen_raises(self) -> None:
        with pytest.raises(DecodeFailure, match="FEN"):
            decode_game('[SetUp "1"]\n[FEN "nonsense"]\n\n*')


class TestEncodeGame:
    def test_encodes_headers_and_history(self) -> None:
        board = _board_after("e4", "e5", "Nf3")
        text = encode_game(board, {"White": "alice", "Black": "bob", "TimeControl": "300+5"})

        lines = text.splitlines()
        assert lines[0] == '[Event "?"]'
        assert '[White "alice"]' in lines
        assert '[Result "*"]' in lines
        assert lines.index('[Result "*"]') < lines.index('[TimeControl "300+5"]')
        assert lines[-1] == "1. e4 e5 2. Nf3 *"

    def test_result_written_twice(self) -> None:
        board = _board_after("f3", "e5", "g4", "Qh4#")
        text = encode_game(board, {}, GameResult.BLACK_WINS)
        assert '[Result "0-1"]' in text
        assert text.endswith("Qh4# 0-1")

    def test_decode_of_encode_keeps_history(self) -> None:
        board = _board_after("d4", "d5", "c4", "e6")
        decoded = decode_game(encode_game(board, {"White": "w", "Black": "b"}))
        assert decoded.moves == ["d4", "d5", "c4", "e6"]
        assert decoded.board.fen() == board.fen()

    def test_non_standard_start_adds_setup(self) -> None:
        fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
        board = chess.Board(fen)
        board.push_san("e4")
        text = encode_game(board, {})
        assert '[SetUp "1"]' in text
        assert f'[FEN "{fen}"]' in text

    def test_history_sans(self) -> None:
        assert history_sans(_board_after("e4", "c5", "Nf3")) == ["e4", "c5", "Nf3"]
