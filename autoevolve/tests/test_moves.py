"""Tests for moves.py"""

import chess
import pytest

from autoevolve.errors import MalformedRecord
from autoevolve.moves import extract_moves, position_at
from autoevolve.tests.conftest import IMMORTAL_GAME_PGN, OPERA_GAME_PGN


def test_extract_moves_reads_full_mainline():
    moves = extract_moves(OPERA_GAME_PGN)
    assert len(moves) == 33
    assert moves[:3] == ["e4", "e5", "Nf3"]
    assert moves[22] == "O-O-O"
    assert moves[-1] == "Rd8#"


def test_extract_moves_immortal_game_length():
    assert len(extract_moves(IMMORTAL_GAME_PGN)) == 45


def test_extract_moves_strips_comments_and_variations():
    moves = extract_moves("1. e4 {best by test} e5 (1... c5 2. Nf3) 2. Nf3 *")
    assert moves == ["e4", "e5", "Nf3"]


def test_extract_moves_rejects_illegal_move():
    with pytest.raises(MalformedRecord):
        extract_moves("1. e4 e4 2. Nf3 *")


def test_extract_moves_rejects_empty_text():
    with pytest.raises(MalformedRecord):
        extract_moves("")


def test_position_at_zero_is_start_position(opera_moves):
    assert position_at(opera_moves, 0) == chess.Board().fen()


def test_position_at_replays_prefix():
    board = chess.Board()
    for san in ["e4", "e5", "Nf3"]:
        board.push_san(san)
    assert position_at(["e4", "e5", "Nf3", "Nc6"], 3) == board.fen()


def test_position_at_unreplayable_line_returns_none():
    assert position_at(["e4", "e4"], 2) is None
