"""Move-list extraction from game text, backed by python-chess."""

import io

import chess
import chess.pgn

from autoevolve.errors import MalformedRecord


def extract_moves(move_text: str) -> list[str]:
    """Return the SAN mainline of a PGN game, comments and variations stripped.

    Raises MalformedRecord when the text holds no game or an illegal move.
    """
    game = chess.pgn.read_game(io.StringIO(move_text))
    if game is None:
        raise MalformedRecord("no game in move text")
    if game.errors:
        raise MalformedRecord(f"unparseable moves: {game.errors[0]}")

    board = game.board()
    sans = []
    for move in game.mainline_moves():
        sans.append(board.san(move))
        board.push(move)
    return sans


def position_at(moves: list[str] | tuple[str, ...], ply: int) -> str | None:
    """FEN after the first ``ply`` half-moves, or None if the line cannot be replayed."""
    board = chess.Board()
    try:
        for san in moves[:ply]:
            board.push_san(san)
    except ValueError:
        return None
    return board.fen()
