"""Pytest configuration and shared fixtures."""

import os

import pytest

from autoevolve.models import GameRecord
from autoevolve.moves import extract_moves

OPERA_GAME_PGN = """[Event "Paris"]
[Site "Paris FRA"]
[Date "1858.??.??"]
[White "Paul Morphy"]
[Black "Duke Karl / Count Isouard"]
[Result "1-0"]

1. e4 e5 2. Nf3 d6 3. d4 Bg4 4. dxe5 Bxf3 5. Qxf3 dxe5 6. Bc4 Nf6 7. Qb3 Qe7
8. Nc3 c6 9. Bg5 b5 10. Nxb5 cxb5 11. Bxb5+ Nbd7 12. O-O-O Rd8 13. Rxd7 Rxd7
14. Rd1 Qe6 15. Bxd7+ Nxd7 16. Qb8+ Nxb8 17. Rd8# 1-0
"""

IMMORTAL_GAME_PGN = """[Event "London"]
[White "Adolf Anderssen"]
[Black "Lionel Kieseritzky"]
[Result "1-0"]

1. e4 e5 2. f4 exf4 3. Bc4 Qh4+ 4. Kf1 b5 5. Bxb5 Nf6 6. Nf3 Qh6 7. d3 Nh5
8. Nh4 Qg5 9. Nf5 c6 10. g4 Nf6 11. Rg1 cxb5 12. h4 Qg6 13. h5 Qg5 14. Qf3 Ng8
15. Bxf4 Qf6 16. Nc3 Bc5 17. Nd5 Qxb2 18. Bd6 Bxg1 19. e5 Qxa1+ 20. Ke2 Na6
21. Nxg7+ Kd8 22. Qf6+ Nxf6 23. Be7# 1-0
"""

SCHOLARS_MATE_PGN = "1. e4 e5 2. Qh5 Nc6 3. Bc4 Nf6 4. Qxf7# 1-0"

# 45 quiet plies: White builds on the kingside, Black spreads over the queenside.
KINGSIDE_BUILDUP_PGN = """[Result "1-0"]

1. g3 d5 2. Bg2 Nf6 3. Nf3 c6 4. O-O e5 5. b3 Be7 6. Bb2 O-O 7. c4 Nbd7
8. Nc3 a6 9. e3 b5 10. h3 Bb7 11. Kh2 Qc7 12. Rg1 d4 13. a3 Rac8 14. Rb1 Rfe8
15. Qc2 h6 16. Ne1 Kh8 17. f4 Nd5 18. g4 a5 19. Nf3 b4 20. h4 Qb8 21. g5 N7b6
22. Bh1 Ba8 23. Rg2 1-0
"""


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live database (skipped in CI by default)"
    )


os.environ.setdefault(
    "DATABASE_URL", "postgresql://localhost:5432/chess_evolution?user=postgres&password=postgres"
)


@pytest.fixture
def opera_moves() -> tuple[str, ...]:
    return tuple(extract_moves(OPERA_GAME_PGN))


@pytest.fixture
def immortal_moves() -> tuple[str, ...]:
    return tuple(extract_moves(IMMORTAL_GAME_PGN))


@pytest.fixture
def make_game(opera_moves):
    """Factory for GameRecords; moves default to the Opera Game."""

    def _make(game_id: str, winner: str = "white", moves=None, **kwargs) -> GameRecord:
        defaults = dict(
            id=game_id,
            move_text=OPERA_GAME_PGN,
            declared_winner=winner,
            provider_tag="lichess",
            moves=tuple(moves) if moves is not None else opera_moves,
            white_name="Morphy",
            black_name="Allies",
            white_rating=2600,
            black_rating=2200,
            time_control="classical",
        )
        defaults.update(kwargs)
        return GameRecord(**defaults)

    return _make
