"""
Feature Extractor

Derives the spatial (board-region activity) and temporal (phase intensity,
initiative volatility) signature of a game truncated at a cutoff ply.

All accumulators are non-negative magnitudes kept per side. Any balance
handed to consumers is the difference of two such magnitudes taken in the
same step, never a signed running total.
"""

import re

from autoevolve.models import FeatureSignature, QuadrantProfile, TemporalFlow

FLANK_QUANTUM = 3.0
CENTER_QUANTUM = 5.0
CENTER_SQUARES = {"d4", "e4", "d5", "e5"}
OPENING_LAST_PLY = 10
MIDDLEGAME_LAST_PLY = 25
PROFILE_CAP = 100.0
CAPTURE_MATERIAL_WEIGHT = 0.3

_SQUARE = re.compile(r"[a-h][1-8]")

WHITE, BLACK = 0, 1
KINGSIDE, QUEENSIDE, CENTER = 0, 1, 2


def region_of(san: str) -> int | None:
    """Board region a SAN move lands in, or None if no destination is readable."""
    if san.startswith("O-O-O"):
        return QUEENSIDE
    if san.startswith("O-O"):
        return KINGSIDE
    squares = _SQUARE.findall(san)
    if not squares:
        return None
    dest = squares[-1]
    if dest in CENTER_SQUARES:
        return CENTER
    return KINGSIDE if dest[0] >= "e" else QUEENSIDE


def phase_of(ply: int) -> int:
    """0 = opening, 1 = middlegame, 2 = endgame for a 1-based ply."""
    if ply <= OPENING_LAST_PLY:
        return 0
    if ply <= MIDDLEGAME_LAST_PLY:
        return 1
    return 2


def _differential(a: float, b: float) -> float:
    return min(PROFILE_CAP, max(0.0, a - b))


def extract(moves: list[str] | tuple[str, ...], cutoff_ply: int) -> FeatureSignature:
    """Feature signature of ``moves[:cutoff_ply]``. Pure and deterministic."""
    walked = list(moves[: max(0, cutoff_ply)])
    plies = len(walked)
    if plies == 0:
        return FeatureSignature()

    region_energy = [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
    phase_energy = [[0.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
    captures = [0, 0]
    checks = 0
    piece_moves = 0
    development = [0, 0]
    initiative_holder = None
    initiative_swings = 0.0

    for idx, san in enumerate(walked):
        side = WHITE if idx % 2 == 0 else BLACK
        is_capture = "x" in san
        is_check = "+" in san or "#" in san
        weight = 1 + int(is_capture) + 2 * int(is_check)

        region = region_of(san)
        if region is not None:
            region_energy[side][region] += CENTER_QUANTUM if region == CENTER else FLANK_QUANTUM

        phase = phase_of(idx + 1)
        phase_energy[side][phase] += weight

        if is_capture:
            captures[side] += 1
        if is_check:
            checks += 1
        if san[0] in "KQRBN":
            piece_moves += 1
        if phase == 0 and (san[0] in "NB" or san.startswith("O-O")):
            development[side] += 1

        if is_capture or is_check:
            if initiative_holder is not None and initiative_holder != side:
                initiative_swings += weight
            initiative_holder = side

    phase_lengths = (
        OPENING_LAST_PLY,
        MIDDLEGAME_LAST_PLY - OPENING_LAST_PLY,
        max(1, plies - MIDDLEGAME_LAST_PLY),
    )

    def intensities(side: int) -> tuple[float, float, float]:
        return tuple(phase_energy[side][p] / phase_lengths[p] * 100 for p in range(3))

    w, b = region_energy
    quadrant = QuadrantProfile(
        kingside_white=_differential(w[KINGSIDE], b[KINGSIDE]),
        kingside_black=_differential(b[KINGSIDE], w[KINGSIDE]),
        queenside_white=_differential(w[QUEENSIDE], b[QUEENSIDE]),
        queenside_black=_differential(b[QUEENSIDE], w[QUEENSIDE]),
        center=min(PROFILE_CAP, abs(w[CENTER] - b[CENTER])),
    )
    temporal = TemporalFlow(
        white_phases=intensities(WHITE),
        black_phases=intensities(BLACK),
        volatility=min(100.0, initiative_swings / plies * 50),
    )

    developed = development[WHITE] + development[BLACK]
    return FeatureSignature(
        aggression=(captures[WHITE] + captures[BLACK] + 2 * checks) / plies,
        complexity=piece_moves / plies,
        tempo=development[WHITE] / developed if developed else 0.5,
        material_balance=(captures[WHITE] - captures[BLACK]) * CAPTURE_MATERIAL_WEIGHT,
        quadrant_profile=quadrant,
        temporal_flow=temporal,
        white_energy=sum(w),
        black_energy=sum(b),
        plies=plies,
    )
