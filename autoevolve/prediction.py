"""
Divergent Prediction Engine

Two outcome predictions per game that are allowed to disagree:

- trajectory: archetype prior + spatial dominance + momentum. Never looks at
  the evaluation score.
- evaluation: logistic win probability of the evaluation score. Never looks
  at the archetype.

Near-even scores become a draw only with probability ``draw_bias``. That coin
is a DrawResolver with its own seedable RNG, so the rest of the path stays
deterministic. Each half flips its own coin (DrawResolvers), so whether the
evaluation side needed a draw decision never shifts the trajectory's stream.
"""

import math
import random
from dataclasses import dataclass

from autoevolve.archetypes import get_archetype
from autoevolve.config import PredictionCalibration
from autoevolve.errors import PredictionRejected
from autoevolve.models import (
    DivergentPrediction,
    EvaluationResult,
    FeatureSignature,
    Outcome,
    Prediction,
)


class DrawResolver:
    """Decides whether a near-even prediction is called a draw."""

    def __init__(self, draw_bias: float, rng: random.Random | None = None):
        self.draw_bias = draw_bias
        self.rng = rng or random.Random()

    @classmethod
    def seeded(cls, draw_bias: float, seed: int | None) -> "DrawResolver":
        return cls(draw_bias, random.Random(seed))

    def resolve(self, white_leaning: bool) -> Outcome:
        if self.rng.random() < self.draw_bias:
            return "draw"
        return "white_wins" if white_leaning else "black_wins"


@dataclass
class DrawResolvers:
    trajectory: DrawResolver
    evaluation: DrawResolver

    @classmethod
    def create(cls, draw_bias: float, seed: int | None = None) -> "DrawResolvers":
        """Independent streams; seeded from ``seed`` and ``seed + 1`` when given."""
        return cls(
            DrawResolver.seeded(draw_bias, seed),
            DrawResolver.seeded(draw_bias, None if seed is None else seed + 1),
        )


def win_probability(score: float, k: float) -> float:
    """White's win probability (0-100) for a centipawn score."""
    exponent = max(-700.0, min(700.0, -k * score))
    return 50 + 50 * (2 / (1 + math.exp(exponent)) - 1)


def _late_phase(plies: int) -> int:
    if plies > 25:
        return 2
    if plies > 10:
        return 1
    return 0


def trajectory_score(signature: FeatureSignature, archetype: str, cal: PredictionCalibration) -> float:
    """White-centric 0-100 score from archetype, dominance and momentum."""
    arch = get_archetype(archetype)
    score = 50.0

    prior = (arch.historical_win_rate - 0.5) * cal.archetype_prior_scale
    if arch.favored_side == "white":
        score += prior
    elif arch.favored_side == "black":
        score -= prior

    spatial = signature.white_energy - signature.black_energy
    if spatial > cal.dominance_margin:
        score += cal.dominance_bonus
    elif spatial < -cal.dominance_margin:
        score -= cal.dominance_bonus

    late = _late_phase(signature.plies)
    if late:
        flow = signature.temporal_flow
        late_edge = flow.white_phases[late] - flow.black_phases[late]
        opening_edge = flow.white_phases[0] - flow.black_phases[0]
        momentum = (late_edge - opening_edge) * cal.momentum_weight
        score += max(-cal.momentum_cap, min(cal.momentum_cap, momentum))

    return max(0.0, min(100.0, score))


def trajectory_prediction(
    signature: FeatureSignature,
    archetype: str,
    cal: PredictionCalibration,
    resolver: DrawResolver,
) -> Prediction:
    score = trajectory_score(signature, archetype, cal)
    edge = abs(score - 50)
    confidence = min(
        cal.trajectory_confidence_cap,
        50 + edge + get_archetype(archetype).lookahead_confidence / 2,
    )
    if edge < cal.draw_band:
        outcome = resolver.resolve(score >= 50)
    else:
        outcome = "white_wins" if score > 50 else "black_wins"
    return Prediction(outcome, round(confidence, 1))


def evaluation_prediction(
    evaluation: EvaluationResult | None,
    cal: PredictionCalibration,
    resolver: DrawResolver,
    game_id: str | None = None,
) -> Prediction:
    """Prediction from the evaluation alone. Raises PredictionRejected on no data."""
    if evaluation is None or not evaluation.has_data:
        raise PredictionRejected(game_id, "no evaluation data")

    if evaluation.is_forced_mate and evaluation.mate_distance:
        outcome = "white_wins" if evaluation.mate_distance > 0 else "black_wins"
        return Prediction(outcome, cal.mate_confidence)

    p = win_probability(evaluation.score, cal.logistic_k)
    intensity = abs(2 * p - 100)
    side = "white_wins" if p >= 50 else "black_wins"

    if intensity > cal.moderate_intensity:
        return Prediction(side, round(min(cal.evaluation_confidence_cap, 50 + intensity), 1))

    outcome = resolver.resolve(p >= 50)
    if outcome == "draw":
        return Prediction("draw", round(50 + (cal.moderate_intensity - intensity), 1))
    return Prediction(outcome, 52.0)


def predict(
    signature: FeatureSignature,
    archetype: str,
    evaluation: EvaluationResult | None,
    cal: PredictionCalibration | None = None,
    resolvers: DrawResolvers | None = None,
    game_id: str | None = None,
) -> DivergentPrediction:
    """Both predictions; raises PredictionRejected when the evaluation has no data."""
    cal = cal or PredictionCalibration()
    resolvers = resolvers or DrawResolvers.create(cal.draw_bias)
    evaluation_side = evaluation_prediction(evaluation, cal, resolvers.evaluation, game_id)
    return DivergentPrediction(
        trajectory=trajectory_prediction(signature, archetype, cal, resolvers.trajectory),
        evaluation=evaluation_side,
    )
