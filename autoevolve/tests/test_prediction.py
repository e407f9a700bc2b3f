"""Tests for prediction.py"""

import pytest

from autoevolve import archetypes as A
from autoevolve.classifier import classify
from autoevolve.config import PredictionCalibration
from autoevolve.errors import PredictionRejected
from autoevolve.features import extract
from autoevolve.models import EvaluationResult, FeatureSignature, QuadrantProfile, TemporalFlow
from autoevolve.moves import extract_moves
from autoevolve.prediction import (
    DrawResolver,
    DrawResolvers,
    evaluation_prediction,
    predict,
    trajectory_prediction,
    trajectory_score,
    win_probability,
)
from autoevolve.tests.conftest import KINGSIDE_BUILDUP_PGN

CAL = PredictionCalibration()
NO_DRAWS = DrawResolvers(DrawResolver(0.0), DrawResolver(0.0))


def kingside_signature() -> FeatureSignature:
    return FeatureSignature(
        aggression=0.1,
        quadrant_profile=QuadrantProfile(kingside_white=40, queenside_white=5),
        temporal_flow=TemporalFlow(volatility=5),
        white_energy=30,
        black_energy=10,
        plies=30,
    )


def test_win_probability_shape():
    assert win_probability(0, CAL.logistic_k) == 50
    assert win_probability(100, CAL.logistic_k) > 50 > win_probability(-100, CAL.logistic_k)
    assert win_probability(1e9, CAL.logistic_k) == pytest.approx(100)
    assert win_probability(-1e9, CAL.logistic_k) == pytest.approx(0)


def test_kingside_dominance_predicts_white_win():
    """Kingside-heavy signature, White ahead in space: confident white win."""
    sig = kingside_signature()
    archetype = classify(sig, sig.plies)
    assert archetype == A.KINGSIDE_ATTACK

    assert trajectory_score(sig, archetype, CAL) == pytest.approx(69.8)
    pred = trajectory_prediction(sig, archetype, CAL, DrawResolver.seeded(CAL.draw_bias, 1))
    assert pred.outcome == "white_wins"
    assert pred.confidence >= 60
    assert pred.confidence == pytest.approx(77.3)


def test_kingside_buildup_game_from_moves_to_prediction():
    """A real 45-ply White win, kingside-heavy: extract, classify, predict."""
    moves = extract_moves(KINGSIDE_BUILDUP_PGN)
    assert len(moves) == 45

    sig = extract(moves, 45)
    assert sig.quadrant_profile.kingside_white == 30
    assert sig.quadrant_profile.queenside_black == 15
    archetype = classify(sig, sig.plies)
    assert archetype == A.KINGSIDE_ATTACK

    prediction = predict(sig, archetype, EvaluationResult(score=250), CAL,
                         DrawResolvers.create(CAL.draw_bias, 5), game_id="buildup")
    assert trajectory_score(sig, archetype, CAL) == pytest.approx(54.8)
    assert prediction.trajectory.outcome == "white_wins"
    assert prediction.trajectory.confidence > 60
    assert prediction.trajectory.confidence == pytest.approx(62.3)
    assert prediction.evaluation.outcome == "white_wins"


def test_black_favored_by_space_and_momentum():
    sig = FeatureSignature(
        temporal_flow=TemporalFlow(white_phases=(40, 20, 10), black_phases=(20, 60, 90)),
        white_energy=5,
        black_energy=30,
        plies=40,
    )
    pred = trajectory_prediction(sig, A.OPEN_TACTICAL, CAL, DrawResolver.seeded(0.0, 1))
    assert pred.outcome == "black_wins"


def test_trajectory_confidence_is_capped():
    sig = FeatureSignature(white_energy=60, black_energy=0, plies=40,
                           temporal_flow=TemporalFlow(white_phases=(0, 0, 100)))
    pred = trajectory_prediction(sig, A.ENDGAME_TECHNIQUE, CAL, DrawResolver(0.0))
    assert pred.confidence == CAL.trajectory_confidence_cap


def test_forced_mate_short_circuits():
    resolver = DrawResolver.seeded(CAL.draw_bias, 3)
    white = EvaluationResult(score=None, is_forced_mate=True, mate_distance=4, source_tag="authoritative")
    black = EvaluationResult(score=None, is_forced_mate=True, mate_distance=-3, source_tag="authoritative")
    assert evaluation_prediction(white, CAL, resolver).outcome == "white_wins"
    assert evaluation_prediction(white, CAL, resolver).confidence == 99
    assert evaluation_prediction(black, CAL, resolver).outcome == "black_wins"


def test_clear_scores_follow_the_sign():
    resolver = DrawResolver.seeded(CAL.draw_bias, 3)
    strong = evaluation_prediction(EvaluationResult(score=300), CAL, resolver)
    assert strong.outcome == "white_wins"
    assert strong.confidence == CAL.evaluation_confidence_cap

    moderate = evaluation_prediction(EvaluationResult(score=-150), CAL, resolver)
    assert moderate.outcome == "black_wins"
    assert moderate.confidence == pytest.approx(76.9, abs=0.2)


def test_near_even_score_uses_draw_resolver():
    even = EvaluationResult(score=0)
    always_draw = evaluation_prediction(even, CAL, DrawResolver(1.0))
    assert always_draw.outcome == "draw"
    assert always_draw.confidence == 60.0

    never_draw = evaluation_prediction(even, CAL, DrawResolver(0.0))
    assert never_draw.outcome == "white_wins"
    assert never_draw.confidence == 52.0


def test_missing_evaluation_is_rejected():
    with pytest.raises(PredictionRejected):
        evaluation_prediction(EvaluationResult(score=None), CAL, DrawResolver(0.4), game_id="g1")
    with pytest.raises(PredictionRejected) as exc:
        predict(kingside_signature(), A.KINGSIDE_ATTACK, None, game_id="g2")
    assert exc.value.game_id == "g2"


def test_trajectory_ignores_evaluation():
    sig = kingside_signature()
    a = predict(sig, A.KINGSIDE_ATTACK, EvaluationResult(score=-400), resolvers=NO_DRAWS)
    b = predict(sig, A.KINGSIDE_ATTACK, EvaluationResult(score=400), resolvers=NO_DRAWS)
    assert a.trajectory == b.trajectory
    assert a.evaluation.outcome == "black_wins"
    assert a.is_divergent and not b.is_divergent


def test_near_even_trajectory_ignores_evaluation_draw_coin():
    sig = FeatureSignature(plies=8)
    assert trajectory_score(sig, A.OPEN_TACTICAL, CAL) == 50

    for seed in range(50):
        even = predict(sig, A.OPEN_TACTICAL, EvaluationResult(score=0),
                       resolvers=DrawResolvers.create(CAL.draw_bias, seed))
        decisive = predict(sig, A.OPEN_TACTICAL, EvaluationResult(score=900),
                           resolvers=DrawResolvers.create(CAL.draw_bias, seed))
        assert even.trajectory == decisive.trajectory, seed


def test_resolver_pair_streams_differ():
    resolvers = DrawResolvers.create(0.5, 21)
    trajectory = [resolvers.trajectory.resolve(True) for _ in range(30)]
    evaluation = [resolvers.evaluation.resolve(True) for _ in range(30)]
    assert trajectory != evaluation
    again = DrawResolvers.create(0.5, 21)
    assert trajectory == [again.trajectory.resolve(True) for _ in range(30)]


def test_evaluation_ignores_archetype():
    sig = kingside_signature()
    evaluation = EvaluationResult(score=250)
    results = {
        predict(sig, archetype, evaluation, resolvers=NO_DRAWS).evaluation
        for archetype in A.ARCHETYPES
    }
    assert len(results) == 1


def test_seeded_resolvers_agree():
    even = EvaluationResult(score=5)

    def outcomes(seed):
        resolver = DrawResolver.seeded(0.4, seed)
        return [evaluation_prediction(even, CAL, resolver).outcome for _ in range(20)]

    first = outcomes(11)
    assert first == outcomes(11)
    assert "draw" in first and "white_wins" in first
