"""Tests for evolution_state.py"""

from datetime import datetime, timezone

from autoevolve.evolution_state import next_state, summarize
from autoevolve.models import PredictionRecord

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


def make_record(game_id, archetype="kingside_attack", tier="verified",
                trajectory_correct=True, evaluation_correct=False) -> PredictionRecord:
    return PredictionRecord(
        game_id=game_id,
        cutoff_ply=32,
        trajectory_prediction="white_wins",
        evaluation_prediction="black_wins",
        archetype=archetype,
        trajectory_confidence=70.0,
        evaluation_confidence=60.0,
        actual_outcome="white_wins",
        trajectory_correct=trajectory_correct,
        evaluation_correct=evaluation_correct,
        source_tag="authoritative" if tier == "verified" else "heuristic",
        quality_tier=tier,
    )


def test_first_state_from_nothing():
    state = next_state(None, [make_record("a"), make_record("b", trajectory_correct=False)], NOW)
    assert state.generation == 1
    assert state.total_predictions == 2
    assert state.fitness_score == 0.5
    assert state.per_archetype_stats["kingside_attack"] == {
        "total": 2, "trajectory_correct": 1, "evaluation_correct": 0,
    }
    assert state.per_tier_stats["verified"]["total"] == 2
    assert state.last_updated_at == NOW


def test_generation_and_totals_are_monotonic():
    state = None
    history = []
    batches = [
        [make_record("a")],
        [],
        [make_record("b", archetype="open_tactical", tier="heuristic_fallback"),
         make_record("c", trajectory_correct=False, evaluation_correct=True)],
    ]
    for batch in batches:
        state = next_state(state, batch, NOW)
        history.append(state)

    assert [s.generation for s in history] == [1, 2, 3]
    totals = [s.total_predictions for s in history]
    assert totals == sorted(totals) == [1, 1, 3]
    assert history[-1].per_tier_stats["heuristic_fallback"]["total"] == 1
    assert history[-1].fitness_score == round(2 / 3, 4)


def test_empty_batch_keeps_fitness():
    first = next_state(None, [make_record("a", trajectory_correct=False)], NOW)
    second = next_state(first, [], NOW)
    assert second.generation == 2
    assert second.fitness_score == first.fitness_score == 0.0


def test_previous_state_is_not_mutated():
    first = next_state(None, [make_record("a")], NOW)
    next_state(first, [make_record("b")], NOW)
    assert first.per_archetype_stats["kingside_attack"]["total"] == 1
    assert first.total_predictions == 1


def test_summarize():
    state = next_state(None, [make_record("a"), make_record("b", evaluation_correct=True)], NOW)
    summary = summarize(state)
    assert summary["generation"] == 1
    assert summary["totalPredictions"] == 2
    assert summary["trajectoryAccuracy"] == 1.0
    assert summary["evaluationAccuracy"] == 0.5
    assert summary["perArchetype"]["kingside_attack"]["evaluationAccuracy"] == 0.5
    assert summary["lastUpdatedAt"] == NOW.isoformat()
