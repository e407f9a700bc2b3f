"""
Evolution State Tracker

Folds one batch of prediction records into the previous aggregate and returns
the next version. Versions are appended, never updated, so history stays
auditable. ``generation`` moves by exactly one per successful batch and
``total_predictions`` never decreases.
"""

import copy
from collections.abc import Iterable
from datetime import datetime, timezone

from autoevolve.models import EvolutionState, PredictionRecord

STAT_KEYS = ("total", "trajectory_correct", "evaluation_correct")


def _bump(bucket: dict[str, dict[str, int]], key: str, record: PredictionRecord) -> None:
    stats = bucket.setdefault(key, {k: 0 for k in STAT_KEYS})
    stats["total"] += 1
    stats["trajectory_correct"] += int(record.trajectory_correct)
    stats["evaluation_correct"] += int(record.evaluation_correct)


def accuracy(stats: dict[str, int], key: str = "trajectory_correct") -> float | None:
    total = stats.get("total", 0)
    return stats.get(key, 0) / total if total else None


def next_state(
    previous: EvolutionState | None,
    records: Iterable[PredictionRecord],
    now: datetime | None = None,
) -> EvolutionState:
    """Next version of the aggregate after a successful batch."""
    base = previous or EvolutionState()
    per_archetype = copy.deepcopy(base.per_archetype_stats)
    per_tier = copy.deepcopy(base.per_tier_stats)

    added = 0
    for record in records:
        _bump(per_archetype, record.archetype, record)
        _bump(per_tier, record.quality_tier, record)
        added += 1

    total = base.total_predictions + added
    trajectory_hits = sum(s["trajectory_correct"] for s in per_archetype.values())
    fitness = trajectory_hits / total if total else base.fitness_score

    return EvolutionState(
        generation=base.generation + 1,
        fitness_score=round(fitness, 4),
        total_predictions=total,
        per_archetype_stats=per_archetype,
        per_tier_stats=per_tier,
        last_updated_at=now or datetime.now(timezone.utc),
    )


def summarize(state: EvolutionState) -> dict:
    """Read-only view used by the status action."""
    evaluation_hits = sum(s["evaluation_correct"] for s in state.per_archetype_stats.values())
    return {
        "generation": state.generation,
        "fitnessScore": state.fitness_score,
        "totalPredictions": state.total_predictions,
        "trajectoryAccuracy": state.fitness_score if state.total_predictions else None,
        "evaluationAccuracy": (
            round(evaluation_hits / state.total_predictions, 4) if state.total_predictions else None
        ),
        "perArchetype": {
            a: {**s, "trajectoryAccuracy": accuracy(s), "evaluationAccuracy": accuracy(s, "evaluation_correct")}
            for a, s in sorted(state.per_archetype_stats.items())
        },
        "perTier": {
            t: {**s, "trajectoryAccuracy": accuracy(s), "evaluationAccuracy": accuracy(s, "evaluation_correct")}
            for t, s in sorted(state.per_tier_stats.items())
        },
        "lastUpdatedAt": state.last_updated_at.isoformat() if state.last_updated_at else None,
    }
