"""
Calibration against historical outcomes.

Reports trajectory and evaluation accuracy by archetype and quality tier,
and sweeps the logistic constant and the draw bias against
``(score, outcome)`` samples taken either from stored predictions or from a
CSV file with ``score`` and ``outcome`` columns.

Usage:
    python -m autoevolve.calibration
    python -m autoevolve.calibration --since-days 30
    python -m autoevolve.calibration --csv history.csv
"""

import argparse
import csv
import json
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import replace
from pathlib import Path

from autoevolve.config import PredictionCalibration, Settings, configure_logging
from autoevolve.errors import BatchSetupError
from autoevolve.models import OUTCOMES, EvaluationResult, PredictionRecord
from autoevolve.prediction import DrawResolver, evaluation_prediction, win_probability
from autoevolve.store import open_store

logger = logging.getLogger(__name__)

OUTCOME_VALUE = {"white_wins": 1.0, "draw": 0.5, "black_wins": 0.0}

DEFAULT_K_GRID = tuple(round(0.001 * i, 4) for i in range(1, 11)) + (0.00368208,)
DEFAULT_BIAS_GRID = (0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6)


def _bucket() -> dict:
    return {"total": 0, "trajectory_correct": 0, "evaluation_correct": 0}


def _finish(bucket: dict) -> dict:
    total = bucket["total"]
    return {
        **bucket,
        "trajectory_accuracy": round(bucket["trajectory_correct"] / total, 4) if total else None,
        "evaluation_accuracy": round(bucket["evaluation_correct"] / total, 4) if total else None,
    }


def accuracy_report(records: Iterable[PredictionRecord]) -> dict:
    """Accuracy of both prediction kinds overall, by archetype and by quality tier."""
    overall = _bucket()
    by_archetype: dict[str, dict] = {}
    by_tier: dict[str, dict] = {}
    for r in records:
        for bucket in (
            overall,
            by_archetype.setdefault(r.archetype, _bucket()),
            by_tier.setdefault(r.quality_tier, _bucket()),
        ):
            bucket["total"] += 1
            bucket["trajectory_correct"] += int(r.trajectory_correct)
            bucket["evaluation_correct"] += int(r.evaluation_correct)
    return {
        "overall": _finish(overall),
        "by_archetype": {k: _finish(v) for k, v in sorted(by_archetype.items())},
        "by_tier": {k: _finish(v) for k, v in sorted(by_tier.items())},
    }


def samples_from_records(records: Iterable[PredictionRecord]) -> list[tuple[float, str]]:
    """``(eval_score, actual_outcome)`` for records that carry a centipawn score."""
    return [(r.eval_score, r.actual_outcome) for r in records if r.eval_score is not None]


def load_samples(path: Path) -> list[tuple[float, str]]:
    """Read ``score,outcome`` rows; rows with a blank or unknown value are skipped."""
    samples = []
    with open(path, newline="", encoding="utf-8") as f:
        for row in csv.DictReader(f):
            outcome = (row.get("outcome") or "").strip()
            raw = (row.get("score") or "").strip()
            if outcome not in OUTCOMES or not raw:
                continue
            try:
                samples.append((float(raw), outcome))
            except ValueError:
                continue
    return samples


def brier_score(samples: Sequence[tuple[float, str]], k: float) -> float:
    """Mean squared error of White's expected score against the actual result."""
    if not samples:
        return math.nan
    return sum(
        (win_probability(score, k) / 100 - OUTCOME_VALUE[outcome]) ** 2
        for score, outcome in samples
    ) / len(samples)


def sweep_logistic_k(
    samples: Sequence[tuple[float, str]], grid: Iterable[float] = DEFAULT_K_GRID
) -> list[tuple[float, float]]:
    """``(k, brier)`` for each candidate, best first."""
    return sorted(((k, round(brier_score(samples, k), 6)) for k in grid), key=lambda kv: kv[1])


def sweep_draw_bias(
    samples: Sequence[tuple[float, str]],
    grid: Iterable[float] = DEFAULT_BIAS_GRID,
    cal: PredictionCalibration | None = None,
    seed: int = 0,
) -> list[tuple[float, float]]:
    """``(draw_bias, evaluation accuracy)`` for each candidate, best first.

    Every candidate replays the samples with the same seed so the comparison
    is not blurred by the draw coin.
    """
    cal = cal or PredictionCalibration()
    results = []
    for bias in grid:
        if not samples:
            results.append((bias, math.nan))
            continue
        trial = replace(cal, draw_bias=bias)
        resolver = DrawResolver.seeded(bias, seed)
        hits = sum(
            evaluation_prediction(EvaluationResult(score=score), trial, resolver).outcome == outcome
            for score, outcome in samples
        )
        results.append((bias, round(hits / len(samples), 4)))
    return sorted(results, key=lambda kv: -kv[1])


def calibrate(records: Sequence[PredictionRecord], samples: Sequence[tuple[float, str]], cal: PredictionCalibration) -> dict:
    k_sweep = sweep_logistic_k(samples)
    bias_sweep = sweep_draw_bias(samples, cal=cal)
    return {
        "accuracy": accuracy_report(records),
        "samples": len(samples),
        "logistic_k": {
            "current": cal.logistic_k,
            "best": k_sweep[0][0] if samples else None,
            "sweep": k_sweep,
        },
        "draw_bias": {
            "current": cal.draw_bias,
            "best": bias_sweep[0][0] if samples else None,
            "sweep": bias_sweep,
        },
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Calibrate prediction constants against history")
    parser.add_argument("--csv", type=Path, default=None, help="CSV of score,outcome samples")
    parser.add_argument("--since-days", type=int, default=None, help="Only stored predictions this recent")
    args = parser.parse_args(argv)

    configure_logging()
    settings = Settings.from_env()

    records: list[PredictionRecord] = []
    if args.csv:
        samples = load_samples(args.csv)
    else:
        try:
            with open_store(settings.database_url) as store:
                records = store.prediction_rows(args.since_days)
        except BatchSetupError as e:
            logger.error("Cannot load stored predictions: %s", e)
            raise SystemExit(1)
        samples = samples_from_records(records)

    logger.info("Calibrating on %d samples", len(samples))
    print(json.dumps(calibrate(records, samples, settings.calibration), indent=2))


if __name__ == "__main__":
    main()
