"""
Evolution batch orchestrator.

One batch: load recently seen ids -> fetch candidates -> dedup -> for each
fresh game (features + archetype while the evaluation is in flight) ->
divergent prediction -> persist -> append the next evolution state -> audit
event.

Usage:
    python -m autoevolve.orchestrator --action run
    python -m autoevolve.orchestrator --action status
    python -m autoevolve.orchestrator --action run --dry-run --seed 7
"""

import argparse
import asyncio
import json
import logging
import random
import sys
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import httpx

from autoevolve import __version__
from autoevolve.classifier import get_classifier
from autoevolve.config import USER_AGENT, PredictionCalibration, Settings, configure_logging
from autoevolve.dedup import filter_unseen
from autoevolve.errors import BatchSetupError, PredictionRejected
from autoevolve.evaluation import EvaluationService, RateLimiter, get_evaluator
from autoevolve.evolution_state import next_state, summarize
from autoevolve.features import extract
from autoevolve.game_sources import fetch_candidates
from autoevolve.models import BatchResult, GameRecord, PredictionRecord
from autoevolve.moves import position_at
from autoevolve.prediction import DrawResolvers, predict
from autoevolve.store import MemoryStore, open_store

logger = logging.getLogger(__name__)


def data_source_tag(source_tag: str) -> str:
    return f"autoevolve-{__version__}-{source_tag}"


def choose_cutoff(game: GameRecord, settings: Settings, rng: random.Random) -> int:
    """Uniform cutoff ply in the configured range, bounded by the game's length."""
    hi = min(settings.cutoff_max_ply, len(game.moves))
    lo = min(settings.cutoff_min_ply, hi)
    return rng.randint(lo, hi)


async def process_game(
    game: GameRecord,
    cutoff_ply: int,
    classifier,
    evaluator: EvaluationService,
    cal: PredictionCalibration,
    resolvers: DrawResolvers,
) -> PredictionRecord:
    """Predict one game at ``cutoff_ply``. Raises PredictionRejected on no evaluation data."""
    signature = extract(game.moves, cutoff_ply)
    fen = position_at(game.moves, cutoff_ply)

    evaluation_task = asyncio.create_task(evaluator.evaluate(fen, signature))
    try:
        archetype = classifier.classify(signature, signature.plies)
    except Exception:
        evaluation_task.cancel()
        raise
    evaluation = await evaluation_task

    prediction = predict(signature, archetype, evaluation, cal, resolvers, game_id=game.id)
    actual = game.outcome
    return PredictionRecord(
        game_id=game.id,
        game_name=game.name,
        fen=fen,
        cutoff_ply=cutoff_ply,
        archetype=archetype,
        trajectory_prediction=prediction.trajectory.outcome,
        trajectory_confidence=prediction.trajectory.confidence,
        trajectory_correct=prediction.trajectory.outcome == actual,
        evaluation_prediction=prediction.evaluation.outcome,
        evaluation_confidence=prediction.evaluation.confidence,
        evaluation_correct=prediction.evaluation.outcome == actual,
        eval_score=evaluation.score,
        eval_depth=evaluation.search_depth,
        actual_outcome=actual,
        source_tag=evaluation.source_tag,
        quality_tier=evaluation.quality_tier,
        provider_tag=game.provider_tag,
        game_tier=game.tier,
        white_rating=game.white_rating,
        black_rating=game.black_rating,
        time_control=game.time_control,
        data_source=data_source_tag(evaluation.source_tag),
    )


def _record_error(store, message: str, duration_ms: int) -> None:
    try:
        store.log_event("batch_error", {"error": message, "durationMs": duration_ms})
    except Exception:
        logger.exception("Could not record batch_error event")


async def run_batch(
    store,
    session: httpx.AsyncClient | None,
    settings: Settings,
    *,
    limiter: RateLimiter | None = None,
    rng: random.Random | None = None,
    resolvers: DrawResolvers | None = None,
    clock=time.monotonic,
    now: datetime | None = None,
    fetch=fetch_candidates,
) -> BatchResult:
    """Run one evolution batch against ``store``.

    Returns a failed BatchResult on BatchSetupError after recording a
    ``batch_error`` event when the store still accepts writes. Work still in
    flight when ``max_batch_seconds`` runs out is abandoned.

    ``now`` anchors the fetch window; state versions are stamped when they
    are appended.
    """
    started = clock()
    deadline = started + settings.max_batch_seconds
    rng = rng or random.Random(settings.seed)
    resolvers = resolvers or DrawResolvers.create(settings.calibration.draw_bias, settings.seed)
    now = now or datetime.now(timezone.utc)

    def elapsed_ms() -> int:
        return int((clock() - started) * 1000)

    try:
        try:
            classifier = get_classifier(settings.classifier, settings.thresholds)
            evaluator = get_evaluator(
                settings.evaluator,
                session,
                limiter or RateLimiter(settings.cloud_eval_interval, clock),
                settings.heuristic,
                settings.cloud_eval_timeout,
            )
        except ValueError as e:
            raise BatchSetupError(str(e)) from e

        seen = store.recent_game_ids(settings.dedup_window_days, settings.dedup_limit)

        timed_out = False
        try:
            candidates = await asyncio.wait_for(
                fetch(
                    session,
                    settings.providers,
                    now - timedelta(days=settings.since_days),
                    settings.per_provider_limit,
                    min_plies=settings.min_plies,
                    players_per_provider=settings.players_per_provider,
                    rng=rng,
                    token=settings.lichess_token,
                    timeout=settings.provider_timeout,
                    retry_backoff=settings.retry_backoff,
                    semaphore=asyncio.Semaphore(settings.provider_concurrency),
                ),
                max(0.0, deadline - clock()),
            )
        except asyncio.TimeoutError:
            logger.warning("Batch deadline reached while fetching candidates")
            candidates = []
            timed_out = True

        fresh, skipped = filter_unseen(candidates, seen)
        rng.shuffle(fresh)
        batch = fresh[: settings.batch_size]
        logger.info("%d candidates, %d fresh, %d already seen", len(candidates), len(fresh), skipped)

        if not batch:
            state = store.append_state(next_state(store.latest_state(), []))
            message = "Batch deadline reached before any game" if timed_out else "No fresh games"
            store.log_event("batch_skipped", {
                "generation": state.generation,
                "candidates": len(candidates),
                "duplicatesSkipped": skipped,
                "reason": message,
            })
            return BatchResult(
                success=True,
                duplicates_skipped=skipped,
                duration_ms=elapsed_ms(),
                message=message,
                generation=state.generation,
            )

        records = []
        attempted = 0
        rejected = 0
        for game in batch:
            left = deadline - clock()
            if left <= 0:
                timed_out = True
                break
            cutoff = choose_cutoff(game, settings, rng)
            attempted += 1
            try:
                record = await asyncio.wait_for(
                    process_game(game, cutoff, classifier, evaluator, settings.calibration, resolvers),
                    left,
                )
            except asyncio.TimeoutError:
                logger.warning("Batch deadline reached while processing %s", game.id)
                timed_out = True
                break
            except PredictionRejected as e:
                logger.warning("Skipping %s: %s", game.id, e.reason)
                rejected += 1
                continue

            if store.insert_prediction(record):
                records.append(record)
                logger.info(
                    "%s @%d %s: trajectory=%s evaluation=%s (%s)",
                    game.id, cutoff, record.archetype, record.trajectory_prediction,
                    record.evaluation_prediction, record.source_tag,
                )
            else:
                skipped += 1
                logger.info("%s already stored, skipping", game.id)

        state = store.append_state(next_state(store.latest_state(), records))
        divergent = sum(r.trajectory_prediction != r.evaluation_prediction for r in records)
        authoritative = sum(r.source_tag == "authoritative" for r in records)
        message = (
            f"Generation {state.generation}: {len(records)} predictions, "
            f"{divergent} divergent, {authoritative} authoritative evaluations"
        )
        if timed_out:
            message += " (batch deadline reached)"

        result = BatchResult(
            success=True,
            games_processed=attempted,
            predictions_generated=len(records),
            divergent_predictions=divergent,
            authoritative_evaluations=authoritative,
            duplicates_skipped=skipped,
            rejected=rejected,
            duration_ms=elapsed_ms(),
            message=message,
            generation=state.generation,
        )
        store.log_event("batch_complete", {
            **result.to_response(),
            "generation": state.generation,
            "fitnessScore": state.fitness_score,
            "authoritativeEvaluations": authoritative,
            "duplicatesSkipped": skipped,
            "rejected": rejected,
            "timedOut": timed_out,
        })
        logger.info(message)
        return result

    except BatchSetupError as e:
        logger.error("Batch aborted: %s", e)
        _record_error(store, str(e), elapsed_ms())
        return BatchResult(success=False, error=str(e), duration_ms=elapsed_ms())
    except Exception as e:
        logger.exception("Batch failed")
        _record_error(store, repr(e), elapsed_ms())
        raise


def status(store) -> dict:
    """Latest evolution state and prediction counts. Read-only."""
    state = store.latest_state()
    counts = store.prediction_counts()
    return {
        "success": True,
        "state": summarize(state) if state else None,
        "predictions": {
            "total": sum(c["total"] for c in counts.values()),
            "divergent": sum(c["divergent"] for c in counts.values()),
            "byTier": counts,
        },
    }


async def run_once(settings: Settings, *, store=None, limiter: RateLimiter | None = None) -> BatchResult:
    """Run a batch with a fresh HTTP session, on ``store`` or on PostgreSQL."""
    async with httpx.AsyncClient(
        timeout=settings.provider_timeout, headers={"User-Agent": USER_AGENT}
    ) as session:
        if store is not None:
            return await run_batch(store, session, settings, limiter=limiter)
        try:
            with open_store(settings.database_url) as pg:
                return await run_batch(pg, session, settings, limiter=limiter)
        except BatchSetupError as e:
            logger.error("Batch aborted: %s", e)
            return BatchResult(success=False, error=str(e))


def status_once(settings: Settings, *, store=None) -> dict:
    """Status on ``store`` or on PostgreSQL. Raises BatchSetupError if unreachable."""
    if store is not None:
        return status(store)
    with open_store(settings.database_url) as pg:
        return status(pg)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Autonomous evolution batch")
    parser.add_argument("--action", choices=["run", "status"], default="run")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store instead of PostgreSQL")
    parser.add_argument("--seed", type=int, default=None, help="Seed for sampling, cutoffs and draw decisions")
    args = parser.parse_args(argv)

    configure_logging()
    settings = Settings.from_env()
    if args.seed is not None:
        settings = replace(settings, seed=args.seed)
    store = MemoryStore() if args.dry_run else None

    if args.action == "status":
        try:
            body = status_once(settings, store=store)
        except BatchSetupError as e:
            body = {"success": False, "error": str(e)}
    else:
        body = asyncio.run(run_once(settings, store=store)).to_response()

    print(json.dumps(body, indent=2, default=str))
    if not body.get("success"):
        sys.exit(1)


if __name__ == "__main__":
    main()
