"""
Evaluation Fallback Service

Position evaluation that prefers the Lichess cloud evaluation and degrades to
a local heuristic computed from the feature signature. ``evaluate`` never
raises and never waits out a rate limit: when the last authoritative call is
too recent the heuristic is used straight away.

Scores are centipawns from White's perspective.
"""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from autoevolve.config import LICHESS_CLOUD_EVAL_API, USER_AGENT, HeuristicWeights
from autoevolve.models import EvaluationResult, FeatureSignature

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum spacing between authoritative calls.

    Holds the time of the last granted call; lives as long as the process
    that owns it. ``clock`` is injectable so tests can move time by hand.
    """

    def __init__(self, min_interval: float, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self.clock = clock
        self.last_call: float | None = None

    def try_acquire(self) -> bool:
        """Grant and stamp a call if the interval has elapsed; never blocks."""
        now = self.clock()
        if self.last_call is not None and now - self.last_call < self.min_interval:
            return False
        self.last_call = now
        return True


def heuristic_evaluation(
    signature: FeatureSignature, weights: HeuristicWeights | None = None
) -> EvaluationResult:
    """Linear estimate from spatial differential, aggression and tempo, clamped."""
    w = weights or HeuristicWeights()
    spatial = signature.white_energy - signature.black_energy
    dominant = (spatial > 0) - (spatial < 0)

    cp = (
        w.spatial * spatial
        + w.aggression * signature.aggression * dominant
        + w.tempo * (signature.tempo - 0.5)
    )
    cp = max(-w.clamp_cp, min(w.clamp_cp, cp))
    return EvaluationResult(score=float(round(cp)), search_depth=0, source_tag="heuristic")


def parse_cloud_eval(data) -> EvaluationResult | None:
    """Principal variation of a cloud-eval payload, or None when it has no line."""
    if not isinstance(data, dict):
        return None
    pvs = data.get("pvs")
    if not isinstance(pvs, list) or not pvs or not isinstance(pvs[0], dict):
        return None

    main = pvs[0]
    cp = main.get("cp")
    mate = main.get("mate")
    if cp is None and mate is None:
        return None
    try:
        depth = int(data.get("depth") or 0)
        return EvaluationResult(
            score=float(cp) if cp is not None else None,
            search_depth=depth,
            is_forced_mate=mate is not None,
            mate_distance=int(mate) if mate is not None else None,
            source_tag="authoritative",
        )
    except (TypeError, ValueError):
        return None


class CloudEvaluator:
    """Single-shot client for the Lichess cloud evaluation endpoint."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        limiter: RateLimiter,
        timeout: float = 4.0,
        url: str = LICHESS_CLOUD_EVAL_API,
    ):
        self.session = session
        self.limiter = limiter
        self.timeout = timeout
        self.url = url

    async def fetch(self, fen: str) -> EvaluationResult | None:
        """Authoritative evaluation, or None if rate limited or unavailable."""
        if not self.limiter.try_acquire():
            return None
        try:
            resp = await asyncio.wait_for(
                self.session.get(
                    self.url,
                    params={"fen": fen, "multiPv": 1},
                    headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                    timeout=self.timeout,
                ),
                self.timeout,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.info("Cloud eval unavailable: %r", e)
            return None
        if not resp.is_success:
            logger.debug("Cloud eval unavailable: HTTP %d", resp.status_code)
            return None
        try:
            payload = resp.json()
        except ValueError:
            return None
        return parse_cloud_eval(payload)


class EvaluationService:
    """Authoritative-first evaluation with a heuristic fallback.

    Built without a ``cloud`` evaluator it is the heuristic-only strategy.
    """

    def __init__(self, cloud: CloudEvaluator | None = None, weights: HeuristicWeights | None = None):
        self.cloud = cloud
        self.weights = weights or HeuristicWeights()

    @property
    def name(self) -> str:
        return "dual" if self.cloud else "heuristic"

    async def evaluate(self, fen: str | None, signature: FeatureSignature) -> EvaluationResult:
        if self.cloud is not None and fen:
            result = await self.cloud.fetch(fen)
            if result is not None:
                logger.info("Cloud eval: depth=%d cp=%s mate=%s",
                            result.search_depth, result.score, result.mate_distance)
                return result
        result = heuristic_evaluation(signature, self.weights)
        logger.debug("Heuristic eval: cp=%s", result.score)
        return result


EVALUATORS = ("dual", "heuristic")


def get_evaluator(
    name: str,
    session: httpx.AsyncClient | None,
    limiter: RateLimiter | None,
    weights: HeuristicWeights | None = None,
    timeout: float = 4.0,
) -> EvaluationService:
    """Instantiate the evaluation strategy registered under ``name``."""
    if name == "heuristic":
        return EvaluationService(None, weights)
    if name == "dual":
        if session is None or limiter is None:
            raise ValueError("dual evaluation needs an HTTP session and a rate limiter")
        return EvaluationService(CloudEvaluator(session, limiter, timeout), weights)
    raise ValueError(f"Unknown evaluation strategy {name!r}; expected one of {list(EVALUATORS)}")
