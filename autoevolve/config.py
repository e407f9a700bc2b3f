"""Configuration for the evolution pipeline.

Everything tunable lives here: environment-driven settings, provider rosters
and the calibration constants used by the classifier, the heuristic evaluator
and the prediction engine. Calibration constants can be overridden with a
JSON document in ``AUTOEVOLVE_CALIBRATION``, e.g.::

    AUTOEVOLVE_CALIBRATION='{"classifier": {"center_min": 18}, "prediction": {"draw_bias": 0.3}}'
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Literal

LICHESS_GAMES_API = "https://lichess.org/api/games/user"
CHESSCOM_GAMES_API = "https://api.chess.com/pub/player"
LICHESS_CLOUD_EVAL_API = "https://lichess.org/api/cloud-eval"
USER_AGENT = "autoevolve/7.10 (chess outcome research)"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class ClassifierThresholds:
    opposite_castling_imbalance: float = 15.0
    opposite_castling_volatility: float = 25.0
    pawn_storm_margin: float = 40.0
    flank_ratio: float = 1.2
    kingside_min: float = 25.0
    queenside_min: float = 20.0
    center_min: float = 15.0
    aggression_min: float = 0.25
    open_tactical_volatility: float = 30.0
    endgame_min_plies: int = 44
    closed_max_volatility: float = 20.0
    closed_min_plies: int = 36


@dataclass(frozen=True)
class HeuristicWeights:
    spatial: float = 15.0
    aggression: float = 100.0
    tempo: float = 60.0
    clamp_cp: float = 500.0


@dataclass(frozen=True)
class PredictionCalibration:
    logistic_k: float = 0.00368208
    draw_bias: float = 0.4
    draw_band: float = 4.0
    archetype_prior_scale: float = 60.0
    dominance_margin: float = 10.0
    dominance_bonus: float = 15.0
    momentum_weight: float = 0.1
    momentum_cap: float = 8.0
    trajectory_confidence_cap: float = 88.0
    moderate_intensity: float = 10.0
    evaluation_confidence_cap: float = 95.0
    mate_confidence: float = 99.0


@dataclass(frozen=True)
class Provider:
    """A game source and the roster of players sampled from it."""

    name: str
    kind: Literal["lichess", "chesscom"]
    players: tuple[str, ...]
    tier: Literal["human_vs_human", "human_vs_computer"] = "human_vs_human"
    vs_ai: bool = False
    endpoint: str = LICHESS_GAMES_API


DEFAULT_PROVIDERS: tuple[Provider, ...] = (
    Provider(
        name="lichess",
        kind="lichess",
        players=(
            "DrNykterstein", "nihalsarin2004", "Fins", "penguingim1", "lance5500",
            "Firouzja2003", "GMWSO", "opperwezen", "Zhigalko_Sergei", "LyonBeast",
            "Polish_fighter3000",
        ),
    ),
    Provider(
        name="chesscom",
        kind="chesscom",
        players=(
            "MagnusCarlsen", "Hikaru", "FabianoCaruana", "DanielNaroditsky", "GothamChess",
            "AnishGiri", "LevonAronian", "WesleySo", "Vladimirkramnik", "DominguezPerez",
            "GMJefferyXiong", "Grischuk",
        ),
        endpoint=CHESSCOM_GAMES_API,
    ),
    Provider(
        name="lichess-bot",
        kind="lichess",
        players=("DrNykterstein", "Fins", "penguingim1", "lance5500"),
        tier="human_vs_computer",
        vs_ai=True,
    ),
)


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _apply_overrides(obj, overrides: dict):
    """Return ``obj`` with known fields replaced; unknown keys raise ValueError."""
    known = {f.name for f in fields(obj)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown calibration keys for {type(obj).__name__}: {sorted(unknown)}")
    return replace(obj, **overrides)


@dataclass(frozen=True)
class Settings:
    database_url: str = "postgresql://localhost:5432/chess_evolution?user=postgres&password=postgres"
    redis_url: str = "redis://localhost:6379/0"
    lichess_token: str | None = None
    classifier: str = "ordered"
    evaluator: str = "dual"
    providers: tuple[Provider, ...] = DEFAULT_PROVIDERS
    players_per_provider: int = 3
    per_provider_limit: int = 5
    since_days: int = 14
    min_plies: int = 20
    batch_size: int = 10
    max_batch_seconds: float = 240.0
    provider_timeout: float = 15.0
    provider_concurrency: int = 4
    retry_backoff: float = 2.0
    cloud_eval_interval: float = 5.0
    cloud_eval_timeout: float = 4.0
    dedup_window_days: int = 7
    dedup_limit: int = 500
    cutoff_min_ply: int = 30
    cutoff_max_ply: int = 48
    schedule_seconds: int = 300
    seed: int | None = None
    thresholds: ClassifierThresholds = field(default_factory=ClassifierThresholds)
    heuristic: HeuristicWeights = field(default_factory=HeuristicWeights)
    calibration: PredictionCalibration = field(default_factory=PredictionCalibration)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        seed = os.environ.get("AUTOEVOLVE_SEED")
        settings = cls(
            database_url=os.environ.get("DATABASE_URL", cls.database_url),
            redis_url=os.environ.get("REDIS_URL", cls.redis_url),
            lichess_token=os.environ.get("LICHESS_TOKEN") or None,
            classifier=os.environ.get("AUTOEVOLVE_CLASSIFIER", cls.classifier),
            evaluator=os.environ.get("AUTOEVOLVE_EVALUATOR", cls.evaluator),
            batch_size=_env_int("AUTOEVOLVE_BATCH_SIZE", cls.batch_size),
            max_batch_seconds=_env_float("AUTOEVOLVE_MAX_BATCH_SECONDS", cls.max_batch_seconds),
            cloud_eval_interval=_env_float("AUTOEVOLVE_CLOUD_EVAL_INTERVAL", cls.cloud_eval_interval),
            dedup_window_days=_env_int("AUTOEVOLVE_DEDUP_WINDOW_DAYS", cls.dedup_window_days),
            schedule_seconds=_env_int("AUTOEVOLVE_SCHEDULE_SECONDS", cls.schedule_seconds),
            seed=int(seed) if seed else None,
        )
        raw = os.environ.get("AUTOEVOLVE_CALIBRATION")
        if raw:
            settings = settings.with_calibration(json.loads(raw))
        return settings

    def with_calibration(self, overrides: dict) -> "Settings":
        """Apply a ``{"classifier": {...}, "heuristic": {...}, "prediction": {...}}`` document."""
        return replace(
            self,
            thresholds=_apply_overrides(self.thresholds, overrides.get("classifier", {})),
            heuristic=_apply_overrides(self.heuristic, overrides.get("heuristic", {})),
            calibration=_apply_overrides(self.calibration, overrides.get("prediction", {})),
        )


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for an entry point."""
    logging.basicConfig(
        level=(level or os.environ.get("AUTOEVOLVE_LOG_LEVEL", "INFO")).upper(),
        format=LOG_FORMAT,
    )
