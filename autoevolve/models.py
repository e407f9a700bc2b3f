"""Data models for the autonomous evolution pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Winner = Literal["white", "black", "draw"]
Outcome = Literal["white_wins", "black_wins", "draw"]
SourceTag = Literal["authoritative", "heuristic"]
QualityTier = Literal["verified", "heuristic_fallback"]
GameTier = Literal["human_vs_human", "human_vs_computer"]

OUTCOMES: tuple[str, ...] = ("white_wins", "black_wins", "draw")


@dataclass(frozen=True)
class GameRecord:
    """A finished game as fetched from a provider. Never mutated."""

    id: str
    move_text: str
    declared_winner: Winner
    provider_tag: str
    moves: tuple[str, ...] = ()
    white_name: str = "Unknown"
    black_name: str = "Unknown"
    white_rating: int | None = None
    black_rating: int | None = None
    time_control: str | None = None
    tier: GameTier = "human_vs_human"

    @property
    def name(self) -> str:
        return f"{self.white_name} vs {self.black_name}"

    @property
    def outcome(self) -> Outcome:
        if self.declared_winner == "white":
            return "white_wins"
        if self.declared_winner == "black":
            return "black_wins"
        return "draw"


@dataclass(frozen=True)
class QuadrantProfile:
    """Per-region activity differentials. Every field is >= 0."""

    kingside_white: float = 0.0
    kingside_black: float = 0.0
    queenside_white: float = 0.0
    queenside_black: float = 0.0
    center: float = 0.0

    @property
    def kingside_total(self) -> float:
        return self.kingside_white + self.kingside_black

    @property
    def queenside_total(self) -> float:
        return self.queenside_white + self.queenside_black


@dataclass(frozen=True)
class TemporalFlow:
    """Per-side phase intensities (normalized by phase length) and volatility."""

    white_phases: tuple[float, float, float] = (0.0, 0.0, 0.0)
    black_phases: tuple[float, float, float] = (0.0, 0.0, 0.0)
    volatility: float = 0.0

    @property
    def opening(self) -> float:
        return self.white_phases[0] + self.black_phases[0]

    @property
    def middlegame(self) -> float:
        return self.white_phases[1] + self.black_phases[1]

    @property
    def endgame(self) -> float:
        return self.white_phases[2] + self.black_phases[2]


@dataclass(frozen=True)
class FeatureSignature:
    aggression: float = 0.0
    complexity: float = 0.0
    tempo: float = 0.5
    material_balance: float = 0.0
    quadrant_profile: QuadrantProfile = field(default_factory=QuadrantProfile)
    temporal_flow: TemporalFlow = field(default_factory=TemporalFlow)
    white_energy: float = 0.0
    black_energy: float = 0.0
    plies: int = 0


@dataclass(frozen=True)
class ArchetypeDefinition:
    id: str
    name: str
    historical_win_rate: float
    favored_side: Literal["white", "black", "balanced"]
    lookahead_confidence: int


@dataclass(frozen=True)
class EvaluationResult:
    """Position evaluation in centipawns from White's perspective.

    ``score is None`` without a forced mate means no data, which is not the
    same thing as an equal position.
    """

    score: float | None
    search_depth: int = 0
    is_forced_mate: bool = False
    mate_distance: int | None = None
    source_tag: SourceTag = "heuristic"

    @property
    def has_data(self) -> bool:
        return self.score is not None or (self.is_forced_mate and bool(self.mate_distance))

    @property
    def quality_tier(self) -> QualityTier:
        return "verified" if self.source_tag == "authoritative" else "heuristic_fallback"


@dataclass(frozen=True)
class Prediction:
    outcome: Outcome
    confidence: float


@dataclass(frozen=True)
class DivergentPrediction:
    trajectory: Prediction
    evaluation: Prediction

    @property
    def is_divergent(self) -> bool:
        return self.trajectory.outcome != self.evaluation.outcome


@dataclass(frozen=True)
class PredictionRecord:
    """One processed game. Append-only, unique by game_id."""

    game_id: str
    cutoff_ply: int
    trajectory_prediction: Outcome
    evaluation_prediction: Outcome
    archetype: str
    trajectory_confidence: float
    evaluation_confidence: float
    actual_outcome: Outcome
    trajectory_correct: bool
    evaluation_correct: bool
    source_tag: SourceTag
    quality_tier: QualityTier
    game_name: str = ""
    fen: str | None = None
    eval_score: float | None = None
    eval_depth: int = 0
    provider_tag: str = ""
    game_tier: GameTier = "human_vs_human"
    white_rating: int | None = None
    black_rating: int | None = None
    time_control: str | None = None
    data_source: str = ""


@dataclass
class EvolutionState:
    """Aggregate accuracy state. A new version is appended after each batch."""

    generation: int = 0
    fitness_score: float = 0.5
    total_predictions: int = 0
    per_archetype_stats: dict[str, dict[str, int]] = field(default_factory=dict)
    per_tier_stats: dict[str, dict[str, int]] = field(default_factory=dict)
    last_updated_at: datetime | None = None
    state_id: int | None = None


@dataclass
class BatchResult:
    success: bool
    games_processed: int = 0
    predictions_generated: int = 0
    divergent_predictions: int = 0
    authoritative_evaluations: int = 0
    duplicates_skipped: int = 0
    rejected: int = 0
    duration_ms: int = 0
    message: str = ""
    error: str | None = None
    generation: int | None = None

    def to_response(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error or self.message}
        return {
            "success": True,
            "gamesProcessed": self.games_processed,
            "predictionsGenerated": self.predictions_generated,
            "divergentPredictions": self.divergent_predictions,
            "durationMs": self.duration_ms,
            "message": self.message,
        }
