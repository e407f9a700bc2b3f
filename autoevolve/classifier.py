"""
Archetype Classifier

Maps a feature signature to one archetype with an ordered rule list: rules are
tested top to bottom and the first match wins. Order matters, e.g. opposite
castling is tested before kingside attack because both match the same
signature and the former is the more specific label.

Two strategies are available, selected by name through ``get_classifier``:

- ``ordered``: the rule list alone (default).
- ``synaptic``: the rule list followed by a weighted-graph re-ranking that
  lets energy cascade between related archetypes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from autoevolve import archetypes as A
from autoevolve.config import ClassifierThresholds
from autoevolve.models import FeatureSignature

logger = logging.getLogger(__name__)

Rule = Callable[[FeatureSignature, int, ClassifierThresholds], bool]


def is_opposite_castling(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    q = sig.quadrant_profile
    return (
        q.kingside_total > t.opposite_castling_imbalance
        and q.queenside_total > t.opposite_castling_imbalance
        and sig.temporal_flow.volatility > t.opposite_castling_volatility
    )


def is_pawn_storm(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    flow = sig.temporal_flow
    return flow.endgame > flow.opening + t.pawn_storm_margin


def is_kingside_attack(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    q = sig.quadrant_profile
    return q.kingside_total > t.kingside_min and q.kingside_total > q.queenside_total * t.flank_ratio


def is_queenside_expansion(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    q = sig.quadrant_profile
    return q.queenside_total > t.queenside_min and q.queenside_total > q.kingside_total * t.flank_ratio


def is_central_domination(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    return sig.quadrant_profile.center > t.center_min


def is_sacrificial_attack(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    return sig.aggression > t.aggression_min


def is_open_tactical(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    return sig.temporal_flow.volatility > t.open_tactical_volatility


def is_endgame_technique(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    return plies > t.endgame_min_plies


def is_closed_maneuvering(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    return sig.temporal_flow.volatility < t.closed_max_volatility and plies > t.closed_min_plies


def is_positional_squeeze(sig: FeatureSignature, plies: int, t: ClassifierThresholds) -> bool:
    flow = sig.temporal_flow
    return flow.middlegame > flow.opening


ARCHETYPE_RULES: list[tuple[Rule, str]] = [
    (is_opposite_castling, A.OPPOSITE_CASTLING),  # Must precede kingside attack
    (is_pawn_storm, A.PAWN_STORM),
    (is_kingside_attack, A.KINGSIDE_ATTACK),
    (is_queenside_expansion, A.QUEENSIDE_EXPANSION),
    (is_central_domination, A.CENTRAL_DOMINATION),
    (is_sacrificial_attack, A.SACRIFICIAL_ATTACK),
    (is_open_tactical, A.OPEN_TACTICAL),
    (is_endgame_technique, A.ENDGAME_TECHNIQUE),
    (is_closed_maneuvering, A.CLOSED_MANEUVERING),
    (is_positional_squeeze, A.POSITIONAL_SQUEEZE),
]


def classify(
    signature: FeatureSignature,
    total_plies: int,
    thresholds: ClassifierThresholds | None = None,
) -> str:
    """First matching archetype, or piece_harmony when no rule matches."""
    t = thresholds or ClassifierThresholds()
    for predicate, label in ARCHETYPE_RULES:
        if predicate(signature, total_plies, t):
            return label
    return A.DEFAULT_ARCHETYPE


class OrderedRuleClassifier:
    name = "ordered"

    def __init__(self, thresholds: ClassifierThresholds | None = None):
        self.thresholds = thresholds or ClassifierThresholds()

    def classify(self, signature: FeatureSignature, total_plies: int) -> str:
        return classify(signature, total_plies, self.thresholds)


@dataclass(frozen=True)
class Synapse:
    source: str
    target: str
    weight: float
    resonance: float


DEFAULT_SYNAPSES: tuple[Synapse, ...] = (
    Synapse(A.KINGSIDE_ATTACK, A.PAWN_STORM, 0.8, 0.6),
    Synapse(A.KINGSIDE_ATTACK, A.SACRIFICIAL_ATTACK, 0.7, 0.55),
    Synapse(A.QUEENSIDE_EXPANSION, A.POSITIONAL_SQUEEZE, 0.75, 0.62),
    Synapse(A.CENTRAL_DOMINATION, A.PIECE_HARMONY, 0.8, 0.58),
    Synapse(A.ENDGAME_TECHNIQUE, A.POSITIONAL_SQUEEZE, 0.6, 0.65),
    Synapse(A.OPEN_TACTICAL, A.SACRIFICIAL_ATTACK, 0.85, 0.52),
)


class SynapticClassifier:
    """Re-ranks archetype candidates on top of the ordered rules.

    Energy is injected into archetype nodes from the signature, the base
    classification gets a fixed boost, and nodes above ``fire_threshold``
    propagate energy along weighted edges for at most ``max_cascade`` rounds.
    The node with the most energy wins; ties go to the earlier archetype in
    taxonomy order. State is rebuilt on every call.
    """

    name = "synaptic"

    def __init__(
        self,
        thresholds: ClassifierThresholds | None = None,
        synapses: tuple[Synapse, ...] = DEFAULT_SYNAPSES,
        fire_threshold: float = 0.618,
        resting_energy: float = 0.1,
        base_boost: float = 0.5,
        max_cascade: int = 5,
        decay: float = 0.5,
    ):
        self.base = OrderedRuleClassifier(thresholds)
        self.synapses = synapses
        self.fire_threshold = fire_threshold
        self.resting_energy = resting_energy
        self.base_boost = base_boost
        self.max_cascade = max_cascade
        self.decay = decay

    def inject(self, sig: FeatureSignature, base_label: str) -> dict[str, float]:
        q = sig.quadrant_profile
        flow = sig.temporal_flow
        energy = {a: self.resting_energy for a in A.ARCHETYPES}

        if q.kingside_total > 20:
            energy[A.KINGSIDE_ATTACK] += q.kingside_total / 50
        if q.queenside_total > 20:
            energy[A.QUEENSIDE_EXPANSION] += q.queenside_total / 50
        if q.center > 10:
            energy[A.CENTRAL_DOMINATION] += q.center / 30
        if flow.volatility > 30:
            energy[A.OPEN_TACTICAL] += flow.volatility / 50
            energy[A.SACRIFICIAL_ATTACK] += flow.volatility / 60
        if flow.endgame > flow.opening + 5:
            energy[A.ENDGAME_TECHNIQUE] += 0.6
        if sig.aggression > 0.2:
            energy[A.SACRIFICIAL_ATTACK] += sig.aggression
        if flow.volatility > 20:
            energy[A.POSITIONAL_SQUEEZE] += flow.volatility / 50

        energy[base_label] += self.base_boost
        return energy

    def rank(self, signature: FeatureSignature, total_plies: int) -> list[tuple[str, float]]:
        """Archetypes with their final energy, strongest first."""
        base_label = self.base.classify(signature, total_plies)
        energy = self.inject(signature, base_label)

        for _ in range(self.max_cascade):
            fired = False
            for s in self.synapses:
                if energy[s.source] > self.fire_threshold:
                    energy[s.target] += energy[s.source] * s.weight * s.resonance * self.decay
                    fired = True
            if not fired:
                break

        order = {a: i for i, a in enumerate(A.ARCHETYPES)}
        return sorted(energy.items(), key=lambda kv: (-kv[1], order[kv[0]]))

    def classify(self, signature: FeatureSignature, total_plies: int) -> str:
        label, energy = self.rank(signature, total_plies)[0]
        logger.debug("Synaptic fire: %s (energy=%.2f)", label, energy)
        return label


CLASSIFIERS = {
    OrderedRuleClassifier.name: OrderedRuleClassifier,
    SynapticClassifier.name: SynapticClassifier,
}


def get_classifier(name: str, thresholds: ClassifierThresholds | None = None):
    """Instantiate the classifier strategy registered under ``name``."""
    try:
        return CLASSIFIERS[name](thresholds)
    except KeyError:
        raise ValueError(f"Unknown classifier strategy {name!r}; expected one of {sorted(CLASSIFIERS)}")
