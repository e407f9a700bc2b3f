"""Archetype taxonomy.

Static metadata per archetype: historical win rate, favored side and the
lookahead confidence constant. Changed only by explicit re-calibration.
"""

from autoevolve.models import ArchetypeDefinition

KINGSIDE_ATTACK = "kingside_attack"
QUEENSIDE_EXPANSION = "queenside_expansion"
CENTRAL_DOMINATION = "central_domination"
PROPHYLACTIC_DEFENSE = "prophylactic_defense"
PAWN_STORM = "pawn_storm"
PIECE_HARMONY = "piece_harmony"
OPPOSITE_CASTLING = "opposite_castling"
CLOSED_MANEUVERING = "closed_maneuvering"
OPEN_TACTICAL = "open_tactical"
ENDGAME_TECHNIQUE = "endgame_technique"
SACRIFICIAL_ATTACK = "sacrificial_attack"
POSITIONAL_SQUEEZE = "positional_squeeze"

ARCHETYPES: dict[str, ArchetypeDefinition] = {
    a.id: a
    for a in (
        ArchetypeDefinition(KINGSIDE_ATTACK, "Kingside Attack", 0.58, "white", 15),
        ArchetypeDefinition(QUEENSIDE_EXPANSION, "Queenside Expansion", 0.54, "white", 20),
        ArchetypeDefinition(CENTRAL_DOMINATION, "Central Domination", 0.62, "white", 25),
        ArchetypeDefinition(PROPHYLACTIC_DEFENSE, "Prophylactic Defense", 0.48, "balanced", 30),
        ArchetypeDefinition(PAWN_STORM, "Pawn Storm", 0.55, "white", 12),
        ArchetypeDefinition(PIECE_HARMONY, "Piece Harmony", 0.60, "white", 18),
        ArchetypeDefinition(OPPOSITE_CASTLING, "Opposite Side Castling", 0.51, "balanced", 10),
        ArchetypeDefinition(CLOSED_MANEUVERING, "Closed Maneuvering", 0.52, "balanced", 35),
        ArchetypeDefinition(OPEN_TACTICAL, "Open Tactical Battle", 0.53, "balanced", 8),
        ArchetypeDefinition(ENDGAME_TECHNIQUE, "Endgame Technique", 0.58, "white", 40),
        ArchetypeDefinition(SACRIFICIAL_ATTACK, "Sacrificial Attack", 0.56, "white", 6),
        ArchetypeDefinition(POSITIONAL_SQUEEZE, "Positional Squeeze", 0.61, "white", 28),
    )
}

DEFAULT_ARCHETYPE = PIECE_HARMONY


def get_archetype(archetype_id: str) -> ArchetypeDefinition:
    """Look up an archetype, falling back to the must-match default."""
    return ARCHETYPES.get(archetype_id, ARCHETYPES[DEFAULT_ARCHETYPE])
