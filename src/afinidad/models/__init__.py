"""
Modelos de datos del sistema.

- Perfil: Profile, ResponseSet, Candidate
- Resultado: Commonality, Match, MatchSet, QualityMetrics
"""

from afinidad.models.profile import (
    Profile,
    ResponseSet,
    Candidate,
    Answer,
    TextAnswer,
    ChoicesAnswer,
    NumericAnswer,
)
from afinidad.models.match import (
    Commonality,
    CommonalityCategory,
    Match,
    MatchSet,
    MatchType,
    QualityMetrics,
    ScoringMode,
    PLACEHOLDER_MATCH_PREFIX,
    PLACEHOLDER_USER_PREFIX,
)

__all__ = [
    # Perfil
    "Profile",
    "ResponseSet",
    "Candidate",
    "Answer",
    "TextAnswer",
    "ChoicesAnswer",
    "NumericAnswer",
    # Resultado
    "Commonality",
    "CommonalityCategory",
    "Match",
    "MatchSet",
    "MatchType",
    "QualityMetrics",
    "ScoringMode",
    "PLACEHOLDER_MATCH_PREFIX",
    "PLACEHOLDER_USER_PREFIX",
]
