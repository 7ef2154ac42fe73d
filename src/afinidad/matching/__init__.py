"""
Motor de matching.

Combina scoring ponderado por cuestionario, commonalities y starters
para rankear a los participantes más afines para cada usuario.
"""

from afinidad.matching.classifier import classify, HIGH_AFFINITY_THRESHOLD
from afinidad.matching.commonalities import CommonalityExtractor
from afinidad.matching.engine import MatchingEngine, MatchesResult
from afinidad.matching.pool import CandidatePoolBuilder
from afinidad.matching.ranking import (
    RankingAssembler,
    compute_metrics,
    placeholder_match_set,
    visible,
)
from afinidad.matching.scoring import ScoringEngine, ScoreResult
from afinidad.matching.starters import ConversationStarterGenerator, template_starters

__all__ = [
    "MatchingEngine",
    "MatchesResult",
    "CandidatePoolBuilder",
    "ScoringEngine",
    "ScoreResult",
    "CommonalityExtractor",
    "classify",
    "HIGH_AFFINITY_THRESHOLD",
    "ConversationStarterGenerator",
    "template_starters",
    "RankingAssembler",
    "compute_metrics",
    "placeholder_match_set",
    "visible",
]
