"""Clasificación de un match según su score."""

from afinidad.models import MatchType

# Umbral fijo: no es configurable.
HIGH_AFFINITY_THRESHOLD = 0.8


def classify(score: float) -> MatchType:
    """high-affinity si score > 0.8, strategic en otro caso."""
    if score > HIGH_AFFINITY_THRESHOLD:
        return MatchType.HIGH_AFFINITY
    return MatchType.STRATEGIC
