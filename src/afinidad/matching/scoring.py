"""
Motor de scoring entre el usuario y un candidato.

Implementa:
- Modo ponderado: solapamiento por pregunta compartida × peso de la pregunta
- Modo fallback: base fija + perturbación determinística por par de IDs
"""

import hashlib
from dataclasses import dataclass
from typing import Optional

import structlog

from afinidad.config import Settings, get_settings
from afinidad.matching.questions import build_weight_table
from afinidad.models import (
    Candidate,
    ChoicesAnswer,
    NumericAnswer,
    ResponseSet,
    ScoringMode,
)

logger = structlog.get_logger()


@dataclass
class ScoreResult:
    """Score de un par y el modo con el que se calculó."""

    score: float  # 0.0 a 1.0
    mode: ScoringMode
    shared_questions: int = 0


def answer_overlap(a, b) -> float:
    """
    Fracción de solapamiento entre dos respuestas a la misma pregunta.

    - texto: 1 si son iguales, 0 si no
    - opciones: Jaccard
    - numérica: 1 - diferencia relativa
    """
    if isinstance(a, NumericAnswer) and isinstance(b, NumericAnswer):
        scale = max(abs(a.value), abs(b.value))
        if scale == 0:
            return 1.0
        return max(0.0, 1.0 - abs(a.value - b.value) / scale)

    tokens_a = a.tokens()
    tokens_b = b.tokens()
    if isinstance(a, ChoicesAnswer) or isinstance(b, ChoicesAnswer):
        union = tokens_a | tokens_b
        if not union:
            return 0.0
        return len(tokens_a & tokens_b) / len(union)

    return 1.0 if tokens_a == tokens_b else 0.0


def pair_jitter(user_id: str, candidate_id: str) -> float:
    """Valor pseudoaleatorio estable en [0, 1) derivado del par de IDs."""
    digest = hashlib.sha256(f"{user_id}:{candidate_id}".encode()).digest()
    return int.from_bytes(digest[:8], "big") / 2**64


class ScoringEngine:
    """
    Asigna un score de compatibilidad en [0, 1] a un par (usuario, candidato).

    La tabla de pesos sale del catálogo de preguntas más los overrides
    de configuración; no se aprende.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        weights: Optional[dict[str, float]] = None,
    ):
        self.settings = settings or get_settings()
        self.weights = weights if weights is not None else build_weight_table(
            self.settings.question_weights
        )

    def score(
        self,
        user_id: str,
        responses: ResponseSet,
        candidate: Candidate,
    ) -> ScoreResult:
        """
        Calcula el score del candidato para el usuario.

        Si el candidato no tiene respuestas, o no comparte ninguna pregunta
        ponderada con el usuario, usa el modo fallback.
        """
        if not candidate.has_responses:
            return self._fallback(user_id, candidate, partial=False)

        try:
            result = self._weighted(responses, candidate.responses)
        except Exception as e:
            logger.warning(
                "Respuestas del candidato mal formadas, usando fallback",
                user_id=user_id,
                candidate_id=candidate.id,
                error=str(e),
            )
            return self._fallback(user_id, candidate, partial=True)

        if result is None:
            return self._fallback(user_id, candidate, partial=True)
        return result

    def _weighted(
        self, mine: ResponseSet, theirs: ResponseSet
    ) -> Optional[ScoreResult]:
        total = 0.0
        total_weight = 0.0
        shared = 0

        for question_id, weight in self.weights.items():
            a = mine.get(question_id)
            b = theirs.get(question_id)
            if a is None or b is None or weight <= 0:
                continue
            total += weight * answer_overlap(a, b)
            total_weight += weight
            shared += 1

        if total_weight == 0:
            return None

        score = max(0.0, min(1.0, total / total_weight))
        return ScoreResult(score=score, mode=ScoringMode.WEIGHTED, shared_questions=shared)

    def _fallback(self, user_id: str, candidate: Candidate, partial: bool) -> ScoreResult:
        """Score acotado para candidatos sin datos estructurados comparables."""
        s = self.settings
        base = s.fallback_partial_base_score if partial else s.fallback_base_score
        score = base + pair_jitter(user_id, candidate.id) * s.fallback_jitter
        score = max(0.0, min(score, s.fallback_max_score, 1.0))

        logger.debug(
            "Score fallback",
            user_id=user_id,
            candidate_id=candidate.id,
            partial=partial,
            score=round(score, 4),
        )
        return ScoreResult(score=score, mode=ScoringMode.FALLBACK)
