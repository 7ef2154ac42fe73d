"""
Ranking y métricas de calidad.

También arma el set de demo para cold start (pool vacío). Esos matches
llevan el prefijo reservado `demo-match-` y nunca se persisten.
"""

from collections import Counter
from datetime import datetime
from typing import Hashable, Optional

from afinidad.matching.classifier import classify
from afinidad.models import (
    Commonality,
    CommonalityCategory,
    Match,
    MatchSet,
    MatchType,
    Profile,
    QualityMetrics,
    ScoringMode,
    PLACEHOLDER_MATCH_PREFIX,
    PLACEHOLDER_USER_PREFIX,
    ResponseSet,
)
from afinidad.models.match import utcnow


def compute_metrics(matches: list[Match]) -> QualityMetrics:
    """Agregados sobre los matches recibidos (ya filtrados)."""
    if not matches:
        return QualityMetrics()

    categories = Counter(
        c.category.value for match in matches for c in match.commonalities
    )
    return QualityMetrics(
        count=len(matches),
        average_score=sum(m.score for m in matches) / len(matches),
        high_affinity_count=sum(1 for m in matches if m.type == MatchType.HIGH_AFFINITY),
        strategic_count=sum(1 for m in matches if m.type == MatchType.STRATEGIC),
        category_distribution=dict(categories),
    )


def visible(match_set: MatchSet) -> MatchSet:
    """Vista sin los matches descartados (passed), con métricas recalculadas."""
    shown = [m for m in match_set.matches if not m.passed]
    return match_set.model_copy(
        update={"matches": shown, "metrics": compute_metrics(shown)}
    )


# Preguntas que definen el "perfil" de un candidato a efectos de diversidad
DIVERSITY_QUESTIONS = ("industry", "leadershipLevel")


def diversity_key(responses: Optional[ResponseSet]) -> tuple:
    """(industria, nivel) normalizados; vacío donde no hay respuesta."""
    key = []
    for question_id in DIVERSITY_QUESTIONS:
        answer = responses.get(question_id) if responses is not None else None
        key.append(tuple(sorted(answer.tokens())) if answer is not None else ())
    return tuple(key)


class RankingAssembler:
    """
    Ordena, recorta y calcula métricas de un cómputo completo.

    Si hay más candidatos que `max_matches`, el recorte no es un top-N puro:
    primero entra el mejor de cada combinación industria/nivel distinta y
    después se completa por score. El resultado siempre sale ordenado por
    score descendente.
    """

    def __init__(self, max_matches: int = 20):
        self.max_matches = max_matches

    def assemble(
        self,
        user_id: str,
        matches: list[Match],
        generated_at: Optional[datetime] = None,
        diversity_keys: Optional[dict[str, Hashable]] = None,
    ) -> MatchSet:
        """
        Args:
            diversity_keys: Clave de diversidad por matched_user_id. Sin claves
                el recorte es por score.
        """
        # sorted() es estable: los empates respetan el orden de evaluación
        ranked = sorted(matches, key=lambda m: m.score, reverse=True)

        selected = self._select([m for m in ranked if not m.passed], diversity_keys or {})
        # Los passed se conservan para no perder el flag en el próximo recómputo
        kept = [m for m in ranked if m.passed or m.id in selected]

        return MatchSet(
            user_id=user_id,
            matches=kept,
            metrics=compute_metrics([m for m in kept if not m.passed]),
            generated_at=generated_at or utcnow(),
        )

    def _select(self, ranked: list[Match], diversity_keys: dict[str, Hashable]) -> set[str]:
        if len(ranked) <= self.max_matches or not diversity_keys:
            return {m.id for m in ranked[: self.max_matches]}

        selected: set[str] = set()
        seen = set()
        for match in ranked:
            key = diversity_keys.get(match.matched_user_id)
            if key not in seen:
                seen.add(key)
                selected.add(match.id)
                if len(selected) == self.max_matches:
                    return selected

        for match in ranked:
            if len(selected) == self.max_matches:
                break
            selected.add(match.id)
        return selected


# Contenido ilustrativo para cold start
_DEMO_ENTRIES = [
    {
        "name": "Sarah Chen",
        "position": "VP of Engineering",
        "title": "Engineering Leader",
        "company": "TechCorp",
        "score": 0.92,
        "commonalities": [
            ("professional", "Both in Technology industry", 0.9),
            ("professional", "Similar team scaling challenges", 0.85),
            ("hobby", "Both enjoy hiking and outdoor adventures", 0.7),
            ("values", "Share servant leadership philosophy", 0.8),
        ],
        "starters": [
            "Ask Sarah about her experience scaling engineering teams from 20 to 100+",
            "Compare notes on your approaches to talent retention in tech",
        ],
    },
    {
        "name": "Elena Rodriguez",
        "position": "CEO",
        "title": "Founder & CEO",
        "company": "InnovateCo",
        "score": 0.89,
        "commonalities": [
            ("professional", "Both founders/entrepreneurs", 0.95),
            ("professional", "Similar growth stage challenges", 0.85),
            ("values", "Passionate about mentorship", 0.75),
        ],
        "starters": [
            "Elena just closed Series B - ask about her fundraising journey",
            "Compare your approaches to building executive teams",
        ],
    },
    {
        "name": "David Park",
        "position": "VP of Product",
        "title": "Product Leader",
        "company": "ScaleUp Inc",
        "score": 0.84,
        "commonalities": [
            ("professional", "Both VP-level in tech companies", 0.9),
            ("professional", "Shared focus on innovation", 0.85),
            ("hobby", "Both enjoy leadership podcasts", 0.6),
        ],
        "starters": [
            "David has been implementing OKRs - ask about his experience",
            "Discuss product-engineering collaboration strategies",
        ],
    },
    {
        "name": "Marcus Johnson",
        "position": "Chief People Officer",
        "title": "HR Executive",
        "company": "GrowthStartup",
        "score": 0.78,
        "commonalities": [
            ("professional", "Complementary expertise: Tech + People", 0.85),
            ("professional", "Both focused on organizational transformation", 0.8),
            ("lifestyle", "Both value work-life integration", 0.6),
        ],
        "starters": [
            "Marcus's people expertise could help with your talent retention challenges",
            "Discuss the intersection of tech and culture in scaling organizations",
        ],
    },
    {
        "name": "Aisha Patel",
        "position": "CTO",
        "title": "Technology Executive",
        "company": "FinanceFlow",
        "score": 0.76,
        "commonalities": [
            ("professional", "Complementary industries: Tech + Finance", 0.85),
            ("professional", "Both driving digital transformation", 0.8),
            ("values", "Data-driven decision making", 0.7),
        ],
        "starters": [
            "Learn how Aisha approaches fintech compliance challenges",
            "Explore cross-industry perspectives on digital transformation",
        ],
    },
    {
        "name": "James Wilson",
        "position": "Director of Operations",
        "title": "Operations Leader",
        "company": "LogiTech Solutions",
        "score": 0.72,
        "commonalities": [
            ("professional", "Cross-functional expertise opportunity", 0.8),
            ("professional", "Both focused on operational excellence", 0.75),
            ("lifestyle", "Similar communication styles", 0.6),
        ],
        "starters": [
            "James excels at process optimization - valuable for scaling teams",
            "Discuss how to bridge tech and operations perspectives",
        ],
    },
]

PLACEHOLDER_SIZE = len(_DEMO_ENTRIES)


def placeholder_match_set(user_id: str, generated_at: Optional[datetime] = None) -> MatchSet:
    """
    Set fijo y claramente sintético para cuando no hay candidatos.

    Los IDs son `demo-match-<n>` / `demo-user-<n>` y nunca chocan con IDs reales.
    """
    now = generated_at or utcnow()
    matches = []
    for index, entry in enumerate(_DEMO_ENTRIES, start=1):
        demo_user_id = f"{PLACEHOLDER_USER_PREFIX}{index}"
        matches.append(
            Match(
                id=f"{PLACEHOLDER_MATCH_PREFIX}{index}",
                user_id=user_id,
                matched_user_id=demo_user_id,
                matched_profile=Profile(
                    id=demo_user_id,
                    name=entry["name"],
                    position=entry["position"],
                    title=entry["title"],
                    company=entry["company"],
                    questionnaire_completed=True,
                ),
                type=classify(entry["score"]),
                commonalities=[
                    Commonality(
                        category=CommonalityCategory(category),
                        description=description,
                        weight=weight,
                    )
                    for category, description, weight in entry["commonalities"]
                ],
                conversation_starters=list(entry["starters"]),
                score=entry["score"],
                scoring_mode=ScoringMode.PLACEHOLDER,
                generated_at=now,
            )
        )

    return MatchSet(
        user_id=user_id,
        matches=matches,
        metrics=compute_metrics(matches),
        generated_at=now,
        is_placeholder=True,
    )
