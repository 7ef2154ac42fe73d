"""
Catálogo de preguntas del cuestionario.

Cada pregunta tiene una faceta (qué regla de commonalities la usa),
una categoría de commonality y un peso fijo para el scoring.
Los pesos se pueden pisar por configuración (QUESTION_WEIGHTS).
"""

from dataclasses import dataclass
from typing import Optional

from afinidad.models import CommonalityCategory

# Facetas
INDUSTRY = "industry"
ROLE = "role"
GOALS = "goals"
INTERESTS = "interests"
LIFESTYLE = "lifestyle"
VALUES = "values"


@dataclass(frozen=True)
class QuestionSpec:
    facet: str
    category: CommonalityCategory
    weight: float
    label: str


_P = CommonalityCategory.PROFESSIONAL
_H = CommonalityCategory.HOBBY
_L = CommonalityCategory.LIFESTYLE
_V = CommonalityCategory.VALUES

QUESTION_CATALOG: dict[str, QuestionSpec] = {
    # Contexto de liderazgo (peso alto para matching profesional)
    "industry": QuestionSpec(INDUSTRY, _P, 0.9, "industry"),
    "yearsExperience": QuestionSpec(ROLE, _P, 0.6, "leadership experience"),
    "leadershipLevel": QuestionSpec(ROLE, _P, 0.85, "leadership level"),
    "organizationSize": QuestionSpec(ROLE, _P, 0.5, "organization size"),
    # Objetivos y desafíos
    "leadershipPriorities": QuestionSpec(GOALS, _P, 0.9, "priorities"),
    "leadershipChallenges": QuestionSpec(GOALS, _P, 0.95, "challenges"),
    "growthAreas": QuestionSpec(GOALS, _P, 0.85, "growth areas"),
    "networkingGoals": QuestionSpec(GOALS, _P, 0.8, "networking goals"),
    "leadershipSeason": QuestionSpec(GOALS, _P, 0.5, "leadership season"),
    # Fuera de la oficina
    "rechargeActivities": QuestionSpec(INTERESTS, _H, 0.7, "interests"),
    "customInterests": QuestionSpec(INTERESTS, _H, 0.85, "interests"),
    "contentPreferences": QuestionSpec(INTERESTS, _H, 0.65, "content"),
    "fitnessActivities": QuestionSpec(INTERESTS, _H, 0.6, "fitness"),
    "idealWeekend": QuestionSpec(LIFESTYLE, _L, 0.55, "weekends"),
    "energizers": QuestionSpec(LIFESTYLE, _L, 0.75, "energizers"),
    # Estilo y valores
    "volunteerCauses": QuestionSpec(VALUES, _V, 0.7, "causes"),
    "leadershipPhilosophy": QuestionSpec(VALUES, _V, 0.9, "leadership philosophy"),
    "decisionMakingStyle": QuestionSpec(VALUES, _V, 0.7, "decision making"),
    "failureApproach": QuestionSpec(VALUES, _V, 0.65, "approach to setbacks"),
    "relationshipValues": QuestionSpec(VALUES, _V, 0.85, "relationship values"),
    "communicationStyle": QuestionSpec(VALUES, _V, 0.6, "communication style"),
}


def build_weight_table(overrides: Optional[dict[str, float]] = None) -> dict[str, float]:
    """
    Arma la tabla de pesos por pregunta.

    Args:
        overrides: Pesos a pisar (o agregar) por question_id

    Returns:
        Dict question_id -> peso en [0, 1]

    Raises:
        ValueError: Si algún override está fuera de [0, 1]
    """
    table = {question_id: spec.weight for question_id, spec in QUESTION_CATALOG.items()}
    for question_id, weight in (overrides or {}).items():
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"Peso fuera de rango para '{question_id}': {weight}")
        table[question_id] = weight
    return table


def questions_for_facet(facet: str) -> list[str]:
    return [qid for qid, spec in QUESTION_CATALOG.items() if spec.facet == facet]


def format_value(value: str) -> str:
    """'professional-services' -> 'Professional Services'."""
    return " ".join(word.capitalize() for word in value.replace("-", " ").split())
