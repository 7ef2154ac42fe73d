"""
Extractor de commonalities.

Reglas aditivas e independientes; cada una aporta como máximo una
commonality con peso fijo (no depende del tamaño del solapamiento).
Si no dispara ninguna regla se sintetiza una commonality genérica.
"""

from typing import Optional

from afinidad.matching import questions as q
from afinidad.models import (
    Candidate,
    ChoicesAnswer,
    Commonality,
    CommonalityCategory,
    NumericAnswer,
    Profile,
    ResponseSet,
)
from afinidad.models.profile import normalize_token

INDUSTRY_WEIGHT = 0.9
ROLE_WEIGHT = 0.8
GOALS_WEIGHT = 0.75
INTERESTS_WEIGHT = 0.7
LIFESTYLE_WEIGHT = 0.6
VALUES_WEIGHT = 0.75
SAME_COMPANY_WEIGHT = 0.65
GENERIC_WEIGHT = 0.6

GENERIC_DESCRIPTION = "Both here to connect with fellow leaders"


def _answer_values(answer) -> list[str]:
    if isinstance(answer, ChoicesAnswer):
        return list(answer.values)
    if isinstance(answer, NumericAnswer):
        return [f"{answer.value:g}"]
    return [answer.value]


def shared_values(mine: ResponseSet, theirs: ResponseSet, question_id: str) -> list[str]:
    """Valores del usuario que también eligió el candidato, en el orden del usuario."""
    a = mine.get(question_id)
    b = theirs.get(question_id)
    if a is None or b is None:
        return []

    their_tokens = b.tokens()
    result = []
    seen = set()
    for value in _answer_values(a):
        token = normalize_token(value)
        if token in their_tokens and token not in seen:
            seen.add(token)
            result.append(value)
    return result


def _shared_for_facet(mine: ResponseSet, theirs: ResponseSet, facet: str) -> list[tuple[str, str]]:
    """Pares (question_id, valor) compartidos para todas las preguntas de una faceta."""
    pairs = []
    for question_id in q.questions_for_facet(facet):
        for value in shared_values(mine, theirs, question_id):
            pairs.append((question_id, value))
    return pairs


def _dedupe_values(pairs: list[tuple[str, str]]) -> list[str]:
    seen = set()
    values = []
    for _, value in pairs:
        token = normalize_token(value)
        if token not in seen:
            seen.add(token)
            values.append(q.format_value(value))
    return values


class CommonalityExtractor:
    """Genera la lista ordenada de commonalities de un par."""

    def extract(
        self,
        requester: Profile,
        responses: Optional[ResponseSet],
        candidate: Candidate,
    ) -> list[Commonality]:
        commonalities: list[Commonality] = []

        if responses is not None and candidate.has_responses:
            commonalities.extend(self._from_responses(responses, candidate.responses))

        if not commonalities:
            commonalities.extend(self._from_profiles(requester, candidate.profile))

        if not commonalities:
            commonalities.append(
                Commonality(
                    category=CommonalityCategory.PROFESSIONAL,
                    description=GENERIC_DESCRIPTION,
                    weight=GENERIC_WEIGHT,
                )
            )
        return commonalities

    def _from_responses(self, mine: ResponseSet, theirs: ResponseSet) -> list[Commonality]:
        result = []

        industry = _dedupe_values(_shared_for_facet(mine, theirs, q.INDUSTRY))
        if industry:
            result.append(Commonality(
                category=CommonalityCategory.PROFESSIONAL,
                description=f"Both work in {industry[0]}",
                weight=INDUSTRY_WEIGHT,
            ))

        role = _shared_for_facet(mine, theirs, q.ROLE)
        if role:
            details = [
                f"{q.QUESTION_CATALOG[qid].label} {q.format_value(value)}"
                for qid, value in role[:2]
            ]
            result.append(Commonality(
                category=CommonalityCategory.PROFESSIONAL,
                description=f"Similar leadership context: {', '.join(details)}",
                weight=ROLE_WEIGHT,
            ))

        goals = _dedupe_values(_shared_for_facet(mine, theirs, q.GOALS))
        if goals:
            result.append(Commonality(
                category=CommonalityCategory.PROFESSIONAL,
                description=f"Shared priorities: {', '.join(goals[:2])}",
                weight=GOALS_WEIGHT,
            ))

        interests = _dedupe_values(_shared_for_facet(mine, theirs, q.INTERESTS))
        if interests:
            result.append(Commonality(
                category=CommonalityCategory.HOBBY,
                description=f"Both enjoy {' and '.join(interests[:2])}",
                weight=INTERESTS_WEIGHT,
            ))

        lifestyle = _dedupe_values(_shared_for_facet(mine, theirs, q.LIFESTYLE))
        if lifestyle:
            result.append(Commonality(
                category=CommonalityCategory.LIFESTYLE,
                description=f"Similar lifestyle: {', '.join(lifestyle[:2])}",
                weight=LIFESTYLE_WEIGHT,
            ))

        values = _dedupe_values(_shared_for_facet(mine, theirs, q.VALUES))
        if values:
            result.append(Commonality(
                category=CommonalityCategory.VALUES,
                description=f"Shared values: {', '.join(values[:2])}",
                weight=VALUES_WEIGHT,
            ))

        return result

    def _from_profiles(self, requester: Profile, other: Profile) -> list[Commonality]:
        """Reglas sobre atributos básicos del perfil (modo fallback)."""
        mine = requester.organization
        theirs = other.organization
        if mine and theirs and normalize_token(mine) == normalize_token(theirs):
            return [Commonality(
                category=CommonalityCategory.PROFESSIONAL,
                description=f"Both at {theirs}",
                weight=SAME_COMPANY_WEIGHT,
            )]
        return []
