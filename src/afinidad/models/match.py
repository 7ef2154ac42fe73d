"""
Modelos de Match y MatchSet.

Un Match se genera por par (usuario, candidato) en cada cómputo y se
reemplaza completo en el siguiente. Sólo `viewed` y `passed` pueden
cambiar después de creado.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from afinidad.models.profile import Profile

# Prefijo reservado para el set de demo (cold start)
PLACEHOLDER_MATCH_PREFIX = "demo-match-"
PLACEHOLDER_USER_PREFIX = "demo-user-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommonalityCategory(str, Enum):
    PROFESSIONAL = "professional"
    HOBBY = "hobby"
    LIFESTYLE = "lifestyle"
    VALUES = "values"


class MatchType(str, Enum):
    HIGH_AFFINITY = "high-affinity"
    STRATEGIC = "strategic"


class ScoringMode(str, Enum):
    """Cómo se obtuvo el score de un match."""

    WEIGHTED = "weighted"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"


class Commonality(BaseModel):
    """Justificación categorizada de por qué dos personas pueden conectar."""

    category: CommonalityCategory
    description: str = Field(..., min_length=1)
    weight: float = Field(..., ge=0, le=1)


class Match(BaseModel):
    """Resultado de matching entre el usuario y un candidato."""

    id: str = Field(..., description="ID del match")
    user_id: str = Field(..., description="Usuario que pidió los matches")
    matched_user_id: str = Field(..., description="Candidato matcheado")
    matched_profile: Profile = Field(..., description="Snapshot del perfil del candidato")
    type: MatchType
    commonalities: list[Commonality] = Field(..., min_length=1)
    conversation_starters: list[str] = Field(default_factory=list, max_length=2)
    score: float = Field(..., ge=0, le=1)
    scoring_mode: ScoringMode = Field(default=ScoringMode.WEIGHTED)
    generated_at: datetime = Field(default_factory=utcnow)
    viewed: bool = False
    passed: bool = False

    @model_validator(mode="after")
    def _not_self_match(self) -> "Match":
        if self.matched_user_id == self.user_id:
            raise ValueError("Un usuario no puede matchearse consigo mismo")
        return self

    @property
    def is_placeholder(self) -> bool:
        return self.id.startswith(PLACEHOLDER_MATCH_PREFIX)

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        data = self.model_dump(mode="json", exclude={"matched_profile"})
        data["matched_profile"] = self.matched_profile.model_dump()
        return data


class QualityMetrics(BaseModel):
    """Agregados aritméticos sobre los matches visibles."""

    count: int = 0
    average_score: float = 0.0
    high_affinity_count: int = 0
    strategic_count: int = 0
    category_distribution: dict[str, int] = Field(default_factory=dict)


class MatchSet(BaseModel):
    """Lista ordenada y cacheada de matches de un usuario."""

    user_id: str
    matches: list[Match] = Field(default_factory=list)
    metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    generated_at: datetime = Field(default_factory=utcnow)
    is_placeholder: bool = False
    eligible: bool = True

    @field_validator("matches")
    @classmethod
    def _sorted_by_score(cls, value: list[Match]) -> list[Match]:
        for previous, current in zip(value, value[1:]):
            if previous.score < current.score:
                raise ValueError("Los matches deben estar ordenados por score descendente")
        return value

    @property
    def ids(self) -> list[str]:
        return [m.id for m in self.matches]

    def find(self, match_id: str) -> Optional[Match]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None
