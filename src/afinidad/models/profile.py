"""
Modelo de Perfil y Respuestas del cuestionario.

Las respuestas del cuestionario llegan como datos key-value poco tipados.
Acá se normalizan a una unión etiquetada (texto, opciones, numérica)
para que el motor de scoring no dependa de strings sueltos.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = structlog.get_logger()


def normalize_token(value: str) -> str:
    """Normaliza un valor de respuesta para comparaciones."""
    return " ".join(str(value).strip().lower().split())


class Profile(BaseModel):
    """
    Participante del evento.

    Lo administra el repositorio de perfiles; el motor nunca lo modifica.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(..., description="Identificador del usuario")
    name: str = Field("", description="Nombre visible")
    email: Optional[str] = Field(None, description="Identidad secundaria (contacto)")
    position: Optional[str] = Field(None, description="Rol, ej: 'VP of Engineering'")
    title: Optional[str] = Field(None, description="Título, ej: 'Engineering Leader'")
    company: Optional[str] = Field(None, description="Organización")
    questionnaire_completed: bool = Field(
        default=False, description="Completó el cuestionario de intake"
    )

    @property
    def first_name(self) -> str:
        parts = self.name.strip().split()
        return parts[0] if parts else ""

    @property
    def role(self) -> Optional[str]:
        """Rol visible: position si existe, si no title."""
        return (self.position or self.title or "").strip() or None

    @property
    def organization(self) -> Optional[str]:
        return (self.company or "").strip() or None


class TextAnswer(BaseModel):
    """Respuesta de opción única o texto libre."""

    kind: Literal["text"] = "text"
    value: str

    def tokens(self) -> set[str]:
        return {normalize_token(self.value)}


class ChoicesAnswer(BaseModel):
    """Respuesta multi-select."""

    kind: Literal["choices"] = "choices"
    values: list[str] = Field(default_factory=list)

    def tokens(self) -> set[str]:
        return {normalize_token(v) for v in self.values if str(v).strip()}


class NumericAnswer(BaseModel):
    """Respuesta numérica (slider)."""

    kind: Literal["numeric"] = "numeric"
    value: float

    def tokens(self) -> set[str]:
        return {f"{self.value:g}"}


Answer = Annotated[
    Union[TextAnswer, ChoicesAnswer, NumericAnswer],
    Field(discriminator="kind"),
]

_ANSWER_ADAPTER = TypeAdapter(Answer)


def coerce_answer(raw: Any) -> Optional[dict]:
    """
    Convierte un valor crudo del cuestionario a la forma etiquetada.

    Returns:
        Dict listo para validar como Answer, o None si el valor está vacío
    """
    if raw is None:
        return None
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if isinstance(raw, dict):
        return raw if "kind" in raw else None
    if isinstance(raw, bool):
        return {"kind": "text", "value": "yes" if raw else "no"}
    if isinstance(raw, (int, float)):
        return {"kind": "numeric", "value": float(raw)}
    if isinstance(raw, (list, tuple, set)):
        values = [str(v).strip() for v in raw if v is not None and str(v).strip()]
        return {"kind": "choices", "values": values} if values else None

    text = str(raw).strip()
    return {"kind": "text", "value": text} if text else None


class ResponseSet(BaseModel):
    """Respuestas del cuestionario de un usuario (una por perfil)."""

    user_id: str = Field(..., description="FK al Profile")
    answers: dict[str, Answer] = Field(default_factory=dict)

    @field_validator("answers", mode="before")
    @classmethod
    def _coerce_answers(cls, value: Any) -> dict:
        if not value:
            return {}
        if not isinstance(value, dict):
            logger.warning("Respuestas con formato inválido, se ignoran", type=type(value).__name__)
            return {}

        # Una respuesta inválida se descarta sola, no invalida el set completo
        coerced = {}
        for question_id, raw in value.items():
            answer = coerce_answer(raw)
            if answer is None:
                continue
            try:
                coerced[question_id] = _ANSWER_ADAPTER.validate_python(answer)
            except ValidationError as e:
                logger.warning(
                    "Respuesta inválida, se descarta",
                    question_id=question_id,
                    errors=e.error_count(),
                )
        return coerced

    def get(self, question_id: str):
        return self.answers.get(question_id)

    def is_empty(self) -> bool:
        return not self.answers

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return {
            "user_id": self.user_id,
            "responses": {
                key: answer.model_dump() for key, answer in self.answers.items()
            },
        }


@dataclass
class Candidate:
    """Proyección local del motor: perfil + respuestas. Nunca se persiste."""

    profile: Profile
    responses: Optional[ResponseSet] = None

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def has_responses(self) -> bool:
        return self.responses is not None and not self.responses.is_empty()
