"""
Generador de conversation starters con LLM.

Capa de enriquecimiento opcional: si falla, el motor se queda con
los starters de template. No reintenta: una llamada lenta es una
llamada fallida.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import structlog

from afinidad.analysis.llm_providers import (
    BaseLLMProvider,
    get_llm_provider,
    provider_configured,
)
from afinidad.config import Settings, get_settings
from afinidad.errors import EnrichmentUnavailableError
from afinidad.models import MatchType

logger = structlog.get_logger()

MAX_OPENERS = 2
MIN_OPENER_LENGTH = 10
MAX_OPENER_LENGTH = 200


OPENERS_SYSTEM_PROMPT = (
    "You are a professional networking assistant for a leadership conference app. "
    "Generate 1-2 short, warm, personable conversation starters for someone about "
    "to meet a new connection. Each starter is one sentence, feels genuine (not "
    "corporate) and references the specific shared context. "
    "Return ONLY the starters, one per line. No numbering, no quotes."
)

OPENERS_USER_PROMPT_TEMPLATE = """Generate conversation starters for {requester_name} to use when meeting {candidate_name}.
Match type: {match_type}
Their role: {role}
Their company: {organization}
What they have in common: {commonalities}"""


@dataclass
class OpenerContext:
    """Contexto mínimo que se manda al servicio de enriquecimiento."""

    requester_name: str
    candidate_name: str
    match_type: MatchType
    commonalities: list[str] = field(default_factory=list)
    candidate_role: Optional[str] = None
    candidate_organization: Optional[str] = None


class EnrichmentService(ABC):
    """Servicio externo que propone openers. Best-effort."""

    @abstractmethod
    async def generate_openers(self, context: OpenerContext) -> list[str]:
        """
        Devuelve 1-2 openers.

        Raises:
            EnrichmentUnavailableError: Si no pudo generar nada útil
        """


_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def clean_openers(lines: list[str]) -> list[str]:
    """Limpia viñetas y comillas, filtra por largo y corta en 2."""
    cleaned = []
    for line in lines:
        text = _BULLET.sub("", str(line)).strip().strip('"').strip("“”").strip()
        if MIN_OPENER_LENGTH <= len(text) <= MAX_OPENER_LENGTH:
            cleaned.append(text)
    return cleaned[:MAX_OPENERS]


class LLMOpenerGenerator(EnrichmentService):
    """Genera openers con el proveedor LLM configurado (Groq o Gemini)."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._provider: BaseLLMProvider = provider or get_llm_provider(
            settings=self.settings
        )

    def _build_prompt(self, context: OpenerContext) -> str:
        return OPENERS_USER_PROMPT_TEMPLATE.format(
            requester_name=context.requester_name or "the attendee",
            candidate_name=context.candidate_name or "their match",
            match_type=context.match_type.value,
            role=context.candidate_role or "not provided",
            organization=context.candidate_organization or "not provided",
            commonalities="; ".join(context.commonalities) or "not provided",
        )

    async def generate_openers(self, context: OpenerContext) -> list[str]:
        response = await self._provider.generate(
            system_prompt=OPENERS_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(context),
            temperature=self.settings.enrichment_temperature,
            max_tokens=160,
        )

        openers = clean_openers((response.text or "").splitlines())
        if not openers:
            raise EnrichmentUnavailableError(
                f"Respuesta vacía de {response.provider}/{response.model}"
            )

        logger.debug(
            "Openers generados",
            provider=response.provider,
            candidate=context.candidate_name,
            count=len(openers),
        )
        return openers


def build_enrichment_service(settings: Optional[Settings] = None) -> Optional[EnrichmentService]:
    """
    Arma el servicio de enriquecimiento si está habilitado y configurado.

    Returns:
        LLMOpenerGenerator, o None si no hay proveedor disponible
    """
    settings = settings or get_settings()
    if not settings.enrichment_enabled:
        return None
    if not provider_configured(settings):
        logger.info(
            "Enriquecimiento deshabilitado: proveedor LLM sin API key",
            provider=settings.llm_provider,
        )
        return None

    try:
        return LLMOpenerGenerator(settings=settings)
    except (ValueError, ImportError) as e:
        logger.warning("No se pudo inicializar el proveedor LLM", error=str(e))
        return None
