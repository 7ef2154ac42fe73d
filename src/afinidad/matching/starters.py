"""
Generador de conversation starters.

Dos capas:
1. Templates (siempre disponible, sincrónica)
2. Enriquecimiento con LLM (opcional, concurrente, aislado por match)
"""

import asyncio
from typing import Optional

import structlog

from afinidad.analysis.opener_generator import EnrichmentService, OpenerContext, clean_openers
from afinidad.models import Match, MatchType, Profile

logger = structlog.get_logger()


def template_starters(profile: Profile, match_type: MatchType) -> list[str]:
    """Hasta 2 starters armados con nombre, rol y organización del candidato."""
    name = profile.first_name or "them"
    role = profile.role
    organization = profile.organization

    if role and organization:
        first = f"Ask {name} what's top of mind for them as {role} at {organization}"
    elif role:
        first = f"Ask {name} how they approach their work as {role}"
    elif organization:
        first = f"Ask {name} what they're building at {organization}"
    else:
        first = f"Ask {name} what brought them to this event"

    if match_type == MatchType.HIGH_AFFINITY:
        second = f"Compare notes with {name} on the challenges you have in common"
    else:
        second = f"Explore how {name}'s perspective could complement yours"

    return [first, second]


class ConversationStarterGenerator:
    """
    Arma los starters de cada match.

    El enriquecimiento corre en paralelo para todos los matches de un
    usuario, con timeout por llamada. Cualquier falla deja el template.
    """

    def __init__(
        self,
        enrichment: Optional[EnrichmentService] = None,
        timeout_seconds: float = 4.0,
    ):
        self.enrichment = enrichment
        self.timeout_seconds = timeout_seconds

    def template(self, profile: Profile, match_type: MatchType) -> list[str]:
        return template_starters(profile, match_type)

    async def enrich(self, requester: Profile, matches: list[Match]) -> list[Match]:
        """
        Reemplaza los starters de template por los del LLM cuando se puede.

        Returns:
            Lista de matches en el mismo orden, algunos con starters nuevos
        """
        if self.enrichment is None or not matches:
            return matches

        results = await asyncio.gather(
            *(self._enrich_one(requester, match) for match in matches)
        )

        enriched = sum(
            1 for before, after in zip(matches, results)
            if after.conversation_starters != before.conversation_starters
        )
        logger.info(
            "Enriquecimiento de starters completado",
            user_id=requester.id,
            total=len(matches),
            enriched=enriched,
        )
        return list(results)

    async def _enrich_one(self, requester: Profile, match: Match) -> Match:
        context = OpenerContext(
            requester_name=requester.first_name,
            candidate_name=match.matched_profile.first_name,
            match_type=match.type,
            commonalities=[c.description for c in match.commonalities],
            candidate_role=match.matched_profile.role,
            candidate_organization=match.matched_profile.organization,
        )

        try:
            openers = await asyncio.wait_for(
                self.enrichment.generate_openers(context),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Timeout en enriquecimiento, se usa template",
                match_id=match.id,
                timeout=self.timeout_seconds,
            )
            return match
        except Exception as e:
            logger.warning(
                "Error en enriquecimiento, se usa template",
                match_id=match.id,
                error=str(e),
            )
            return match

        openers = clean_openers(openers or [])
        if not openers:
            logger.warning("Enriquecimiento sin openers útiles", match_id=match.id)
            return match

        return match.model_copy(update={"conversation_starters": openers})
