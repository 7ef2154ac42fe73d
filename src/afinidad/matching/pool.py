"""
Armado del pool de candidatos.

Descarta al propio usuario (por ID y por email), perfiles incompletos
y duplicados. Las respuestas de los candidatos se leen en paralelo.
"""

import asyncio
from typing import Optional

import structlog

from afinidad.database import ProfileRepository
from afinidad.models import Candidate, Profile

logger = structlog.get_logger()


def _email_key(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email and email.strip() else None


class CandidatePoolBuilder:
    """Lee perfiles elegibles y les adjunta sus respuestas."""

    def __init__(self, profiles: ProfileRepository):
        self.profiles = profiles

    def filter_profiles(self, requester: Profile, profiles: list[Profile]) -> list[Profile]:
        """Aplica las exclusiones sobre la lista cruda del repositorio."""
        requester_email = _email_key(requester.email)
        seen_ids: set[str] = set()
        seen_emails: set[str] = set()
        kept = []

        for profile in profiles:
            if profile.id == requester.id:
                continue
            email = _email_key(profile.email)
            if requester_email and email == requester_email:
                continue
            if not profile.questionnaire_completed or not profile.name.strip():
                continue
            if profile.id in seen_ids or (email and email in seen_emails):
                continue

            seen_ids.add(profile.id)
            if email:
                seen_emails.add(email)
            kept.append(profile)

        return kept

    async def build(self, requester: Profile) -> list[Candidate]:
        """
        Devuelve los candidatos para el usuario, en el orden del repositorio.

        Un pool vacío no es un error.
        """
        raw = await self.profiles.list_completed_profiles(excluding=requester.id)
        profiles = self.filter_profiles(requester, raw)

        responses = await asyncio.gather(
            *(self.profiles.get_responses(p.id) for p in profiles)
        )
        candidates = [
            Candidate(profile=profile, responses=response_set)
            for profile, response_set in zip(profiles, responses)
        ]

        logger.info(
            "Pool de candidatos armado",
            user_id=requester.id,
            raw=len(raw),
            candidates=len(candidates),
        )
        return candidates
