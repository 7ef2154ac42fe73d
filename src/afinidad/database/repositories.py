"""
Repositorios de perfiles, respuestas y matches.

Cada repositorio define una interfaz async; hay una implementación sobre
Supabase (tablas user_profiles, questionnaire_responses y matches) y una
en memoria usada por tests y por el script de fixtures.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional

import structlog
from tenacity import retry, stop_after_attempt, wait_exponential

from afinidad.database.supabase_client import get_supabase_client, SupabaseClient
from afinidad.errors import RepositoryUnavailableError
from afinidad.models import Match, Profile, ResponseSet

logger = structlog.get_logger()


class ProfileRepository(ABC):
    """Lectura de perfiles y respuestas. El motor nunca escribe acá."""

    @abstractmethod
    async def list_completed_profiles(self, excluding: Optional[str] = None) -> list[Profile]:
        """Perfiles con el cuestionario completo, sin el usuario `excluding`."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    async def get_responses(self, user_id: str) -> Optional[ResponseSet]:
        ...


class MatchRepository(ABC):
    """Persistencia de los matches computados."""

    @abstractmethod
    async def replace_matches(self, user_id: str, matches: list[Match]) -> None:
        """Reemplaza todos los matches del usuario por los nuevos."""

    @abstractmethod
    async def list_matches(self, user_id: str) -> list[Match]:
        ...

    @abstractmethod
    async def set_passed(self, user_id: str, match_id: str, passed: bool = True) -> Optional[Match]:
        """Marca un match como descartado. None si no existe."""

    @abstractmethod
    async def set_viewed(self, user_id: str, match_id: str, viewed: bool = True) -> Optional[Match]:
        """Marca un match como visto. None si no existe."""


# =============================================================================
# En memoria
# =============================================================================


class InMemoryProfileRepository(ProfileRepository):
    def __init__(
        self,
        profiles: Optional[Iterable[Profile]] = None,
        responses: Optional[Iterable[ResponseSet]] = None,
    ):
        self._profiles: dict[str, Profile] = {}
        self._responses: dict[str, ResponseSet] = {}
        for profile in profiles or []:
            self.add_profile(profile)
        for response_set in responses or []:
            self.set_responses(response_set)

    def add_profile(self, profile: Profile) -> None:
        self._profiles[profile.id] = profile

    def set_responses(self, responses: ResponseSet) -> None:
        self._responses[responses.user_id] = responses

    async def list_completed_profiles(self, excluding: Optional[str] = None) -> list[Profile]:
        return [
            p for p in self._profiles.values()
            if p.questionnaire_completed and p.id != excluding
        ]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

    async def get_responses(self, user_id: str) -> Optional[ResponseSet]:
        return self._responses.get(user_id)


class InMemoryMatchRepository(MatchRepository):
    def __init__(self):
        self._matches: dict[str, list[Match]] = {}

    async def replace_matches(self, user_id: str, matches: list[Match]) -> None:
        self._matches[user_id] = [m.model_copy(deep=True) for m in matches]

    async def list_matches(self, user_id: str) -> list[Match]:
        return [m.model_copy(deep=True) for m in self._matches.get(user_id, [])]

    async def set_passed(self, user_id: str, match_id: str, passed: bool = True) -> Optional[Match]:
        return self._update(user_id, match_id, {"passed": passed})

    async def set_viewed(self, user_id: str, match_id: str, viewed: bool = True) -> Optional[Match]:
        return self._update(user_id, match_id, {"viewed": viewed})

    def _update(self, user_id: str, match_id: str, changes: dict) -> Optional[Match]:
        matches = self._matches.get(user_id, [])
        for i, match in enumerate(matches):
            if match.id == match_id:
                matches[i] = match.model_copy(update=changes)
                return matches[i].model_copy(deep=True)
        return None


# =============================================================================
# Supabase
# =============================================================================


class BaseRepository:
    """Clase base para repositorios sobre Supabase."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client

    async def _run(self, operation: str, query: Callable[[], Any]) -> Any:
        """
        Ejecuta una query síncrona del cliente en un thread, con reintentos.

        Raises:
            RepositoryUnavailableError: Si falla después de los reintentos
        """
        try:
            return await self._run_with_retry(query)
        except Exception as e:
            logger.error("Error en repositorio", operation=operation, error=str(e))
            raise RepositoryUnavailableError(f"Falló {operation}", cause=e) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _run_with_retry(self, query: Callable[[], Any]) -> Any:
        return await asyncio.to_thread(query)


def profile_from_row(row: dict) -> Profile:
    return Profile(
        id=str(row["id"]),
        name=row.get("name") or "",
        email=row.get("email"),
        position=row.get("position"),
        title=row.get("title"),
        company=row.get("company"),
        questionnaire_completed=bool(row.get("questionnaire_completed")),
    )


class SupabaseProfileRepository(BaseRepository, ProfileRepository):
    """Perfiles (user_profiles) y respuestas (questionnaire_responses)."""

    PROFILES_TABLE = "user_profiles"
    RESPONSES_TABLE = "questionnaire_responses"
    PROFILE_COLUMNS = "id, name, email, position, title, company, questionnaire_completed"

    async def list_completed_profiles(self, excluding: Optional[str] = None) -> list[Profile]:
        def query():
            builder = (
                self.client.table(self.PROFILES_TABLE)
                .select(self.PROFILE_COLUMNS)
                .eq("questionnaire_completed", True)
            )
            if excluding:
                builder = builder.neq("id", excluding)
            return builder.execute()

        response = await self._run("list_completed_profiles", query)

        profiles = []
        for row in response.data or []:
            try:
                profiles.append(profile_from_row(row))
            except (KeyError, ValueError) as e:
                logger.warning("Perfil inválido ignorado", row_id=row.get("id"), error=str(e))
        return profiles

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        response = await self._run(
            "get_profile",
            lambda: (
                self.client.table(self.PROFILES_TABLE)
                .select(self.PROFILE_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            ),
        )
        return profile_from_row(response.data[0]) if response.data else None

    async def get_responses(self, user_id: str) -> Optional[ResponseSet]:
        response = await self._run(
            "get_responses",
            lambda: (
                self.client.table(self.RESPONSES_TABLE)
                .select("user_id, responses")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            ),
        )
        if not response.data:
            return None
        row = response.data[0]
        return ResponseSet(user_id=str(row["user_id"]), answers=row.get("responses") or {})


class SupabaseMatchRepository(BaseRepository, MatchRepository):
    """Matches computados (tabla matches)."""

    TABLE = "matches"

    async def replace_matches(self, user_id: str, matches: list[Match]) -> None:
        await self._run(
            "delete_matches",
            lambda: self.client.table(self.TABLE).delete().eq("user_id", user_id).execute(),
        )
        if not matches:
            return

        rows = [m.to_db_dict() for m in matches]
        await self._run(
            "insert_matches",
            lambda: self.client.table(self.TABLE).insert(rows).execute(),
        )
        logger.info("Matches persistidos", user_id=user_id, count=len(rows))

    async def list_matches(self, user_id: str) -> list[Match]:
        response = await self._run(
            "list_matches",
            lambda: (
                self.client.table(self.TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("score", desc=True)
                .execute()
            ),
        )
        return [Match.model_validate(row) for row in response.data or []]

    async def set_passed(self, user_id: str, match_id: str, passed: bool = True) -> Optional[Match]:
        return await self._update(user_id, match_id, {"passed": passed})

    async def set_viewed(self, user_id: str, match_id: str, viewed: bool = True) -> Optional[Match]:
        return await self._update(user_id, match_id, {"viewed": viewed})

    async def _update(self, user_id: str, match_id: str, changes: dict) -> Optional[Match]:
        response = await self._run(
            "update_match",
            lambda: (
                self.client.table(self.TABLE)
                .update(changes)
                .eq("id", match_id)
                .eq("user_id", user_id)
                .execute()
            ),
        )
        return Match.model_validate(response.data[0]) if response.data else None
