"""
Motor de matching entre participantes.

Implementa:
- Lectura cacheada: si hay un MatchSet vigente se devuelve sin recomputar
- Recómputo: pool → score → clasificación → commonalities → starters → ranking
- Coalescing: recómputos concurrentes del mismo usuario comparten una task
- Rate limit: el recómputo consume cuota, la lectura cacheada no
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

import structlog

from afinidad.analysis import EnrichmentService, build_enrichment_service
from afinidad.cache import RateLimiter, ResultCache
from afinidad.config import RECOMPUTE_MATCHES_ACTION, Settings, get_settings
from afinidad.database import (
    create_supabase_client,
    MatchRepository,
    ProfileRepository,
    SupabaseMatchRepository,
    SupabaseProfileRepository,
)
from afinidad.errors import (
    MatchingError,
    MatchNotFoundError,
    RateLimitedError,
    RepositoryUnavailableError,
)
from afinidad.matching.classifier import classify
from afinidad.matching.commonalities import CommonalityExtractor
from afinidad.matching.pool import CandidatePoolBuilder
from afinidad.matching.ranking import (
    RankingAssembler,
    compute_metrics,
    diversity_key,
    placeholder_match_set,
    visible,
)
from afinidad.matching.scoring import ScoringEngine
from afinidad.matching.starters import ConversationStarterGenerator
from afinidad.models import (
    Candidate,
    Match,
    MatchSet,
    Profile,
    ResponseSet,
    PLACEHOLDER_MATCH_PREFIX,
)
from afinidad.models.match import utcnow

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class MatchesResult:
    """Respuesta de get_matches."""

    match_set: MatchSet  # vista sin los passed
    from_cache: bool


def _with_flag(match_set: MatchSet, match_id: str, **flags: bool) -> MatchSet:
    matches = [
        m.model_copy(update=flags) if m.id == match_id else m
        for m in match_set.matches
    ]
    return match_set.model_copy(
        update={
            "matches": matches,
            "metrics": compute_metrics([m for m in matches if not m.passed]),
        }
    )


class MatchingEngine:
    """
    Punto de entrada del matching.

    Flujo de get_matches:
    1. Cache vigente → se devuelve (from_cache=True)
    2. Si ya hay un recómputo en curso para el usuario, se espera ese
    3. Si no, se verifica elegibilidad y se consume cuota del rate limiter
    4. Se recomputa, se persiste (salvo placeholder) y se cachea
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        matches: MatchRepository,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        enrichment: Optional[EnrichmentService] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.profiles = profiles
        self.match_repo = matches

        self.cache = cache or ResultCache(
            ttl_seconds=self.settings.match_cache_ttl_seconds,
            sweep_interval_seconds=self.settings.cache_sweep_interval_seconds,
            clock=clock,
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            sweep_interval_seconds=self.settings.cache_sweep_interval_seconds,
            clock=clock,
            settings=self.settings,
        )

        self.pool_builder = CandidatePoolBuilder(profiles)
        self.scoring = ScoringEngine(self.settings)
        self.extractor = CommonalityExtractor()
        self.starters = ConversationStarterGenerator(
            enrichment, timeout_seconds=self.settings.enrichment_timeout_seconds
        )
        self.assembler = RankingAssembler(self.settings.max_matches)

        # Arena de locks por usuario (con cantidad de callers que lo usan)
        # + registro de recómputos en curso
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "MatchingEngine":
        """Motor sobre Supabase, con enriquecimiento LLM si está configurado."""
        settings = settings or get_settings()
        client = create_supabase_client(settings)
        return cls(
            profiles=SupabaseProfileRepository(client),
            matches=SupabaseMatchRepository(client),
            settings=settings,
            enrichment=build_enrichment_service(settings),
        )

    # -------------------------------------------------------------------------
    # Ciclo de vida
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Arranca los barridos periódicos de cache y rate limiter."""
        self.cache.start()
        self.rate_limiter.start()

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self.cache.stop()
        await self.rate_limiter.stop()

    async def __aenter__(self) -> "MatchingEngine":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Operaciones
    # -------------------------------------------------------------------------

    async def get_matches(self, user_id: str, force_refresh: bool = False) -> MatchesResult:
        """
        Devuelve los matches visibles del usuario.

        Raises:
            RateLimitedError: Si hace falta recomputar y no queda cuota
            RepositoryUnavailableError: Si no se pudo leer perfiles/respuestas
        """
        if not force_refresh:
            cached = await self.cache.get(user_id)
            if cached is not None:
                logger.debug("Matches desde cache", user_id=user_id)
                return MatchesResult(match_set=visible(cached), from_cache=True)

        async with self._user_lock(user_id):
            task = self._inflight.get(user_id)

            if task is not None:
                logger.info("Esperando recómputo en curso", user_id=user_id)
            else:
                if not force_refresh:
                    # Otro caller pudo haber terminado mientras esperábamos el lock
                    cached = await self.cache.get(user_id)
                    if cached is not None:
                        return MatchesResult(match_set=visible(cached), from_cache=True)

                requester, responses = await self._load_requester(user_id)
                if requester is None:
                    logger.info("Usuario no elegible para matching", user_id=user_id)
                    return MatchesResult(
                        match_set=MatchSet(user_id=user_id, eligible=False),
                        from_cache=False,
                    )

                decision = await self.rate_limiter.hit(user_id, RECOMPUTE_MATCHES_ACTION)
                if not decision.allowed:
                    raise RateLimitedError(
                        user_id, RECOMPUTE_MATCHES_ACTION, decision.reset_after_seconds
                    )

                if force_refresh:
                    await self.cache.invalidate(user_id)

                task = asyncio.create_task(
                    self._recompute(requester, responses), name=f"recompute:{user_id}"
                )
                self._inflight[user_id] = task
                task.add_done_callback(lambda t: self._forget(user_id, t))

        # shield: si un caller se cancela, la task sigue para los demás
        match_set = await asyncio.shield(task)
        return MatchesResult(match_set=visible(match_set), from_cache=False)

    async def pass_match(self, user_id: str, match_id: str) -> Match:
        """
        Descarta un match: deja de aparecer en lecturas, pero se conserva.

        Raises:
            MatchNotFoundError: Si el match no existe o es de demo
        """
        return await self._set_flag(user_id, match_id, "passed")

    async def mark_viewed(self, user_id: str, match_id: str) -> Match:
        """Marca un match como visto."""
        return await self._set_flag(user_id, match_id, "viewed")

    # -------------------------------------------------------------------------
    # Internos
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        """Lock del usuario; se libera de la arena cuando nadie lo tiene ni lo espera."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if self._lock_users[user_id] == 0:
                del self._lock_users[user_id]
                del self._locks[user_id]

    def _forget(self, user_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]

    async def _read(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Normaliza cualquier falla del repositorio a RepositoryUnavailableError."""
        try:
            return await awaitable
        except MatchingError:
            raise
        except Exception as e:
            logger.error("Repositorio no disponible", operation=operation, error=str(e))
            raise RepositoryUnavailableError(f"Falló {operation}", cause=e) from e

    async def _load_requester(
        self, user_id: str
    ) -> tuple[Optional[Profile], Optional[ResponseSet]]:
        """Perfil y respuestas del usuario, o (None, None) si no es elegible."""
        requester = await self._read("get_profile", self.profiles.get_profile(user_id))
        if requester is None or not requester.questionnaire_completed:
            return None, None

        responses = await self._read("get_responses", self.profiles.get_responses(user_id))
        if responses is None or responses.is_empty():
            return None, None
        return requester, responses

    async def _previous_matches(self, user_id: str) -> dict[str, Match]:
        """Matches persistidos del cómputo anterior, por candidato."""
        try:
            stored = await self.match_repo.list_matches(user_id)
        except Exception as e:
            logger.warning("No se pudieron leer matches previos", user_id=user_id, error=str(e))
            return {}
        return {m.matched_user_id: m for m in stored}

    def _build_match(
        self,
        requester: Profile,
        responses: ResponseSet,
        candidate: Candidate,
        previous: Optional[Match],
        now,
    ) -> Match:
        result = self.scoring.score(requester.id, responses, candidate)
        match_type = classify(result.score)

        return Match(
            # Se mantiene el ID (y los flags) del match previo con la misma persona
            id=previous.id if previous else str(uuid.uuid4()),
            user_id=requester.id,
            matched_user_id=candidate.id,
            matched_profile=candidate.profile,
            type=match_type,
            commonalities=self.extractor.extract(requester, responses, candidate),
            conversation_starters=self.starters.template(candidate.profile, match_type),
            score=result.score,
            scoring_mode=result.mode,
            generated_at=now,
            viewed=previous.viewed if previous else False,
            passed=previous.passed if previous else False,
        )

    async def _recompute(self, requester: Profile, responses: ResponseSet) -> MatchSet:
        user_id = requester.id
        started = time.monotonic()
        now = utcnow()

        candidates = await self._read("build_pool", self.pool_builder.build(requester))

        if not candidates:
            match_set = placeholder_match_set(user_id, generated_at=now)
            await self.cache.set(user_id, match_set)
            logger.info("Pool vacío, se devuelve set de demo", user_id=user_id)
            return match_set

        previous = await self._previous_matches(user_id)

        matches = []
        for candidate in candidates:
            try:
                matches.append(
                    self._build_match(
                        requester, responses, candidate, previous.get(candidate.id), now
                    )
                )
            except Exception as e:
                logger.warning(
                    "Error evaluando candidato, se omite",
                    user_id=user_id,
                    candidate_id=candidate.id,
                    error=str(e),
                )

        matches = await self.starters.enrich(requester, matches)
        match_set = self.assembler.assemble(
            user_id,
            matches,
            generated_at=now,
            diversity_keys={c.id: diversity_key(c.responses) for c in candidates},
        )

        try:
            await self.match_repo.replace_matches(user_id, match_set.matches)
        except Exception as e:
            logger.error("No se pudieron persistir los matches", user_id=user_id, error=str(e))

        await self.cache.set(user_id, match_set)

        logger.info(
            "Matches recomputados",
            user_id=user_id,
            candidates=len(candidates),
            matches=len(match_set.matches),
            high_affinity=match_set.metrics.high_affinity_count,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )
        return match_set

    async def _set_flag(self, user_id: str, match_id: str, flag: str) -> Match:
        if match_id.startswith(PLACEHOLDER_MATCH_PREFIX):
            raise MatchNotFoundError(user_id, match_id)

        if flag == "passed":
            updated = await self._read(
                "set_passed", self.match_repo.set_passed(user_id, match_id, True)
            )
        else:
            updated = await self._read(
                "set_viewed", self.match_repo.set_viewed(user_id, match_id, True)
            )

        if updated is None:
            raise MatchNotFoundError(user_id, match_id)

        await self.cache.update(user_id, lambda ms: _with_flag(ms, match_id, **{flag: True}))
        logger.info("Match actualizado", user_id=user_id, match_id=match_id, flag=flag)
        return updated
