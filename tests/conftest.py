"""
Pytest configuration and shared fixtures.
"""

import asyncio
from typing import Callable, Optional

import pytest

from afinidad.analysis import EnrichmentService, OpenerContext
from afinidad.cache import RateLimiter, ResultCache
from afinidad.config import RECOMPUTE_MATCHES_ACTION, RateLimitRule, Settings
from afinidad.database import InMemoryMatchRepository, InMemoryProfileRepository
from afinidad.matching import MatchingEngine
from afinidad.models import Profile, ResponseSet


class FakeClock:
    """Reloj monotónico controlado por el test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEnrichment(EnrichmentService):
    """Servicio de enriquecimiento con comportamiento por candidato."""

    def __init__(self, behaviors: Optional[dict[str, Callable]] = None):
        self.behaviors = behaviors or {}
        self.calls: list[OpenerContext] = []

    async def generate_openers(self, context: OpenerContext) -> list[str]:
        self.calls.append(context)
        behavior = self.behaviors.get(context.candidate_name)
        if behavior is None:
            return [f"Ask {context.candidate_name} about their biggest win this year"]
        return await behavior(context)


def make_profile(user_id: str, name: str, **kwargs) -> Profile:
    data = {
        "email": f"{user_id}@example.com",
        "questionnaire_completed": True,
    }
    data.update(kwargs)
    return Profile(id=user_id, name=name, **data)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        supabase_url=None,
        supabase_key=None,
        supabase_service_key=None,
        groq_api_key=None,
        gemini_api_key=None,
        enrichment_enabled=False,
        enrichment_timeout_seconds=0.2,
        rate_limits={
            RECOMPUTE_MATCHES_ACTION: RateLimitRule(max_requests=3, window_seconds=3600),
        },
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def requester() -> Profile:
    return make_profile(
        "user-1",
        "Ana Gomez",
        position="VP of Engineering",
        company="Acme",
    )


@pytest.fixture
def requester_responses() -> ResponseSet:
    return ResponseSet(
        user_id="user-1",
        answers={
            "industry": "technology",
            "leadershipLevel": "vp",
            "rechargeActivities": ["hiking", "reading"],
            "leadershipPhilosophy": "servant-leadership",
        },
    )


@pytest.fixture
def five_candidates() -> tuple[list[Profile], list[ResponseSet]]:
    """2 candidatos con industria e intereses en común, 3 sin respuestas."""
    profiles = [
        make_profile("cand-1", "Bruno Diaz", position="CTO", company="Globex"),
        make_profile("cand-2", "Carla Ruiz", position="Head of Product", company="Initech"),
        make_profile("cand-3", "Diego Sosa", position="COO", company="Umbrella"),
        make_profile("cand-4", "Elena Paz", title="Founder"),
        make_profile("cand-5", "Facundo Lima"),
    ]
    responses = [
        ResponseSet(
            user_id="cand-1",
            answers={"industry": "technology", "rechargeActivities": ["hiking", "reading"]},
        ),
        ResponseSet(
            user_id="cand-2",
            answers={"industry": "Technology", "rechargeActivities": ["Hiking", "Reading"]},
        ),
    ]
    return profiles, responses


@pytest.fixture
def profile_repo(requester, requester_responses, five_candidates) -> InMemoryProfileRepository:
    profiles, responses = five_candidates
    return InMemoryProfileRepository(
        [requester, *profiles],
        [requester_responses, *responses],
    )


@pytest.fixture
def match_repo() -> InMemoryMatchRepository:
    return InMemoryMatchRepository()


@pytest.fixture
def engine(settings, clock, profile_repo, match_repo) -> MatchingEngine:
    return MatchingEngine(
        profiles=profile_repo,
        matches=match_repo,
        settings=settings,
        cache=ResultCache(ttl_seconds=1800, clock=clock),
        rate_limiter=RateLimiter(settings=settings, clock=clock),
        clock=clock,
    )


async def never_returns(context: OpenerContext) -> list[str]:
    await asyncio.sleep(10)
    return ["Too late to matter for anyone"]


async def raises_error(context: OpenerContext) -> list[str]:
    raise RuntimeError("provider down")


async def returns_nothing_useful(context: OpenerContext) -> list[str]:
    return ["", "short"]
