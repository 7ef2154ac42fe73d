"""Tests for the matching engine entry point."""

import asyncio

import pytest

from afinidad.cache import RateLimiter, ResultCache
from afinidad.database import InMemoryMatchRepository, InMemoryProfileRepository
from afinidad.errors import MatchNotFoundError, RateLimitedError, RepositoryUnavailableError
from afinidad.matching import MatchingEngine
from afinidad.models import MatchType, ScoringMode

from conftest import FakeEnrichment, make_profile, raises_error


class FailingProfileRepository(InMemoryProfileRepository):
    async def list_completed_profiles(self, excluding=None):
        raise ConnectionError("database unreachable")


class SlowProfileRepository(InMemoryProfileRepository):
    """Cuenta lecturas del pool y las demora para forzar concurrencia."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pool_reads = 0

    async def list_completed_profiles(self, excluding=None):
        self.pool_reads += 1
        await asyncio.sleep(0.05)
        return await super().list_completed_profiles(excluding)


def build_engine(settings, clock, profiles, matches=None, enrichment=None) -> MatchingEngine:
    return MatchingEngine(
        profiles=profiles,
        matches=matches or InMemoryMatchRepository(),
        settings=settings,
        cache=ResultCache(ttl_seconds=1800, clock=clock),
        rate_limiter=RateLimiter(settings=settings, clock=clock),
        enrichment=enrichment,
        clock=clock,
    )


class TestGetMatches:
    """Test the compute, cache and read flow."""

    async def test_five_candidate_scenario(self, engine):
        result = await engine.get_matches("user-1")
        match_set = result.match_set

        assert result.from_cache is False
        assert len(match_set.matches) == 5
        scores = [m.score for m in match_set.matches]
        assert scores == sorted(scores, reverse=True)

        by_candidate = {m.matched_user_id: m for m in match_set.matches}
        for candidate_id in ("cand-1", "cand-2"):
            match = by_candidate[candidate_id]
            assert match.score > 0.8
            assert match.type == MatchType.HIGH_AFFINITY
            assert match.scoring_mode == ScoringMode.WEIGHTED
        for candidate_id in ("cand-3", "cand-4", "cand-5"):
            match = by_candidate[candidate_id]
            assert 0.6 <= match.score <= 0.95
            assert match.scoring_mode == ScoringMode.FALLBACK
            assert match.type == MatchType.STRATEGIC

        for match in match_set.matches:
            assert match.commonalities
            assert len(match.conversation_starters) <= 2
            assert match.matched_user_id != "user-1"

        assert match_set.metrics.count == 5
        assert match_set.metrics.high_affinity_count == 2

    async def test_second_read_comes_from_cache(self, engine):
        first = await engine.get_matches("user-1")
        second = await engine.get_matches("user-1")

        assert second.from_cache is True
        assert second.match_set.ids == first.match_set.ids

    async def test_force_refresh_recomputes(self, engine):
        await engine.get_matches("user-1")
        result = await engine.get_matches("user-1", force_refresh=True)

        assert result.from_cache is False
        assert len(result.match_set.matches) == 5

    async def test_expired_cache_recomputes(self, engine, clock):
        await engine.get_matches("user-1")
        clock.advance(1800)

        result = await engine.get_matches("user-1")

        assert result.from_cache is False

    async def test_matches_are_persisted(self, engine, match_repo):
        result = await engine.get_matches("user-1")

        stored = await match_repo.list_matches("user-1")
        assert [m.id for m in stored] == result.match_set.ids

    async def test_empty_pool_returns_placeholder(self, settings, clock, requester, requester_responses):
        profiles = InMemoryProfileRepository([requester], [requester_responses])
        matches = InMemoryMatchRepository()
        engine = build_engine(settings, clock, profiles, matches)

        result = await engine.get_matches("user-1")

        assert result.match_set.is_placeholder
        assert result.match_set.matches
        assert all(m.id.startswith("demo-match-") for m in result.match_set.matches)
        assert await matches.list_matches("user-1") == []

    async def test_requester_without_responses_is_not_eligible(self, settings, clock, requester):
        profiles = InMemoryProfileRepository([requester, make_profile("cand-1", "Bruno Diaz")])
        engine = build_engine(settings, clock, profiles)

        result = await engine.get_matches("user-1")

        assert result.match_set.eligible is False
        assert result.match_set.matches == []
        status = await engine.rate_limiter.status("user-1", "recompute-matches")
        assert status.count == 0

    async def test_unknown_requester_is_not_eligible(self, engine):
        result = await engine.get_matches("nobody")
        assert result.match_set.eligible is False

    async def test_repository_failure_is_typed(self, settings, clock, requester, requester_responses):
        profiles = FailingProfileRepository([requester], [requester_responses])
        engine = build_engine(settings, clock, profiles)

        with pytest.raises(RepositoryUnavailableError) as exc_info:
            await engine.get_matches("user-1")

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, ConnectionError)

    async def test_enrichment_failures_degrade_to_templates(
        self, settings, clock, profile_repo
    ):
        enrichment = FakeEnrichment({"Bruno": raises_error})
        engine = build_engine(settings, clock, profile_repo, enrichment=enrichment)

        result = await engine.get_matches("user-1")

        by_candidate = {m.matched_user_id: m for m in result.match_set.matches}
        assert by_candidate["cand-1"].conversation_starters[0].startswith("Ask Bruno what's")
        assert by_candidate["cand-2"].conversation_starters == [
            "Ask Carla about their biggest win this year"
        ]


class TestRateLimiting:
    """Test that only recomputation consumes quota."""

    async def test_exhausted_quota_raises_but_cache_still_serves(self, engine):
        # settings de test: 3 recómputos por hora
        for _ in range(3):
            await engine.get_matches("user-1", force_refresh=True)

        with pytest.raises(RateLimitedError) as exc_info:
            await engine.get_matches("user-1", force_refresh=True)

        assert exc_info.value.retry_after_seconds > 0
        assert exc_info.value.code == "rate_limited"

        cached = await engine.get_matches("user-1")
        assert cached.from_cache is True

    async def test_quota_resets_after_window(self, engine, clock):
        for _ in range(3):
            await engine.get_matches("user-1", force_refresh=True)

        clock.advance(3600)

        result = await engine.get_matches("user-1", force_refresh=True)
        assert result.from_cache is False


class TestCoalescing:
    """Test that concurrent recomputations for one user share a task."""

    async def test_concurrent_calls_share_one_computation(
        self, settings, clock, requester, requester_responses, five_candidates
    ):
        candidates, responses = five_candidates
        profiles = SlowProfileRepository(
            [requester, *candidates], [requester_responses, *responses]
        )
        engine = build_engine(settings, clock, profiles)

        results = await asyncio.gather(
            engine.get_matches("user-1"),
            engine.get_matches("user-1"),
            engine.get_matches("user-1", force_refresh=True),
        )

        assert profiles.pool_reads == 1
        assert all(r.from_cache is False for r in results)
        assert len({tuple(r.match_set.ids) for r in results}) == 1
        status = await engine.rate_limiter.status("user-1", "recompute-matches")
        assert status.count == 1

    async def test_cancelled_caller_does_not_cancel_others(
        self, settings, clock, requester, requester_responses, five_candidates
    ):
        candidates, responses = five_candidates
        profiles = SlowProfileRepository(
            [requester, *candidates], [requester_responses, *responses]
        )
        engine = build_engine(settings, clock, profiles)

        first = asyncio.create_task(engine.get_matches("user-1"))
        second = asyncio.create_task(engine.get_matches("user-1"))
        await asyncio.sleep(0.01)
        first.cancel()

        result = await second
        assert len(result.match_set.matches) == 5

    async def test_lock_arena_does_not_grow_with_unknown_users(self, engine):
        for i in range(50):
            result = await engine.get_matches(f"ghost-{i}")
            assert result.match_set.eligible is False

        assert len(engine._locks) == 0
        assert len(engine._lock_users) == 0

    async def test_lock_arena_empty_after_coalesced_calls(
        self, settings, clock, requester, requester_responses, five_candidates
    ):
        candidates, responses = five_candidates
        profiles = SlowProfileRepository(
            [requester, *candidates], [requester_responses, *responses]
        )
        engine = build_engine(settings, clock, profiles)

        await asyncio.gather(*(engine.get_matches("user-1") for _ in range(5)))

        assert profiles.pool_reads == 1
        assert engine._locks == {}
        assert engine._inflight == {}

    async def test_lock_released_when_quota_denied(self, engine):
        for _ in range(3):
            await engine.get_matches("user-1", force_refresh=True)

        with pytest.raises(RateLimitedError):
            await engine.get_matches("user-1", force_refresh=True)

        assert engine._locks == {}


class TestMatchFlags:
    """Test pass and viewed updates."""

    async def test_pass_hides_match_but_keeps_it_stored(self, engine, match_repo):
        result = await engine.get_matches("user-1")
        target = result.match_set.matches[0]

        passed = await engine.pass_match("user-1", target.id)
        assert passed.passed is True

        after = await engine.get_matches("user-1")
        assert after.from_cache is True
        assert target.id not in after.match_set.ids
        assert after.match_set.metrics.count == 4

        stored = {m.id: m for m in await match_repo.list_matches("user-1")}
        assert stored[target.id].passed is True
        assert stored[target.id].score == target.score

    async def test_passed_match_stays_hidden_after_recompute(self, engine):
        result = await engine.get_matches("user-1")
        target = result.match_set.matches[0]
        await engine.pass_match("user-1", target.id)

        refreshed = await engine.get_matches("user-1", force_refresh=True)

        assert target.id not in refreshed.match_set.ids
        assert target.matched_user_id not in [m.matched_user_id for m in refreshed.match_set.matches]

    async def test_mark_viewed(self, engine):
        result = await engine.get_matches("user-1")
        target = result.match_set.matches[-1]

        viewed = await engine.mark_viewed("user-1", target.id)
        assert viewed.viewed is True

        after = await engine.get_matches("user-1")
        assert after.match_set.find(target.id).viewed is True

    async def test_unknown_match_raises(self, engine):
        await engine.get_matches("user-1")
        with pytest.raises(MatchNotFoundError):
            await engine.pass_match("user-1", "does-not-exist")

    async def test_placeholder_match_cannot_be_passed(self, engine):
        with pytest.raises(MatchNotFoundError):
            await engine.pass_match("user-1", "demo-match-1")


class TestLifecycle:
    """Test sweeper start and stop."""

    async def test_async_context_manager(self, engine):
        async with engine as running:
            assert running.cache._sweeper.running
            assert running.rate_limiter._sweeper.running
            await running.get_matches("user-1")

        assert not engine.cache._sweeper.running
        assert not engine.rate_limiter._sweeper.running
