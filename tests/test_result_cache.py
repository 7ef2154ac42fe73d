"""Tests for the per-user result cache."""

import asyncio

from afinidad.cache import ResultCache
from afinidad.cache.sweeper import PeriodicSweeper
from afinidad.matching.ranking import placeholder_match_set

from conftest import FakeClock


class TestResultCache:
    """Test TTL, invalidation and in-place updates."""

    async def test_get_returns_value_before_ttl(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        await cache.set("user-1", placeholder_match_set("user-1"))

        clock.advance(59)
        cached = await cache.get("user-1")

        assert cached is not None
        assert cached.user_id == "user-1"

    async def test_expired_entry_rejected_and_removed(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        await cache.set("user-1", placeholder_match_set("user-1"))

        clock.advance(60)

        assert await cache.get("user-1") is None
        assert await cache.store.size() == 0

    async def test_invalidate(self):
        cache = ResultCache(clock=FakeClock())
        await cache.set("user-1", placeholder_match_set("user-1"))

        assert await cache.invalidate("user-1") is True
        assert await cache.get("user-1") is None
        assert await cache.invalidate("user-1") is False

    async def test_update_keeps_remaining_ttl(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=100, clock=clock)
        await cache.set("user-1", placeholder_match_set("user-1"))

        clock.advance(50)
        updated = await cache.update(
            "user-1", lambda ms: ms.model_copy(update={"eligible": False})
        )
        assert updated is not None and updated.eligible is False

        clock.advance(50)
        assert await cache.get("user-1") is None

    async def test_update_without_entry_returns_none(self):
        cache = ResultCache(clock=FakeClock())
        assert await cache.update("user-1", lambda ms: ms) is None

    async def test_cached_value_is_isolated_from_caller(self):
        cache = ResultCache(clock=FakeClock())
        match_set = placeholder_match_set("user-1")
        await cache.set("user-1", match_set)

        match_set.matches.clear()

        cached = await cache.get("user-1")
        assert len(cached.matches) == 6

    async def test_sweep_removes_only_expired(self):
        clock = FakeClock()
        cache = ResultCache(ttl_seconds=100, clock=clock)
        await cache.set("user-1", placeholder_match_set("user-1"))
        clock.advance(60)
        await cache.set("user-2", placeholder_match_set("user-2"))
        clock.advance(50)

        removed = await cache.sweep()

        assert removed == 1
        assert await cache.store.size() == 1


class TestPeriodicSweeper:
    """Test the background sweep task."""

    async def test_runs_periodically_and_stops(self):
        calls = []

        async def sweep():
            calls.append(1)
            return 0

        sweeper = PeriodicSweeper("test", sweep, interval_seconds=0.01)
        sweeper.start()
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert calls
        assert not sweeper.running

    async def test_errors_do_not_stop_the_loop(self):
        calls = []

        async def sweep():
            calls.append(1)
            raise RuntimeError("store down")

        sweeper = PeriodicSweeper("test", sweep, interval_seconds=0.01)
        sweeper.start()
        await asyncio.sleep(0.05)
        assert sweeper.running
        await sweeper.stop()

        assert len(calls) >= 2
