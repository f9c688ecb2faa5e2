"""Tests for the expired cache cleanup job and session_scope."""

import pytest

from intellayer.cache.cleanup import run_cache_cleanup
from intellayer.cache.store import ResponseCacheStore
from intellayer.db.session import session_scope


class TestCacheCleanup:
    @pytest.mark.anyio
    async def test_removes_only_expired_rows(self, session_factory, clock) -> None:
        async with session_scope(session_factory) as session:
            store = ResponseCacheStore(session, clock=clock)
            await store.set("t", "p", "short", {"a": 1}, 60, 1)
            await store.set("t", "p", "long", {"a": 2}, 3600, 1)

        clock.advance(minutes=5)
        assert await run_cache_cleanup(session_factory, clock=clock) == 1

        async with session_scope(session_factory) as session:
            store = ResponseCacheStore(session, clock=clock)
            assert await store.count("p") == 1
            assert await store.get("t", "p", "long") is not None

    @pytest.mark.anyio
    async def test_nothing_to_remove(self, session_factory, clock) -> None:
        assert await run_cache_cleanup(session_factory, clock=clock) == 0


class TestSessionScope:
    @pytest.mark.anyio
    async def test_rolls_back_on_error(self, session_factory, clock) -> None:
        with pytest.raises(RuntimeError):
            async with session_scope(session_factory) as session:
                await ResponseCacheStore(session, clock=clock).set("t", "p", "fp", {}, 60, 1)
                raise RuntimeError("job failed")

        async with session_scope(session_factory) as session:
            assert await ResponseCacheStore(session, clock=clock).count("p") == 0
