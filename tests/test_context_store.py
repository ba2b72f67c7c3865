from __future__ import annotations

import asyncio

import pytest

from mediabot.media.types import ContextKind, WorkflowContext
from mediabot.memory.context_store import ContextStore
from tests.conftest import FakeClock, make_movie


def _context(query: str = "matrix") -> WorkflowContext:
    return WorkflowContext(search_results=[make_movie("The Matrix", 1999)], query=query)


@pytest.mark.asyncio
async def test_set_and_get(store: ContextStore, clock: FakeClock) -> None:
    await store.set_context("alice", ContextKind.MOVIE, _context())

    context = await store.get_context("alice")

    assert context is not None
    assert context.query == "matrix"
    assert context.created_at == clock.now
    assert await store.get_context_kind("alice") is ContextKind.MOVIE
    assert await store.has_context("alice")


@pytest.mark.asyncio
async def test_one_context_per_user(store: ContextStore) -> None:
    await store.set_context("alice", ContextKind.MOVIE, _context("matrix"))
    await store.set_context("alice", ContextKind.TV_DELETE, _context("office"))

    assert await store.get_context_kind("alice") is ContextKind.TV_DELETE
    assert await store.get_context("alice", ContextKind.MOVIE) is None
    assert (await store.get_context("alice", ContextKind.TV_DELETE)).query == "office"
    assert store.stats() == {"total": 1, "tvDelete": 1}


@pytest.mark.asyncio
async def test_kind_mismatch_does_not_evict(store: ContextStore) -> None:
    await store.set_context("alice", ContextKind.TV, _context())

    assert await store.get_context("alice", ContextKind.MOVIE) is None
    assert await store.get_context("alice", ContextKind.TV) is not None


@pytest.mark.asyncio
async def test_ttl_boundary(store: ContextStore, clock: FakeClock) -> None:
    await store.set_context("alice", ContextKind.MOVIE, _context())

    clock.advance(store.ttl_seconds - 0.5)
    assert await store.get_context("alice") is not None

    clock.advance(1)
    assert await store.get_context("alice") is None
    assert not await store.has_context("alice")
    assert store.stats() == {"total": 0}


@pytest.mark.asyncio
async def test_inactive_context_is_not_live(store: ContextStore) -> None:
    await store.set_context("alice", ContextKind.MOVIE, _context())
    (await store.get_context("alice")).is_active = False

    assert await store.get_context("alice") is None


@pytest.mark.asyncio
async def test_clear_context(store: ContextStore) -> None:
    await store.set_context("alice", ContextKind.MOVIE, _context())

    assert await store.clear_context("alice") is True
    assert await store.clear_context("alice") is False
    assert await store.get_context("alice") is None


@pytest.mark.asyncio
async def test_cleanup_expired_only_removes_stale(clock: FakeClock) -> None:
    store = ContextStore(ttl_seconds=60, clock=clock)
    await store.set_context("old", ContextKind.MOVIE, _context())
    clock.advance(45)
    await store.set_context("new", ContextKind.TV, _context())
    clock.advance(30)

    assert await store.cleanup_expired() == 1
    assert store.stats() == {"total": 1, "tv": 1}
    assert await store.has_context("new")


@pytest.mark.asyncio
async def test_users_are_independent(store: ContextStore) -> None:
    await asyncio.gather(
        *(store.set_context(f"user-{n}", ContextKind.MOVIE, _context(str(n))) for n in range(20))
    )

    assert store.stats()["total"] == 20
    assert (await store.get_context("user-7")).query == "7"
