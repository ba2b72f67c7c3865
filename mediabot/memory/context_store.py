"""Per-user workflow context store with TTL expiry.

Purpose of this abstraction:
    Hold the single in-progress media workflow (movie download, TV download, movie
    delete, TV delete) for each user between turns. State is process-local and is
    never persisted.

Invariants:
    - At most one context per user. `set_context` replaces whatever the user held,
      regardless of kind.
    - A context is live while `is_active` and `now - created_at < ttl`. Reads apply
      the TTL check and evict expired entries, so an expired context is
      indistinguishable from no context.

Concurrency model:
    Each user has an `asyncio.Lock`; there is no store-wide lock, so turns from
    different users never wait on each other. Overlapping turns from the same user
    are serialized per operation only: the last `set_context` wins.

Cleanup:
    Eviction happens on read. `cleanup_expired` sweeps all users and `run_cleanup`
    runs that sweep periodically for long-lived processes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections import Counter
from dataclasses import dataclass, replace
from typing import Callable

from mediabot.media.types import ContextKind, WorkflowContext


logger = logging.getLogger(__name__)


CONTEXT_TTL_SECONDS = float(os.getenv("MEDIA_CONTEXT_TTL_SECONDS", "1800"))
CONTEXT_CLEANUP_INTERVAL_SECONDS = float(os.getenv("CONTEXT_CLEANUP_INTERVAL_SECONDS", "300"))


@dataclass
class _Entry:
    kind: ContextKind
    context: WorkflowContext


class ContextStore:
    """Keyed, expiring store of one `WorkflowContext` per user.

    Args:
        ttl_seconds: Context lifetime measured from `set_context`.
        clock: Monotonic time source in seconds. Injected by tests.
    """

    def __init__(
        self,
        ttl_seconds: float = CONTEXT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _is_live(self, entry: _Entry, now: float) -> bool:
        return entry.context.is_active and now - entry.context.created_at < self.ttl_seconds

    def _live_entry(self, user_id: str) -> _Entry | None:
        """Return the live entry for `user_id`, evicting it if expired. Caller holds the lock."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self._is_live(entry, self._clock()):
            return entry
        del self._entries[user_id]
        logger.info("Evicted expired %s context for user %s", entry.kind.value, user_id)
        return None

    # =====================================================
    # PUBLIC API
    # =====================================================

    async def set_context(self, user_id: str, kind: ContextKind, context: WorkflowContext) -> None:
        """Store `context` as the user's only workflow, stamping `created_at`."""
        async with self._lock_for(user_id):
            previous = self._entries.get(user_id)
            stamped = replace(context, created_at=self._clock(), is_active=True)
            self._entries[user_id] = _Entry(kind=kind, context=stamped)

        if previous is not None and previous.kind is not kind:
            logger.info(
                "Replaced %s context with %s for user %s",
                previous.kind.value,
                kind.value,
                user_id,
            )
        logger.debug(
            "Stored %s context for user %s (%d candidates)",
            kind.value,
            user_id,
            len(context.search_results),
        )

    async def get_context(self, user_id: str, kind: ContextKind | None = None) -> WorkflowContext | None:
        """Return the user's live context, optionally only when it has `kind`.

        A kind mismatch returns `None` without evicting the stored context.
        """
        async with self._lock_for(user_id):
            entry = self._live_entry(user_id)
        if entry is None:
            return None
        if kind is not None and entry.kind is not kind:
            return None
        return entry.context

    async def has_context(self, user_id: str) -> bool:
        async with self._lock_for(user_id):
            return self._live_entry(user_id) is not None

    async def get_context_kind(self, user_id: str) -> ContextKind | None:
        async with self._lock_for(user_id):
            entry = self._live_entry(user_id)
        return entry.kind if entry is not None else None

    async def clear_context(self, user_id: str) -> bool:
        """Remove any context the user holds. Returns whether one was removed."""
        async with self._lock_for(user_id):
            removed = self._entries.pop(user_id, None)
        if removed is not None:
            logger.debug("Cleared %s context for user %s", removed.kind.value, user_id)
        return removed is not None

    async def cleanup_expired(self) -> int:
        """Evict every expired context. Returns the number removed."""
        removed = 0
        for user_id in list(self._entries):
            async with self._lock_for(user_id):
                entry = self._entries.get(user_id)
                if entry is not None and not self._is_live(entry, self._clock()):
                    del self._entries[user_id]
                    removed += 1

        for user_id, lock in list(self._locks.items()):
            if user_id not in self._entries and not lock.locked():
                del self._locks[user_id]

        if removed:
            logger.info("Context cleanup removed %d expired context(s)", removed)
        return removed

    async def run_cleanup(self, interval_seconds: float = CONTEXT_CLEANUP_INTERVAL_SECONDS) -> None:
        """Sweep expired contexts every `interval_seconds` until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.cleanup_expired()
            except Exception:
                logger.exception("Context cleanup sweep failed")

    def stats(self) -> dict[str, int]:
        """Count stored contexts by kind, including ones not yet evicted."""
        counts = Counter(entry.kind.value for entry in self._entries.values())
        return {"total": len(self._entries), **counts}
