"""Per-envelope locks and deletion tombstones.

Mutations of one envelope (publish, searchable toggle, ingest, delete) run
under the same ``asyncio.Lock`` so that an index delete and an index upsert
for one document never interleave. A delete raises a tombstone *before* it
waits for the lock, which lets an upsert already in flight notice that its
document is going away and drop its late results.

The tombstone only lives as long as the delete: once the delete leaves the
lock, later holders find the envelope gone in the repository, and a delete
that failed leaves its envelope indexable again.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.application.services.index_namespace_manager import LivenessCheck


class EnvelopeLockRegistry:
    """Process-wide registry shared by all DocumentService instances."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}
        self._tombstones: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, envelope_id: str) -> AsyncIterator[None]:
        """Hold the envelope's lock for the duration of the block."""
        lock = self._locks.setdefault(envelope_id, asyncio.Lock())
        self._holders[envelope_id] = self._holders.get(envelope_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[envelope_id] -= 1
            if not self._holders[envelope_id]:
                # Last holder gone, forget the lock
                del self._holders[envelope_id]
                del self._locks[envelope_id]

    @asynccontextmanager
    async def deleting(self, envelope_id: str) -> AsyncIterator[None]:
        """Hold the lock for a delete, tombstoning the envelope from the moment of the call."""
        self._tombstones[envelope_id] = self._tombstones.get(envelope_id, 0) + 1
        try:
            async with self.hold(envelope_id):
                yield
        finally:
            self._tombstones[envelope_id] -= 1
            if not self._tombstones[envelope_id]:
                del self._tombstones[envelope_id]

    def is_deleted(self, envelope_id: str) -> bool:
        """True while a delete of the envelope is waiting or running."""
        return envelope_id in self._tombstones

    def is_tracked(self, envelope_id: str) -> bool:
        """True while the envelope has a lock holder or a pending delete."""
        return envelope_id in self._locks or envelope_id in self._tombstones

    def liveness(self, envelope_id: str) -> LivenessCheck:
        """Callable for ``upsert_chunks(is_live=...)`` bound to one envelope."""
        return lambda: envelope_id not in self._tombstones
