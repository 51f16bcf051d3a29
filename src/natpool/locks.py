"""Per-parent mutual exclusion for load balancer updates.

Every sub-resource of a load balancer (NAT pools, probes, rules, ...) is
written back as part of the whole load balancer document. Two sibling
edits that overlap would each submit a copy missing the other's change,
so every read-modify-write cycle holds the lock for its parent ID.

The registry is an explicit object handed to each reconciler. Reconcilers
that share a registry serialize against each other per parent; unrelated
parents proceed in parallel.

This is in-process locking only. Multiple processes editing the same load
balancer need a distributed lock (e.g. a blob lease) on top of this.

The lock only bounds the awaiting coroutine. SDK calls run in executor
threads (see client.execute_with_timeout) and keep running after a timeout
or cancellation releases the lock, so a late begin_create_or_update from an
abandoned cycle can still overwrite the document written by the next lock
holder. Size FETCH_TIMEOUT and OPERATION_TIMEOUT so that abandoning a call
is rare, or move to the azure.mgmt.network.aio client to make cancellation
reach the HTTP request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class NamedLockRegistry:
    """Map from resource ID to an asyncio.Lock, created on first use.

    Keys are normalised to lower case because ARM resource IDs are case
    insensitive.
    """

    def __init__(self) -> None:
        # Entries are never evicted; one per load balancer ever touched
        self._locks: dict[str, asyncio.Lock] = {}

    @staticmethod
    def _key(name: str) -> str:
        if not name:
            raise ValueError("Lock name cannot be empty")
        return name.lower()

    def _get_lock(self, name: str) -> asyncio.Lock:
        key = self._key(name)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def acquire(self, name: str) -> None:
        """Wait until no other operation holds ``name``, then hold it.

        There is no timeout: hold time is bounded by one reconcile cycle.
        """
        lock = self._get_lock(name)
        if lock.locked():
            logger.debug("Waiting for lock", extra={"lock": name})
        await lock.acquire()
        logger.debug("Acquired lock", extra={"lock": name})

    def release(self, name: str) -> None:
        """Release ``name``.

        Raises:
            RuntimeError: If the lock is not held.
        """
        lock = self._locks.get(self._key(name))
        if lock is None or not lock.locked():
            raise RuntimeError(f"Lock {name!r} is not held")
        lock.release()
        logger.debug("Released lock", extra={"lock": name})

    def is_locked(self, name: str) -> bool:
        """Check whether ``name`` is currently held."""
        lock = self._locks.get(self._key(name))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        """Hold ``name`` for the duration of the block.

        The lock is released on every exit path, including exceptions and
        task cancellation.
        """
        await self.acquire(name)
        try:
            yield
        finally:
            self.release(name)
