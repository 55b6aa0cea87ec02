"""Counting gate bounding concurrent expensive operations.

The gate runs on a single event loop. Released capacity is handed straight
to the longest waiting caller instead of going back to the counter, so a
late ``try_acquire`` can never jump ahead of a queued ``acquire``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator


class GateInvariantError(RuntimeError):
    """Raised on a release that has no matching acquisition."""


class ConcurrencyGate:
    def __init__(self, capacity: int) -> None:
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
            raise ValueError("concurrency_gate.invalid capacity must be a positive integer")
        self._capacity = capacity
        self._available = capacity
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        return self._available

    @property
    def waiting_count(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Capacity was already handed over; pass it on.
                self.release()
            else:
                self._discard(waiter)
            raise

    def try_acquire(self) -> bool:
        if self._available > 0 and not self._waiters:
            self._available -= 1
            return True
        return False

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._available >= self._capacity:
            raise GateInvariantError("concurrency_gate.invariant release without acquire")
        self._available += 1

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    @contextmanager
    def try_hold(self) -> Iterator[bool]:
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def _discard(self, waiter: asyncio.Future[None]) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
