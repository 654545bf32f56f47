from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")


class BoundedPool:
    """
    Runs coroutine factories with at most `limit` in flight.

    Results come back in submission order, not completion order.
    Factories must not raise; the scheduler wraps every cell.
    """

    def __init__(self, limit: int = 5) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _run_one(self, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await factory()
            finally:
                self.in_flight -= 1

    async def map(self, factories: Sequence[Callable[[], Awaitable[T]]]) -> list[T]:
        return list(await asyncio.gather(*(self._run_one(f) for f in factories)))
