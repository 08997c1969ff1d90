"""
Rate-limited batch iteration.

Splits work into fixed-size batches, pauses between batches to stay under
external rate limits, and runs an async worker per item with a concurrency
cap. Shared by roster detail fetches and snapshot reconciliation.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class BatchOutcome(Generic[T, R]):
    """Result of running the worker on one item."""

    item: T
    result: R | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RateLimitedBatcher:
    """
    Batch iterator with a fixed pause between batches.

    The delay is a courtesy towards external rate limits; it never runs
    after the final batch.
    """

    def __init__(
        self,
        batch_size: int,
        delay_seconds: float = 0.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def split(self, items: Iterable[T]) -> list[list[T]]:
        materialized = list(items)
        return [
            materialized[i : i + self.batch_size]
            for i in range(0, len(materialized), self.batch_size)
        ]

    async def batches(self, items: Iterable[T]) -> AsyncIterator[list[T]]:
        """Yield batches, sleeping between consecutive batches."""
        chunks = self.split(items)
        for batch_num, chunk in enumerate(chunks, 1):
            yield chunk
            if batch_num < len(chunks) and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

    async def pause(self) -> None:
        """Sleep once for callers paging through a cursor themselves."""
        if self.delay_seconds > 0:
            await self._sleep(self.delay_seconds)

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        *,
        concurrency: int = 1,
    ) -> list[BatchOutcome[T, R]]:
        """
        Run `worker` for every item, batch by batch.

        Exceptions raised by the worker are captured per item rather than
        aborting the run. Outcomes are returned in input order.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        semaphore = asyncio.Semaphore(concurrency)
        outcomes: list[BatchOutcome[T, R]] = []

        async def _guarded(item: T) -> R:
            async with semaphore:
                return await worker(item)

        total_batches = len(self.split(items))
        batch_num = 0
        async for chunk in self.batches(items):
            batch_num += 1
            logger.debug(
                "Processing batch",
                batch_number=batch_num,
                batch_size=len(chunk),
                total_batches=total_batches,
            )
            results = await asyncio.gather(
                *(_guarded(item) for item in chunk), return_exceptions=True
            )
            for item, result in zip(chunk, results):
                if isinstance(result, Exception):
                    outcomes.append(BatchOutcome(item=item, error=result))
                elif isinstance(result, BaseException):
                    # CancelledError and friends must not be swallowed
                    raise result
                else:
                    outcomes.append(BatchOutcome(item=item, result=result))

        return outcomes
