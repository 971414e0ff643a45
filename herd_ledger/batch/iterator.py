"""
Batch Iterator

Offset paging with an explicit termination predicate and a hard guard.

The loop ends on the first empty page. If a source keeps returning
pages past `max_iterations`, the iterator raises instead of spinning
forever.
"""

from typing import Awaitable, Callable, Generic, TypeVar

from herd_ledger.errors import BatchLimitExceededError


T = TypeVar("T")

PageFetcher = Callable[[int, int], Awaitable[list[T]]]


class BatchIterator(Generic[T]):
    """
    Async iterator over pages of a paged source.

    Usage:
        async for page in BatchIterator(fetch, batch_size=50, max_iterations=1000):
            ...

    `fetch(offset, limit)` returns the next page; an empty page ends
    the iteration.
    """

    def __init__(
        self,
        fetch: PageFetcher,
        batch_size: int,
        max_iterations: int,
        start_offset: int = 0,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._fetch = fetch
        self.batch_size = batch_size
        self.max_iterations = max_iterations
        self.offset = start_offset
        self.iterations = 0

    def __aiter__(self) -> "BatchIterator[T]":
        return self

    async def __anext__(self) -> list[T]:
        page = await self._fetch(self.offset, self.batch_size)
        if not page:
            raise StopAsyncIteration
        if self.iterations >= self.max_iterations:
            raise BatchLimitExceededError(
                f"Batch loop exceeded {self.max_iterations} iterations "
                f"at offset {self.offset}"
            )
        self.iterations += 1
        self.offset += len(page)
        return page
