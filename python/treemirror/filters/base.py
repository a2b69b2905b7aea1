"""
Filter pipeline.

A filter is produced by a zero-argument async factory (so it can do
one-time async setup) and exposes ``ignore(path, handle)``. The pipeline
asks each filter in order and stops at the first one that excludes the
path.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Protocol, Sequence

logger = logging.getLogger(__name__)


class FileFilter(Protocol):
    async def ignore(self, path: str, handle) -> bool: ...


FilterFactory = Callable[[], Awaitable[FileFilter]]


class FilterPipeline:
    """Ordered, short-circuiting chain of filter instances."""

    def __init__(self, filters: Sequence[FileFilter] = ()) -> None:
        self.filters = list(filters)

    @classmethod
    async def create(cls, factories: Iterable[FilterFactory]) -> "FilterPipeline":
        """Build fresh filter instances (one per factory, in order)."""
        filters = await asyncio.gather(*(factory() for factory in factories))
        return cls(filters)

    async def ignore(self, path: str, handle) -> bool:
        for file_filter in self.filters:
            if await file_filter.ignore(path, handle):
                return True
        return False

    def __len__(self) -> int:
        return len(self.filters)
