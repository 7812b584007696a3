"""
Concurrent fan-out that never leaves tasks behind.
"""

import asyncio
from typing import Awaitable, Iterable, List, TypeVar

T = TypeVar("T")


async def gather_all(awaitables: Iterable[Awaitable[T]]) -> List[T]:
    """Await every awaitable concurrently and return results in order.

    If one fails or the caller is cancelled, the remaining tasks are cancelled
    and awaited before the error propagates, so none of them can run on after
    the scrape that started them.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
