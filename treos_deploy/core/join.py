"""Fan-out with a barrier join: all results, or the first error.

Used wherever independent external interactions can overlap: the three git
queries of the repository inspection, and artifact verification alongside
that inspection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any


async def join_all(*awaitables: Awaitable[Any]) -> list[Any]:
    """Run *awaitables* concurrently and return their results in order.

    If any of them raises, the others are cancelled and awaited, and the
    first exception (by completion time) is raised. Partial results are
    discarded.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        await _cancel(tasks)
        raise

    if pending:
        # something failed before everything finished
        failed = next(t for t in done if not t.cancelled() and t.exception() is not None)
        await _cancel(list(pending))
        raise failed.exception()  # type: ignore[misc]

    for task in tasks:
        if task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
    return [task.result() for task in tasks]


async def _cancel(tasks: list[asyncio.Future[Any]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
