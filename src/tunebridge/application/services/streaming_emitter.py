"""Streaming emitter - yields each result the moment its own resolution finishes.

Hey future me - order is COMPLETION order, not input order! A cache hit for the
third link comes out before a slow fan-out for the first one. Nothing is held
back to keep input order.

The generator is lazy (work starts on first iteration), finite and one-shot.
If the consumer stops early or gets cancelled, every still-running resolution
task is cancelled in the finally block.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

I = TypeVar("I")
R = TypeVar("R")


class StreamingEmitter(Generic[I, R]):
    """Runs one resolution per input concurrently and yields in completion order."""

    def __init__(self, resolve: Callable[[I], Awaitable[R | None]]) -> None:
        """Initialize emitter.

        Args:
            resolve: Coroutine function resolving a single input (None = no result)
        """
        self._resolve = resolve

    async def emit(self, inputs: Iterable[I]) -> AsyncIterator[R]:
        """Yield results as their resolutions complete.

        Args:
            inputs: Classified inputs of one request

        Yields:
            Every non-None result, in completion order
        """
        tasks = [asyncio.create_task(self._run(item)) for item in inputs]
        if not tasks:
            return

        try:
            for next_done in asyncio.as_completed(tasks):
                result = await next_done
                if result is not None:
                    yield result
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                logger.debug("Cancelled %d unfinished resolutions", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, item: I) -> R | None:
        return await self._resolve(item)
