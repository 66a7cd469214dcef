"""Tests for StreamingEmitter completion-order streaming."""

import asyncio

from tunebridge.application.services import StreamingEmitter


def _sleeper(cancelled: list[str] | None = None):
    async def resolve(item: tuple[str, float]) -> str | None:
        name, delay = item
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            if cancelled is not None:
                cancelled.append(name)
            raise
        return None if name.startswith("none") else name

    return resolve


class TestStreamingEmitter:
    async def test_yields_in_completion_order(self) -> None:
        """Test that results arrive in completion order."""
        emitter = StreamingEmitter(_sleeper())

        results = [
            result
            async for result in emitter.emit([("slow", 0.05), ("fast", 0.0), ("medium", 0.02)])
        ]

        assert results == ["fast", "medium", "slow"]

    async def test_none_results_are_skipped(self) -> None:
        """Test that None results are skipped."""
        emitter = StreamingEmitter(_sleeper())

        results = [result async for result in emitter.emit([("none-1", 0.0), ("a", 0.01)])]

        assert results == ["a"]

    async def test_empty_input(self) -> None:
        """Test that empty input yields nothing."""
        emitter = StreamingEmitter(_sleeper())

        assert [result async for result in emitter.emit([])] == []

    async def test_lazy_until_iterated(self) -> None:
        """Test that no work starts before iteration."""
        started: list[str] = []

        async def resolve(item: str) -> str:
            started.append(item)
            return item

        stream = StreamingEmitter(resolve).emit(["a"])
        await asyncio.sleep(0)

        assert started == []
        assert [result async for result in stream] == ["a"]

    async def test_closing_early_cancels_pending(self) -> None:
        """A consumer that goes away must not leave resolutions running."""
        cancelled: list[str] = []
        stream = StreamingEmitter(_sleeper(cancelled)).emit([("fast", 0.0), ("slow", 10.0)])

        assert await anext(stream) == "fast"
        await stream.aclose()

        assert cancelled == ["slow"]
