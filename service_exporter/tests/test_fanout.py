"""
Unit tests for the fan-out helper.
"""

import asyncio

import pytest

from service_exporter.app.fanout import gather_all


class TestGatherAll:
    """Test cases for gather_all."""

    @pytest.mark.asyncio
    async def test_results_in_order(self):
        """Results follow the order of the awaitables."""

        async def value(delay, result):
            await asyncio.sleep(delay)
            return result

        assert await gather_all([value(0.02, "a"), value(0, "b"), value(0.01, "c")]) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await gather_all([]) == []

    @pytest.mark.asyncio
    async def test_failure_cancels_and_awaits_siblings(self):
        """Siblings are cancelled and finished before the error is raised."""
        cancelled = []

        async def failing():
            raise RuntimeError("boom")

        async def sibling():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(RuntimeError):
            await gather_all([sibling(), failing()])

        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_outer_cancellation_cancels_children(self):
        """Cancelling the caller cancels every child."""
        cancelled = []

        async def child():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = asyncio.ensure_future(gather_all([child(), child()]))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert cancelled == [True, True]
