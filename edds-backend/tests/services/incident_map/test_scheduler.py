"""
Tests for the asyncio frame scheduler.

To run: pytest tests/services/incident_map/test_scheduler.py -v
"""
import asyncio

import pytest

from services.incident_map.scheduler import AsyncioFrameScheduler


class TestAsyncioFrameScheduler:
    """Tests for frames and timers on the running loop."""

    @pytest.mark.asyncio
    async def test_frame_receives_current_time(self):
        scheduler = AsyncioFrameScheduler(frame_interval_ms=1)
        started = scheduler.now()
        received = []

        scheduler.request_frame(received.append)
        await asyncio.sleep(0.05)

        assert len(received) == 1
        assert received[0] >= started

    @pytest.mark.asyncio
    async def test_cancelled_frame_never_runs(self):
        scheduler = AsyncioFrameScheduler(frame_interval_ms=1)
        received = []

        handle = scheduler.request_frame(received.append)
        handle.cancel()
        handle.cancel()
        await asyncio.sleep(0.05)

        assert handle.cancelled
        assert received == []

    @pytest.mark.asyncio
    async def test_call_later(self):
        scheduler = AsyncioFrameScheduler()
        calls = []

        scheduler.call_later(5, lambda: calls.append('late'))
        cancelled = scheduler.call_later(5, lambda: calls.append('cancelled'))
        cancelled.cancel()
        await asyncio.sleep(0.05)

        assert calls == ['late']
