"""
Frame and timer scheduling for map animations.

The highlight animator never loops on its own: it asks a FrameScheduler for
the next frame or a delayed call and keeps the returned handle so the request
can be cancelled.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledHandle(ABC):
    """A pending frame request or timer."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the call; cancelling twice or after it ran is a no-op."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class FrameScheduler(ABC):
    """Host scheduling primitive used by the animator. Times are in milliseconds."""

    @abstractmethod
    def now(self) -> float:
        pass

    @abstractmethod
    def request_frame(self, callback: Callable[[float], None]) -> ScheduledHandle:
        """Call callback(now) on the next display frame."""
        pass

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledHandle:
        pass


class _AsyncioHandle(ScheduledHandle):
    def __init__(self, timer: asyncio.TimerHandle):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._timer.cancelled()


class AsyncioFrameScheduler(FrameScheduler):
    """
    FrameScheduler on the running asyncio loop.

    NiceGUI pushes updates to the browser from its event loop, so a frame is
    simply a callback every frame_interval_ms (~60 Hz by default).
    """

    def __init__(self, frame_interval_ms: float = 16, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.frame_interval_ms = frame_interval_ms
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def request_frame(self, callback: Callable[[float], None]) -> ScheduledHandle:
        timer = self.loop.call_later(self.frame_interval_ms / 1000.0, lambda: callback(self.now()))
        return _AsyncioHandle(timer)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledHandle:
        timer = self.loop.call_later(max(delay_ms, 0) / 1000.0, callback)
        return _AsyncioHandle(timer)
