"""
Frame Clock - Cooperative scheduling for overlay animation and timers.

Mirrors the browser's requestAnimationFrame / setTimeout pair on the
Python side: callbacks are queued with an integer handle, run when the
clock is ticked, and can be cancelled at any time before they fire.
Nothing here spawns threads; whoever owns the clock pumps it.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional
import logging
import time

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]
TimerCallback = Callable[[], None]


@dataclass
class _Timer:
    due: float
    callback: TimerCallback


class FrameClock:
    """
    Single-threaded frame and timer scheduler.

    Frame callbacks receive the tick timestamp in milliseconds, like
    ``performance.now()``. A frame callback that wants to keep running
    must request the next frame itself.

    Example:
        >>> clock = FrameClock()
        >>> handle = clock.request_frame(lambda now: print(now))
        >>> clock.tick()
        >>> clock.pending
        0
    """

    def __init__(
        self,
        time_source: Callable[[], float] = time.monotonic,
        frame_rate: int = 60,
    ):
        """
        Initialize the clock.

        Args:
            time_source: Returns the current time in seconds
            frame_rate: Frames per second used by run_for()
        """
        self._time = time_source
        self.frame_interval = 1.0 / frame_rate
        self._next_handle = 1
        self._frames: Dict[int, FrameCallback] = {}
        self._timers: Dict[int, _Timer] = {}

    def now(self) -> float:
        """Current time in seconds."""
        return self._time()

    def _allocate(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        return handle

    def request_frame(self, callback: FrameCallback) -> int:
        """Queue a callback for the next tick."""
        handle = self._allocate()
        self._frames[handle] = callback
        return handle

    def cancel_frame(self, handle: Optional[int]) -> None:
        """Cancel a queued frame callback. Unknown handles are ignored."""
        if handle is not None:
            self._frames.pop(handle, None)

    def call_later(self, delay: float, callback: TimerCallback) -> int:
        """Run a callback once, on the first tick at least `delay` seconds from now."""
        handle = self._allocate()
        self._timers[handle] = _Timer(due=self.now() + delay, callback=callback)
        return handle

    def cancel(self, handle: Optional[int]) -> None:
        """Cancel a timer or a frame callback."""
        if handle is None:
            return
        self._timers.pop(handle, None)
        self._frames.pop(handle, None)

    @property
    def pending(self) -> int:
        """Number of queued frame callbacks and timers."""
        return len(self._frames) + len(self._timers)

    @property
    def pending_frames(self) -> int:
        return len(self._frames)

    def tick(self, now: Optional[float] = None) -> int:
        """
        Run one frame.

        Frame callbacks queued before this tick run once; callbacks they
        queue wait for the next tick. Timers that are due run afterwards.
        A failing callback does not stop the rest of the batch; the first
        failure is re-raised once every callback has had its turn.

        Args:
            now: Override for the current time in seconds

        Returns:
            Number of callbacks that ran
        """
        current = self.now() if now is None else now
        ran = 0
        failures = []

        frames, self._frames = self._frames, {}
        for handle, callback in frames.items():
            ran += 1
            try:
                callback(current * 1000.0)
            except Exception as e:
                logger.exception("Frame callback %d failed", handle)
                failures.append(e)

        due = [h for h, t in self._timers.items() if t.due <= current]
        for handle in sorted(due, key=lambda h: self._timers[h].due):
            timer = self._timers.pop(handle, None)
            # An earlier timer may have cancelled this one
            if timer is None:
                continue
            ran += 1
            try:
                timer.callback()
            except Exception as e:
                logger.exception("Timer %d failed", handle)
                failures.append(e)

        if failures:
            raise failures[0]
        return ran

    def run_for(
        self,
        seconds: float,
        on_frame: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Pump the clock in real time.

        Args:
            seconds: How long to run
            on_frame: Called before every tick (e.g. to poll the page)
        """
        end_time = self.now() + seconds
        while self.now() < end_time:
            if on_frame:
                on_frame()
            self.tick()
            time.sleep(self.frame_interval)
