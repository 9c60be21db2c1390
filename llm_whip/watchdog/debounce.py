# llm_whip/watchdog/debounce.py

"""
Debouncing for matches and file system events
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Set

from .events import WatchdogEvent

logger = logging.getLogger(__name__)


class DebounceGate:
    """
    Suppresses repeat occurrences of a key inside a time window

    The first occurrence of a key always passes. A repeat passes only once
    the window has elapsed since the last pass; otherwise it is dropped.
    """

    def __init__(self, window_ms: int = 2000,
                 clock: Callable[[], float] = time.monotonic,
                 max_keys: int = 10000):
        """
        Initialize debounce gate

        Args:
            window_ms: Suppression window in milliseconds, 0 disables the gate
            clock: Time source returning seconds
            max_keys: Map size above which expired keys are swept
        """
        self.window_ms = max(0, int(window_ms or 0))
        self.clock = clock
        self.max_keys = max_keys
        self.last_pass: Dict[Hashable, float] = {}

        # Statistics
        self.stats = {
            'admitted': 0,
            'suppressed': 0,
            'swept': 0,
        }

    @property
    def enabled(self) -> bool:
        return self.window_ms > 0

    @property
    def window(self) -> float:
        """Window in seconds"""
        return self.window_ms / 1000.0

    def admit(self, key: Hashable, now: Optional[float] = None) -> bool:
        """
        Decide whether an occurrence of key should pass

        Args:
            key: Occurrence key, typically (file, line, pattern)
            now: Timestamp in seconds (defaults to the gate's clock)

        Returns:
            True if the occurrence passes
        """
        if not self.enabled:
            self.stats['admitted'] += 1
            return True

        if now is None:
            now = self.clock()

        last = self.last_pass.get(key)
        if last is not None and now - last < self.window:
            self.stats['suppressed'] += 1
            logger.debug(f"Debounced {key}")
            return False

        self.last_pass[key] = now
        self.stats['admitted'] += 1

        if len(self.last_pass) > self.max_keys:
            self.sweep(now)

        return True

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Drop keys whose last pass is older than the window

        Returns:
            Number of keys removed
        """
        if now is None:
            now = self.clock()

        expired = [key for key, last in self.last_pass.items() if now - last >= self.window]
        for key in expired:
            del self.last_pass[key]

        self.stats['swept'] += len(expired)
        if expired:
            logger.debug(f"Swept {len(expired)} expired debounce keys")
        return len(expired)

    def clear(self):
        self.last_pass.clear()

    def __len__(self) -> int:
        return len(self.last_pass)

    def get_stats(self) -> Dict[str, Any]:
        """Get gate statistics"""
        return {
            **self.stats,
            'active_keys': len(self.last_pass),
            'window_ms': self.window_ms,
        }


class EventDebouncer:
    """
    Coalesces raw file system events into one processing pass per path

    Every event for a path restarts that path's settle timer; when the timer
    fires, one pass runs. Passes for the same path never overlap: events that
    arrive during a pass mark the path dirty and a single follow-up pass runs
    once the current one finishes.

    All methods except stop() must be called on the event loop thread.
    """

    def __init__(self, process: Callable[[Any], Awaitable[Any]],
                 settle_delay: float = 0.1,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize event debouncer

        Args:
            process: Coroutine function run with the path to process
            settle_delay: Seconds to wait after the last event for a path
            loop: Event loop owning the timers (running loop when omitted)
        """
        self.process = process
        self.settle_delay = settle_delay
        self.loop = loop

        self.timers: Dict[Any, asyncio.TimerHandle] = {}
        self.in_flight: Set[Any] = set()
        self.dirty: Set[Any] = set()
        self.tasks: Set[asyncio.Task] = set()
        self.is_running = True

        # Statistics
        self.stats = {
            'events_received': 0,
            'events_coalesced': 0,
            'passes_run': 0,
            'passes_failed': 0,
        }

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    def add_event(self, event: WatchdogEvent):
        """Schedule a pass for the event's path"""
        self.add_path(event.path)

    def add_path(self, path: Any):
        if not self.is_running:
            return

        self.stats['events_received'] += 1

        if path in self.in_flight:
            self.dirty.add(path)
            self.stats['events_coalesced'] += 1
            return

        timer = self.timers.pop(path, None)
        if timer is not None:
            timer.cancel()
            self.stats['events_coalesced'] += 1

        self.timers[path] = self._get_loop().call_later(self.settle_delay, self._fire, path)

    def _fire(self, path: Any):
        self.timers.pop(path, None)
        if not self.is_running:
            return

        self.in_flight.add(path)
        task = self._get_loop().create_task(self._run(path))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def _run(self, path: Any):
        try:
            while True:
                self.dirty.discard(path)
                self.stats['passes_run'] += 1
                try:
                    await self.process(path)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.stats['passes_failed'] += 1
                    logger.error(f"Error processing {path}: {e}", exc_info=True)

                if not (self.is_running and path in self.dirty):
                    break
                # Let the follow-up write settle too
                await asyncio.sleep(self.settle_delay)
        finally:
            self.in_flight.discard(path)
            self.dirty.discard(path)

    @property
    def pending(self) -> int:
        return len(self.timers) + len(self.in_flight)

    async def wait_idle(self):
        """Wait until no timers are pending and no pass is running"""
        while self.timers or self.tasks:
            if self.tasks:
                await asyncio.gather(*list(self.tasks), return_exceptions=True)
            else:
                await asyncio.sleep(self.settle_delay)

    async def stop(self):
        """Cancel pending timers and wait for in-flight passes"""
        self.is_running = False

        for timer in self.timers.values():
            timer.cancel()
        self.timers.clear()

        if self.tasks:
            await asyncio.gather(*list(self.tasks), return_exceptions=True)

        self.dirty.clear()
        logger.debug("EventDebouncer stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Get debouncer statistics"""
        return {
            **self.stats,
            'pending_timers': len(self.timers),
            'in_flight': len(self.in_flight),
            'is_running': self.is_running,
            'settle_delay': self.settle_delay,
        }
