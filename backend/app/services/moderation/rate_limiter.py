from __future__ import annotations

import threading
import time
from collections import OrderedDict, deque
from typing import Callable, Deque, Optional


class SlidingWindowRateLimiter:
    """Per-key sliding window counter with bounded memory.

    Keys are kept in least-recently-active order, so idle keys are evicted
    from the front on every hit and the total never exceeds ``max_keys``.
    """

    def __init__(
        self,
        max_events: int,
        window_seconds: float,
        max_keys: int = 10_000,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_events = max_events
        self.window_seconds = float(window_seconds)
        self.max_keys = max(1, max_keys)
        self._clock = clock or time.monotonic
        self._events: OrderedDict[str, Deque[float]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, key: str) -> bool:
        return key in self._events

    def hit(self, key: str) -> bool:
        """Record one event for ``key``; False when the window is already full."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            self._evict_idle(cutoff)
            events = self._events.get(key)
            if events is None:
                events = deque()
                self._events[key] = events
            while events and events[0] <= cutoff:
                events.popleft()
            if len(events) >= self.max_events:
                return False
            events.append(now)
            self._events.move_to_end(key)
            while len(self._events) > self.max_keys:
                self._events.popitem(last=False)
            return True

    def sweep(self) -> int:
        """Drop every key with no event inside the window; returns how many were dropped."""
        cutoff = self._clock() - self.window_seconds
        with self._lock:
            before = len(self._events)
            for key in [k for k, events in self._events.items() if not events or events[-1] <= cutoff]:
                del self._events[key]
            return before - len(self._events)

    def _evict_idle(self, cutoff: float) -> None:
        while self._events:
            key, events = next(iter(self._events.items()))
            if events and events[-1] > cutoff:
                break
            del self._events[key]
