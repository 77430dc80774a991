from __future__ import annotations

import time
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

DEFAULT_INTERVAL_SECONDS = 0.1


class CoalescingThrottle(Generic[T]):
    """
    Rate limiter where the last write wins.

    ``push`` replaces any pending value and delivers it immediately when the
    previous delivery is at least ``interval`` seconds old; otherwise the value
    waits until a later ``push`` or ``poll`` finds the interval elapsed, or an
    explicit ``flush``. Callers without further pushes (a pointer that stopped
    moving) call ``poll`` from their timer or event loop.
    """

    def __init__(
        self,
        deliver: Callable[[T], Any],
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._deliver = deliver
        self.interval = interval
        self._clock = clock
        self._pending: T | None = None
        self._has_pending = False
        self._last_delivery: float | None = None
        self.delivered = 0

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def push(self, value: T) -> bool:
        """Queue ``value``; return True when it was delivered right away."""
        self._pending = value
        self._has_pending = True
        now = self._clock()
        if self._last_delivery is None or now - self._last_delivery >= self.interval:
            self._send(now)
            return True
        return False

    def poll(self) -> bool:
        """Deliver the pending value once ``interval`` has passed since the last delivery."""
        if not self._has_pending:
            return False
        now = self._clock()
        if self._last_delivery is not None and now - self._last_delivery < self.interval:
            return False
        self._send(now)
        return True

    def flush(self) -> bool:
        """Deliver the pending value, if any, regardless of the interval."""
        if not self._has_pending:
            return False
        self._send(self._clock())
        return True

    def discard(self) -> None:
        self._pending = None
        self._has_pending = False

    def _send(self, now: float) -> None:
        value = self._pending
        self._pending = None
        self._has_pending = False
        self._last_delivery = now
        self.delivered += 1
        self._deliver(value)
