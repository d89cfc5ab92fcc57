"""Token-bucket admission control shared by every request a connector makes."""

import threading
import time
from typing import Callable

# Poll interval when the bucket can never refill (refill rate of 0).
_IDLE_WAIT = 1.0


class TokenBucket:
    """
    Bounds both sustained request rate and burst size.

    Tokens refill continuously at `refill_per_second`, capped at `capacity`.
    Refill is computed lazily on every admission check from elapsed clock
    time; there is no background timer. The bucket starts full.

    Thread-safe: token accounting happens under a lock, but waiting happens
    outside it, so a thread waiting for a token never blocks another thread's
    admission check.
    """

    def __init__(
        self,
        capacity: int,
        refill_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_per_second < 0:
            raise ValueError("refill_per_second must be >= 0")
        self.capacity = capacity
        self.refill_per_second = float(refill_per_second)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(capacity)
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_per_second)
        self._last_refill = now

    def _take_or_wait_time(self) -> float:
        """Consume a token and return 0, or return seconds until one is due."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            if self.refill_per_second == 0:
                return _IDLE_WAIT
            return (1.0 - self._tokens) / self.refill_per_second

    def acquire(self) -> None:
        """Wait until a token is available, then consume it. Never raises."""
        while True:
            wait = self._take_or_wait_time()
            if wait <= 0:
                return
            self._sleep(wait)

    def try_acquire(self) -> bool:
        """Consume a token if one is available right now."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    @property
    def available(self) -> float:
        """Tokens currently in the bucket (after refill)."""
        with self._lock:
            self._refill()
            return self._tokens
