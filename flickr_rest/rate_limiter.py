"""Request pacing for a single Session.

Two states: idle (no request yet) and paced (start time of the previous
request recorded). A slot is granted no earlier than ``last + min_delay``.
The wait is a blocking sleep on the calling thread; if the sleep returns
early (a signal handler ran, or the platform woke us up) the remaining time
is recomputed from the monotonic clock and the sleep resumed.

Not thread-safe: a Session shared between threads needs an external lock.
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """Blocks the caller until the minimum inter-request delay has passed.

    Usage:
        limiter = RateLimiter(min_delay_ms=1000)
        limiter.await_next_slot()   # returns at once
        limiter.await_next_slot()   # returns ~1s after the first
    """

    def __init__(self, min_delay_ms: int = 1000) -> None:
        if min_delay_ms < 0:
            raise ValueError(f"min_delay_ms must be >= 0, got {min_delay_ms}")
        self._min_interval = min_delay_ms / 1000.0
        self._last_request_time: float | None = None

    @property
    def min_delay_ms(self) -> int:
        return round(self._min_interval * 1000)

    @min_delay_ms.setter
    def min_delay_ms(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"min_delay_ms must be >= 0, got {value}")
        self._min_interval = value / 1000.0

    @property
    def idle(self) -> bool:
        """True until the first slot has been granted."""
        return self._last_request_time is None

    @property
    def last_request_time(self) -> float | None:
        return self._last_request_time

    def reset(self) -> None:
        """Forget the previous request; the next slot is granted at once."""
        self._last_request_time = None

    def await_next_slot(self) -> float:
        """Wait for the next request slot and record its start time.

        Returns:
            Seconds spent waiting (0.0 when no wait was needed).
        """
        now = time.monotonic()
        waited = 0.0

        if self._last_request_time is not None and self._min_interval > 0:
            deadline = self._last_request_time + self._min_interval
            remaining = deadline - now
            if remaining > 0:
                logger.debug("Pacing: waiting %.3fs before next request", remaining)
            started = now
            while remaining > 0:
                time.sleep(remaining)
                now = time.monotonic()
                remaining = deadline - now
            waited = now - started

        # The slot starts now, not at the deadline
        self._last_request_time = now
        return waited
