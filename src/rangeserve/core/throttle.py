"""
Bandwidth pacing for the streaming loop.
"""

import logging
import time
from typing import Callable

log = logging.getLogger(__name__)

WINDOW_SECONDS = 1.0


class ThrottleState:
    """
    Caps sustained throughput to ``max_bytes_per_second`` averaged over 1-second windows.

    Bytes are accounted per window; after each chunk the caller is put to sleep
    until the time spent in the window matches the share of the budget already
    used. A fresh window starts once the budget is spent.
    """

    def __init__(
        self,
        max_bytes_per_second: int = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            max_bytes_per_second: Cap in bytes/second, 0 disables pacing.
            clock: Monotonic clock returning seconds.
            sleep: Blocking sleep taking seconds.
        """
        self.max_bytes_per_second = max_bytes_per_second
        self._clock = clock
        self._sleep = sleep
        self.window_start = clock()
        self.window_bytes = 0
        self.total_slept = 0.0

    @property
    def enabled(self) -> bool:
        return self.max_bytes_per_second > 0

    def chunk_size(self, remaining: int, default_chunk: int) -> int:
        """Size of the next read for a range with ``remaining`` bytes left."""
        cap = self.max_bytes_per_second if self.enabled else default_chunk
        return max(1, min(remaining, cap))

    def pace(self, sent: int) -> float:
        """
        Account for ``sent`` bytes and sleep if the window is ahead of its budget.

        Returns:
            The number of seconds slept.
        """
        if not self.enabled:
            return 0.0

        self.window_bytes += sent
        elapsed = self._clock() - self.window_start
        delay = self.window_bytes / self.max_bytes_per_second * WINDOW_SECONDS - elapsed

        if delay > 0:
            self._sleep(delay)
            self.total_slept += delay
        else:
            delay = 0.0

        if self.window_bytes >= self.max_bytes_per_second:
            self.window_start = self._clock()
            self.window_bytes = 0
        return delay
