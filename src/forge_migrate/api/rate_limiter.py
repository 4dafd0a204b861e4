"""Rate limiting implementation for forge API calls."""

import threading
import time


class RateLimiter:
    """Token bucket rate limiter for API requests."""

    def __init__(self, requests_per_second: float = 10.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        if requests_per_second <= 0:
            raise ValueError('requests_per_second must be positive')
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = now - self.last_update
        self.tokens = min(
            self.requests_per_second, self.tokens + elapsed * self.requests_per_second
        )
        self.last_update = now

    def acquire(self) -> None:
        """Acquire a token for making a request.

        Blocks until a token is available. Safe to call from worker threads.
        """
        with self._lock:
            self._refill(time.monotonic())

            if self.tokens >= 1:
                self.tokens -= 1
                return

            # Calculate sleep time needed
            sleep_time = (1 - self.tokens) / self.requests_per_second
            time.sleep(sleep_time)
            self.last_update = time.monotonic()
            self.tokens = 0
