import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Thread-safe token bucket used to throttle calls to third-party APIs.

    Each acquire() takes one token. When the bucket is empty the caller reserves
    the next token (the balance goes negative) and sleeps until it is due, so
    concurrent callers are released one interval apart in arrival order.

    Args:
        rate: tokens added per second
        capacity: maximum tokens held; 1 means no bursting
        initial: starting balance, defaults to a full bucket
        clock / sleep: injectable for tests
    """

    def __init__(
        self,
        rate: float,
        capacity: float = 1.0,
        initial: Optional[float] = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.rate = rate
        self.capacity = capacity
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._tokens = capacity if initial is None else initial
        self._updated = clock()
        self._lock = threading.Lock()

    @classmethod
    def per_interval(cls, seconds: float, **kwargs) -> "TokenBucket":
        """One call every `seconds` seconds."""
        if seconds <= 0:
            raise ValueError("interval must be positive")
        return cls(rate=1.0 / seconds, **kwargs)

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    def acquire(self) -> float:
        """
        Take one token, blocking until it is available.

        Returns:
            the number of seconds the caller waited
        """
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1
            wait = 0.0 if self._tokens >= 0 else -self._tokens / self.rate

        if wait > 0:
            logger.debug(f"[{self.name}] throttling for {wait:.2f}s")
            self._sleep(wait)
        return wait
