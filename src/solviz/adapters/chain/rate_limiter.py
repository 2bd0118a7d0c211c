import random
import time
from typing import Callable


class SimpleRateLimiter:
    def __init__(
        self,
        requests_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_sec <= 0:
            raise ValueError("requests_per_sec must be > 0")
        self._min_interval = 1.0 / requests_per_sec
        self._clock = clock
        self._sleep = sleep
        self._last_ts = float("-inf")

    def wait(self) -> None:
        wait_for = self._min_interval - (self._clock() - self._last_ts)
        if wait_for > 0:
            self._sleep(wait_for)
        self._last_ts = self._clock()


def backoff_delay(attempt: int, base: float = 0.5, cap: float = 8.0) -> float:
    # exponential with +/-30% jitter
    return min(cap, base * (2 ** attempt)) * (0.7 + random.random() * 0.6)


def backoff_sleep(attempt: int, base: float = 0.5, cap: float = 8.0) -> None:
    time.sleep(backoff_delay(attempt, base, cap))
