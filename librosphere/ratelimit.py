"""
Fixed-window request limiter
"""

import logging
import time
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Counts requests per client in wall-clock minute buckets.

    State lives in the instance only; separate processes keep separate
    counters, so the limit is approximate across a deployment.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: int = 60,
        cleanup_threshold: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_threshold = cleanup_threshold
        self.clock = clock
        self._counts: Dict[Tuple[str, int], int] = {}

    def current_bucket(self) -> int:
        return int(self.clock() // self.window_seconds)

    def check_and_consume(self, client_id: str) -> bool:
        """Count a request; False if the client is over its limit"""
        bucket = self.current_bucket()
        key = (client_id, bucket)

        count = self._counts.get(key, 0)
        if count >= self.max_requests:
            return False

        self._counts[key] = count + 1

        if len(self._counts) > self.cleanup_threshold:
            self._sweep(bucket - 1)

        return True

    def _sweep(self, bucket: int):
        # Only the previous bucket is evicted; older ones wait for the next sweep
        stale = [key for key in self._counts if key[1] == bucket]
        for key in stale:
            del self._counts[key]
        if stale:
            logger.debug(f"Rate limiter evicted {len(stale)} counters")

    def reset(self):
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)
