"""In-memory throttle for authenticated write endpoints."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque

from ..errors import RateLimitError


class WriteThrottle:
    """Sliding-window counter per `(uid, route)` key.

    State lives in process memory, so each worker process throttles
    independently.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str) -> tuple[bool, int]:
        """Record a hit for `key`; return (allowed, retry_after_seconds)."""
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            cutoff = now - self.window_seconds
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= self.max_requests:
                return False, max(1, int(self.window_seconds - (now - q[0])))
            q.append(now)
        return True, 0

    def check(self, uid: str, route: str) -> None:
        allowed, retry_after = self.allow(f"{uid}:{route}")
        if not allowed:
            raise RateLimitError(retry_after)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
