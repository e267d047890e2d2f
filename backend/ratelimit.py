from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List

from fastapi import HTTPException


class SlidingWindowRateLimiter:
    def __init__(
        self,
        limits_per_window: Dict[str, int],
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limits_per_window = dict(limits_per_window)
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def enforce(self, caller_id: str, endpoint: str) -> None:
        # Only timestamps inside the active window are kept; reject once the limit is reached.
        limit = self.limits_per_window.get(endpoint)
        if limit is None:
            return
        now_ts = self._clock()
        key = f"{endpoint}:{caller_id}"
        with self._lock:
            cutoff = now_ts - self.window_seconds
            bucket = [x for x in self._buckets.get(key, []) if x >= cutoff]
            if len(bucket) >= limit:
                oldest = bucket[0] if bucket else now_ts
                retry_after = max(1, int((oldest + self.window_seconds) - now_ts) + 1)
                self._buckets[key] = bucket
                raise HTTPException(
                    status_code=429,
                    detail={
                        "message": "Rate limit exceeded. Please retry shortly.",
                        "endpoint": endpoint,
                        "limit_per_window": limit,
                        "retry_after_seconds": retry_after,
                    },
                )
            bucket.append(now_ts)
            self._buckets[key] = bucket
