from __future__ import annotations

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Dict, List

from settings import RECENT_LOG_SIZE


def _build_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger


class EventLog:
    """One JSON object per line, plus a bounded buffer for the dashboard."""

    def __init__(self, name: str = "inkwell", maxlen: int = RECENT_LOG_SIZE) -> None:
        self.logger = _build_logger(name)
        self.recent: deque = deque(maxlen=maxlen)

    def emit(self, event: str, level: int = logging.INFO, **kwargs: object) -> None:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **kwargs,
        }
        self.recent.appendleft(payload)
        self.logger.log(level, json.dumps(payload, default=str))

    def error(self, event: str, **kwargs: object) -> None:
        self.emit(event, level=logging.ERROR, **kwargs)

    def tail(self, count: int = 80) -> List[dict]:
        return list(self.recent)[:count]


class EndpointMetrics:
    def __init__(self, buffer_size: int = 400) -> None:
        self.buffer_size = buffer_size
        self._metrics: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def record(self, endpoint: str, latency_ms: float, ok: bool) -> None:
        with self._lock:
            m = self._metrics.setdefault(
                endpoint,
                {"count": 0, "errors": 0, "latency_total_ms": 0.0, "latency_p95_buffer": []},
            )
            m["count"] += 1
            if not ok:
                m["errors"] += 1
            m["latency_total_ms"] += latency_ms
            m["latency_p95_buffer"].append(latency_ms)
            if len(m["latency_p95_buffer"]) > self.buffer_size:
                m["latency_p95_buffer"] = m["latency_p95_buffer"][-self.buffer_size :]

    def snapshot(self) -> Dict[str, dict]:
        # Handlers record from worker threads while the dashboard reads.
        with self._lock:
            rows = [
                (endpoint, value["count"], value["errors"], value["latency_total_ms"], list(value["latency_p95_buffer"]))
                for endpoint, value in self._metrics.items()
            ]
        payload = {}
        for endpoint, count, errors, latency_total, buffer in rows:
            p95_buffer = sorted(buffer)
            p95_idx = int(0.95 * (len(p95_buffer) - 1)) if p95_buffer else 0
            p95 = p95_buffer[p95_idx] if p95_buffer else 0.0
            payload[endpoint] = {
                "count": count,
                "errors": errors,
                "avg_latency_ms": round(latency_total / max(count, 1), 2),
                "p95_latency_ms": round(p95, 2),
            }
        return payload
