import json
import logging
import threading
import time
from typing import Dict

from .client import WriteResult


class WriteMetrics:
    """Thread-safe accumulator for dispatch and write counters."""

    def __init__(self, log_interval_s: float = 60.0, logger: logging.Logger | None = None) -> None:
        self.log_interval_s = max(0.0, float(log_interval_s))
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._last_log_time = self._start_time
        self._counters = self._initial_counters()
        self._last_snapshot = self._counters.copy()

    @staticmethod
    def _initial_counters() -> Dict[str, int]:
        return {
            "activations": 0,
            "writes_dispatched": 0,
            "writes_succeeded": 0,
            "writes_rejected": 0,
            "writes_unreachable": 0,
            "writes_unknown": 0,
            "slots_skipped": 0,
        }

    def record_activation(self, dispatched: int, skipped: int = 0) -> None:
        with self._lock:
            self._counters["activations"] += 1
            self._counters["writes_dispatched"] += max(0, dispatched)
            self._counters["slots_skipped"] += max(0, skipped)
        self.maybe_log()

    def record_result(self, result: WriteResult) -> None:
        key = "writes_succeeded" if result.ok else f"writes_{result.kind or 'unknown'}"
        with self._lock:
            self._counters[key] += 1
        self.maybe_log()

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return self._counters.copy()

    def maybe_log(self, force: bool = False) -> None:
        now = time.time()
        with self._lock:
            interval = now - self._last_log_time
            if not force and self.log_interval_s > 0.0 and interval < self.log_interval_s:
                return

            payload = self._build_payload(now, interval)
            self._last_log_time = now
            self._last_snapshot = self._counters.copy()

        self._logger.info("write_metrics %s", json.dumps(payload, sort_keys=True))

    def _build_payload(self, now: float, interval: float) -> Dict[str, object]:
        delta = {
            key: self._counters[key] - self._last_snapshot.get(key, 0)
            for key in self._counters
        }
        return {
            "type": "write_metrics",
            "uptime_s": round(now - self._start_time, 3),
            "interval_s": round(interval, 3),
            "counters": self._counters.copy(),
            "delta": delta,
        }
