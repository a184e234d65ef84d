"""
Per-session performance monitoring.
Thread-safe per-stage latency tracking with rolling windows, plus
processed/dropped/failed frame counters.
"""

import time
import threading
import logging
from collections import deque, Counter
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """Tracks per-stage latency and frame accounting for one session."""

    def __init__(self, window_size=100):
        self._window_size = window_size
        self._lock = threading.Lock()

        self._stage_times = {}
        for name in ("extraction", "classification"):
            self._stage_times[name] = deque(maxlen=window_size)

        self._processed = 0
        self._drops = Counter()
        self._errors = 0
        self._start_time = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Context manager to measure a pipeline stage's duration."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                if stage_name not in self._stage_times:
                    self._stage_times[stage_name] = deque(maxlen=self._window_size)
                self._stage_times[stage_name].append(elapsed_ms)

    def record_processed(self):
        with self._lock:
            self._processed += 1

    def record_drop(self, reason: str):
        """Record a dropped frame (``throttled`` or ``busy``)."""
        with self._lock:
            self._drops[reason] += 1

    def record_error(self):
        with self._lock:
            self._errors += 1

    def get_stage_latency(self, stage_name: str) -> float:
        """Get average latency for a specific stage in ms."""
        with self._lock:
            times = self._stage_times.get(stage_name, [])
            if not times:
                return 0.0
            return sum(times) / len(times)

    @property
    def processed_frames(self) -> int:
        return self._processed

    @property
    def dropped_frames(self) -> int:
        with self._lock:
            return sum(self._drops.values())

    def get_report(self) -> dict:
        """Snapshot of all counters and average latencies."""
        with self._lock:
            latencies = {
                name: (sum(times) / len(times) if times else 0.0)
                for name, times in self._stage_times.items()
            }
            return {
                "processed_frames": self._processed,
                "dropped_frames": dict(self._drops),
                "frame_errors": self._errors,
                "uptime_seconds": round(time.time() - self._start_time, 1),
                "latencies_ms": {k: round(v, 2) for k, v in latencies.items()},
            }
