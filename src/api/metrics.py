"""Latency tracking for personalization operations.

Keeps per-operation timing statistics (section assembly, recommendation
scoring) for the performance endpoint. One tracker lives on the application
state; nothing here is a process-wide singleton.
"""

import threading
from typing import Dict


class _OperationStats:
    __slots__ = ("count", "total_ms", "min_ms", "max_ms")

    def __init__(self) -> None:
        self.count = 0
        self.total_ms = 0.0
        self.min_ms = float("inf")
        self.max_ms = 0.0


class PerformanceTracker:
    """Thread-safe latency statistics keyed by operation name."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stats: Dict[str, _OperationStats] = {}

    def record(self, operation: str, latency_ms: float) -> None:
        """Record one call of ``operation``.

        Args:
            operation: Operation name, e.g. "sections" or "recommendations"
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            stats = self._stats.setdefault(operation, _OperationStats())
            stats.count += 1
            stats.total_ms += latency_ms
            stats.min_ms = min(stats.min_ms, latency_ms)
            stats.max_ms = max(stats.max_ms, latency_ms)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """Get per-operation statistics.

        Returns:
            Mapping of operation name to count, average, min and max latency
            in milliseconds.
        """
        with self._lock:
            return {
                name: {
                    "count": stats.count,
                    "average_latency_ms": round(stats.total_ms / stats.count, 2),
                    "min_latency_ms": round(stats.min_ms, 2),
                    "max_latency_ms": round(stats.max_ms, 2),
                }
                for name, stats in self._stats.items()
                if stats.count > 0
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
