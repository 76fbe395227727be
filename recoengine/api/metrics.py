"""Metrics service for tracking API performance.

Singleton service to track recommendation calls, latency and fallbacks.
"""

import threading
from collections import Counter
from typing import Dict


class MetricsService:
    """Singleton service for tracking API metrics.

    Thread-safe counter and latency tracking for recommendation calls.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize metrics counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._recommendation_count = 0
        self._total_latency_ms = 0.0
        self._min_latency_ms = float('inf')
        self._max_latency_ms = 0.0
        self._fallbacks: Counter = Counter()
        self._behavior_count = 0
        self._initialized = True

    def record_recommendation(self, latency_ms: float) -> None:
        """Record a recommendation call with its latency.

        Args:
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            self._recommendation_count += 1
            self._total_latency_ms += latency_ms

            if latency_ms < self._min_latency_ms:
                self._min_latency_ms = latency_ms

            if latency_ms > self._max_latency_ms:
                self._max_latency_ms = latency_ms

    def record_fallback(self, algorithm: str) -> None:
        """Record that a request for ``algorithm`` degraded to popularity."""
        with self._lock:
            self._fallbacks[algorithm] += 1

    def record_behavior(self) -> None:
        with self._lock:
            self._behavior_count += 1

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with metrics including:
            - recommendation_count: Total number of recommendation calls
            - average_latency_ms: Average latency in milliseconds
            - min_latency_ms: Minimum latency observed
            - max_latency_ms: Maximum latency observed
            - fallback_count: Total popularity fallbacks
            - fallbacks_by_algorithm: Fallbacks per requested algorithm
            - behavior_count: Tracked behavior events
        """
        with self._lock:
            avg_latency = (
                self._total_latency_ms / self._recommendation_count
                if self._recommendation_count > 0
                else 0.0
            )

            return {
                "recommendation_count": self._recommendation_count,
                "average_latency_ms": round(avg_latency, 2),
                "min_latency_ms": round(self._min_latency_ms, 2) if self._min_latency_ms != float('inf') else 0.0,
                "max_latency_ms": round(self._max_latency_ms, 2),
                "fallback_count": sum(self._fallbacks.values()),
                "fallbacks_by_algorithm": dict(self._fallbacks),
                "behavior_count": self._behavior_count,
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._recommendation_count = 0
            self._total_latency_ms = 0.0
            self._min_latency_ms = float('inf')
            self._max_latency_ms = 0.0
            self._fallbacks.clear()
            self._behavior_count = 0


# Global singleton instance
metrics_service = MetricsService()
