"""Prometheus-style metrics collector. Thread-safe, in-memory. No real Prometheus dependency."""

import threading
from typing import Any, Mapping, Optional


def _series_key(name: str, labels: Optional[Mapping[str, str]]) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}{{{rendered}}}"


class MetricsCollector:
    """
    In-memory registry of counters and latency histograms.
    Audit write failures and integrity mismatches are counted here so that
    lost or tampered audit rows are visible operationally.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        labels: Optional[Mapping[str, str]] = None,
    ) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        labels: Optional[Mapping[str, str]] = None,
    ) -> None:
        key = _series_key(name, labels)
        with self._lock:
            self._histograms.setdefault(key, []).append(latency_ms)

    def counter(self, name: str, labels: Optional[Mapping[str, str]] = None) -> float:
        with self._lock:
            return self._counters.get(_series_key(name, labels), 0)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict (simulated Prometheus-style)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "histograms": {
                    k: {"count": len(v), "sum": sum(v)}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
