"""Observability layer: in-process metrics. No external SaaS."""

from content_guard.observability.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
