"""Run metrics collection and display."""

from dagflow.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
