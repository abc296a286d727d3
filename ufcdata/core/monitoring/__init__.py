"""Monitoring helpers."""

from ufcdata.core.monitoring.metrics import IngestionMetricsCollector

__all__ = ["IngestionMetricsCollector"]
