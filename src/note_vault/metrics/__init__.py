"""Metrics — Prometheus metrics collection."""

from __future__ import annotations

from note_vault.metrics.collector import MetricsCollector, StoreMetrics

__all__ = ["MetricsCollector", "StoreMetrics"]
