"""Metrics collector — Prometheus counters and histograms for the store.

- ``notevault_cas_conflicts_total{operation}``
- ``notevault_cas_exhausted_total{operation}``
- ``notevault_corrupt_records_total``
- ``notevault_store_operation_seconds{operation}``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "notevault"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`StoreMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class StoreMetrics:
    """High-level metrics for the encrypted store.

    The operation histogram tracks durations in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._cas_conflicts = self._collector.counter(
            f"{_PREFIX}_cas_conflicts_total",
            "Compare-and-set writes that lost a race and were retried",
            ("operation",),
        )
        self._cas_exhausted = self._collector.counter(
            f"{_PREFIX}_cas_exhausted_total",
            "Writes abandoned after exhausting compare-and-set retries",
            ("operation",),
        )
        self._corrupt = self._collector.counter(
            f"{_PREFIX}_corrupt_records_total",
            "Records that failed to decrypt or deserialize",
        )
        self._operations = self._collector.histogram(
            f"{_PREFIX}_store_operation_seconds",
            "Duration of encrypted store operations",
            ("operation",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_cas_conflict(self, operation: str) -> None:
        self._cas_conflicts.labels(operation=operation).inc()

    def record_cas_exhausted(self, operation: str) -> None:
        self._cas_exhausted.labels(operation=operation).inc()

    def record_corruption(self) -> None:
        self._corrupt.inc()

    @contextmanager
    def track(self, operation: str) -> Iterator[None]:
        """Track the duration of one store operation."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._operations.labels(operation=operation).observe(time.monotonic() - start)
