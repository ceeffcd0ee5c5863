"""
Prometheus metrics collection.

In-memory counters for the shipping path; dropped records are only
observable here and in debug logs.
"""

import time
from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, Info

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for the log shipper.

    Pass a fresh ``CollectorRegistry`` to keep instances independent.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        registry = registry if registry is not None else REGISTRY
        self.registry = registry

        # Service info
        self.service_info = Info(
            "logship_service",
            "Log shipper information",
            registry=registry,
        )
        self.service_info.info({
            "version": "0.1.0",
            "service": "logship",
        })

        # Shipping outcome metrics
        self.records_shipped_total = Counter(
            "logship_records_shipped_total",
            "Total records appended to the remote stream",
            registry=registry,
        )

        self.records_dropped_total = Counter(
            "logship_records_dropped_total",
            "Total records abandoned before reaching the remote stream",
            ["reason"],
            registry=registry,
        )

        # Backend call metrics
        self.backend_calls_total = Counter(
            "logship_backend_calls_total",
            "Total calls made to the log stream backend",
            ["operation", "outcome"],
            registry=registry,
        )

        self.token_conflicts_total = Counter(
            "logship_token_conflicts_total",
            "Total appends rejected for presenting a stale write token",
            registry=registry,
        )

        self.ship_duration = Histogram(
            "logship_ship_duration_seconds",
            "Time from scheduling a record to its final outcome",
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
            registry=registry,
        )

        self.ship_in_flight = Gauge(
            "logship_ship_in_flight",
            "Shipping tasks currently scheduled or running",
            registry=registry,
        )

        self.uptime_seconds = Gauge(
            "logship_uptime_seconds",
            "Shipper uptime in seconds",
            registry=registry,
        )

        # Track start time for uptime calculation
        self._start_time = time.time()

    def record_backend_call(self, operation: str, outcome: str) -> None:
        """Record one describe or append call and how it ended."""
        self.backend_calls_total.labels(operation=operation, outcome=outcome).inc()
        if outcome == "conflict":
            self.token_conflicts_total.inc()

    def record_shipped(self, duration_seconds: float) -> None:
        self.records_shipped_total.inc()
        self.ship_duration.observe(duration_seconds)

    def record_dropped(self, reason: str, duration_seconds: Optional[float] = None) -> None:
        self.records_dropped_total.labels(reason=reason).inc()
        if duration_seconds is not None:
            self.ship_duration.observe(duration_seconds)

    def update_system_metrics(self, in_flight: int) -> None:
        """Update gauges sampled at scrape time."""
        self.ship_in_flight.set(in_flight)
        self.uptime_seconds.set(time.time() - self._start_time)
