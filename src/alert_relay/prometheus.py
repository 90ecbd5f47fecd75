# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for the alert relay.

All metrics use the ``relay_`` prefix.

Metrics exposed:
    - ``relay_sent_total``: Messages accepted by the SMTP relay, by kind
      (``alert`` or ``probe``).
    - ``relay_errors_total``: Failed delivery attempts, by kind.
    - ``relay_rejected_total``: Requests rejected before delivery, by reason
      (``unauthorized``, ``no_file``, ``too_many_files``, ``no_recipients``).

Example:
    Scraping the metrics::

        GET /metrics
        X-API-Key: <secret>
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class RelayMetrics:
    """Prometheus counters for delivery attempts and rejected requests.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        sent: Counter of successful deliveries.
        errors: Counter of failed deliveries.
        rejected: Counter of requests refused before delivery.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.sent = Counter(
            "relay_sent_total",
            "Total messages accepted by the SMTP relay",
            ["kind"],
            registry=self.registry,
        )
        self.errors = Counter(
            "relay_errors_total",
            "Total failed delivery attempts",
            ["kind"],
            registry=self.registry,
        )
        self.rejected = Counter(
            "relay_rejected_total",
            "Total requests rejected before delivery",
            ["reason"],
            registry=self.registry,
        )

    def inc_sent(self, kind: str = "alert") -> None:
        self.sent.labels(kind=kind).inc()

    def inc_error(self, kind: str = "alert") -> None:
        self.errors.labels(kind=kind).inc()

    def inc_rejected(self, reason: str) -> None:
        self.rejected.labels(reason=reason or "unknown").inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)
