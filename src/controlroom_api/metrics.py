"""Request instrumentation for the Control Room client.

Counts requests per operation and outcome and records their duration in a
caller-owned Prometheus registry (never the global one), so several clients
can be instrumented side by side.
"""

import prometheus_client
import prometheus_client.core


class RequestMetrics:
    """Prometheus counters and histograms for Control Room requests."""

    def __init__(
        self,
        registry: prometheus_client.core.CollectorRegistry | None = None,
        namespace: str = "controlroom",
    ):
        """Initialize the metrics.

        Args:
            registry: Registry to register metrics in. A fresh one is created
                when omitted.
            namespace: Metric name prefix.
        """
        self.registry = registry or prometheus_client.core.CollectorRegistry()
        self._requests = prometheus_client.Counter(
            "requests",
            "Control Room API requests by operation and outcome",
            labelnames=("operation", "outcome"),
            namespace=namespace,
            registry=self.registry,
        )
        self._duration = prometheus_client.Histogram(
            "request_duration_seconds",
            "Control Room API request duration in seconds",
            labelnames=("operation",),
            namespace=namespace,
            registry=self.registry,
        )

    def observe(self, operation: str, outcome: str, duration: float) -> None:
        """Record one finished request.

        Args:
            operation: Catalog operation name.
            outcome: ``"success"`` or the error class name.
            duration: Request duration in seconds.
        """
        self._requests.labels(operation=operation, outcome=outcome).inc()
        self._duration.labels(operation=operation).observe(duration)
