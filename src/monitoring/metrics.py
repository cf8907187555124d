"""
Prometheus metrics for the book order pipeline.

Tracks:
- Orders generated per item
- Publishes and publish failures per topic
- Publish acknowledgment latency
- Messages received by consumers
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
    start_http_server,
)

from src.utils.logging import get_logger

logger = get_logger(__name__)


class PipelineMetrics:
    """Prometheus metrics for order generation, publishing and consumption."""

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        prefix: str = "book_orders",
    ) -> None:
        """
        Initialize metrics.

        Args:
            registry: Prometheus registry (a private one if None)
            prefix: Prefix for all metric names
        """
        self._registry = registry or CollectorRegistry()
        self._prefix = prefix

        self.generated_total = Counter(
            self._metric_name("generated_total"),
            "Total number of orders generated",
            ["item"],
            registry=self._registry,
        )

        self.published_total = Counter(
            self._metric_name("published_total"),
            "Total number of orders acknowledged by the broker",
            ["topic"],
            registry=self._registry,
        )

        self.publish_failures_total = Counter(
            self._metric_name("publish_failures_total"),
            "Total number of failed pipeline runs",
            ["topic", "error_type"],
            registry=self._registry,
        )

        self.publish_seconds = Histogram(
            self._metric_name("publish_seconds"),
            "Time from submission to broker acknowledgment",
            ["topic"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

        self.consumed_total = Counter(
            self._metric_name("consumed_total"),
            "Total number of messages received by consumers",
            ["topic", "group"],
            registry=self._registry,
        )

        logger.debug("Metrics initialized", prefix=prefix)

    def _metric_name(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    def record_generated(self, item: str) -> None:
        self.generated_total.labels(item=item).inc()

    def record_published(self, topic: str, latency_seconds: float) -> None:
        self.published_total.labels(topic=topic).inc()
        self.publish_seconds.labels(topic=topic).observe(latency_seconds)

    def record_failure(self, topic: str, error_type: str) -> None:
        self.publish_failures_total.labels(topic=topic, error_type=error_type).inc()

    def record_consumed(self, topic: str, group: str) -> None:
        self.consumed_total.labels(topic=topic, group=group).inc()

    def generate_metrics(self) -> bytes:
        """Generate Prometheus metrics output."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def get_registry(self) -> CollectorRegistry:
        return self._registry

    def serve(self, port: int) -> None:
        """Expose the registry on an HTTP endpoint for scraping."""
        start_http_server(port, registry=self._registry)
        logger.info("Metrics exporter started", port=port)
