"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from src.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_CLEANUP_ABORTED,
    METRIC_JOBS_DISPATCHED,
    METRIC_JOBS_REMOVED,
    METRIC_JOBS_SCHEDULED,
    METRIC_POLL_DURATION,
    METRIC_SCHEDULE_SIZE,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the delayed scheduler.

    Collects metrics for:
    - Jobs scheduled, dispatched and removed
    - Guarded cleanups that lost their race
    - Schedule index size
    - Poll cycle duration
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        # Jobs scheduled counter
        self.jobs_scheduled = Counter(
            METRIC_JOBS_SCHEDULED,
            "Total number of jobs placed in the delayed queue",
            ["queue"],
            registry=self._registry,
        )

        # Jobs dispatched counter
        self.jobs_dispatched = Counter(
            METRIC_JOBS_DISPATCHED,
            "Total number of jobs moved to a live queue",
            ["queue", "source"],
            registry=self._registry,
        )

        # Jobs removed counter
        self.jobs_removed = Counter(
            METRIC_JOBS_REMOVED,
            "Total number of delayed jobs removed before dispatch",
            ["operation"],
            registry=self._registry,
        )

        # Cleanup aborted counter
        self.cleanup_aborted = Counter(
            METRIC_CLEANUP_ABORTED,
            "Total number of bucket cleanups aborted by a concurrent writer",
            registry=self._registry,
        )

        # Schedule size gauge
        self.schedule_size = Gauge(
            METRIC_SCHEDULE_SIZE,
            "Number of timestamps with pending delayed jobs",
            registry=self._registry,
        )

        # Poll duration histogram
        self.poll_duration = Histogram(
            METRIC_POLL_DURATION,
            "Duration of a poller cycle in seconds",
            buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0),
            registry=self._registry,
        )

        # API requests counter
        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        # API latency histogram
        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    def record_job_scheduled(self, queue: str) -> None:
        """Record a job entering the delayed queue."""
        self.jobs_scheduled.labels(queue=queue).inc()

    def record_job_dispatched(self, queue: str, source: str = "poller") -> None:
        """Record a job leaving for its live queue."""
        self.jobs_dispatched.labels(queue=queue, source=source).inc()

    def record_jobs_removed(self, operation: str, count: int) -> None:
        """Record delayed jobs removed by an operation."""
        if count > 0:
            self.jobs_removed.labels(operation=operation).inc(count)

    def record_cleanup_aborted(self) -> None:
        """Record a guarded cleanup that lost its race."""
        self.cleanup_aborted.inc()

    def update_schedule_size(self, size: int) -> None:
        """Update the schedule index size."""
        self.schedule_size.set(size)

    def record_poll(self, duration_seconds: float) -> None:
        """Record a poller cycle."""
        self.poll_duration.observe(duration_seconds)

    def record_api_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record an API request."""
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        self.api_latency.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
