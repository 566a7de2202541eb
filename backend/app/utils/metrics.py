"""Prometheus metrics for retrieval sources and plan mutations."""

from prometheus_client import Counter, Histogram

# Retrieval source metrics
search_latency_ms = Histogram(
    "search_latency_ms",
    "Search source latency in milliseconds",
    ["source", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

search_errors_total = Counter(
    "search_errors_total",
    "Total search source errors",
    ["source", "reason"],
)

# Mutation engine metrics
plan_mutations_total = Counter(
    "plan_mutations_total",
    "Chat turns by outcome",
    ["outcome"],
)

generation_failures_total = Counter(
    "generation_failures_total",
    "Generative model calls that failed or returned unusable output",
    ["reason"],
)


class PrometheusSourceMetrics:
    """Prometheus-based source metrics implementation."""

    def record_latency(self, source: str, outcome: str, latency_ms: float) -> None:
        """Record source call latency."""
        search_latency_ms.labels(source=source, outcome=outcome).observe(latency_ms)

    def inc_error(self, source: str, reason: str) -> None:
        """Increment error counter."""
        search_errors_total.labels(source=source, reason=reason).inc()
