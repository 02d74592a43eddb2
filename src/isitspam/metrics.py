import functools
from typing import Final

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# Label values used for `spam_checks_total{outcome=...}`.
OUTCOMES: Final[tuple[str, ...]] = (
    "spam",
    "legitimate",
    "skipped",
    "validation_error",
    "rate_limited",
    "api_error",
    "error",
)


class MetricsManager:
    """
    Prometheus metrics recorded by the spam gate.

    Attributes
    ----------
    registry : CollectorRegistry
        Registry holding the metrics below. A fresh one is created when none
        is given, which keeps tests isolated.
    checks : Counter
        Spam gate invocations labeled by outcome (see `OUTCOMES`).
    check_time : Histogram
        Latency of calls to the spam check API, in seconds.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry: CollectorRegistry = registry or CollectorRegistry()

        self.checks: Counter = Counter(
            "spam_checks_total",
            "Spam gate invocations by outcome",
            ["outcome"],
            registry=self.registry,
        )

        # Covers only the outbound API call, not parameter extraction.
        self.check_time: Histogram = Histogram(
            "spam_check_seconds",
            "Latency of spam check API calls",
            buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
            registry=self.registry,
        )

    def record(self, outcome: str) -> None:
        self.checks.labels(outcome=outcome).inc()

    def render(self) -> bytes:
        """Render all metrics in Prometheus' text exposition format."""
        return generate_latest(self.registry)


@functools.cache
def get_metrics_manager() -> MetricsManager:
    """Retrieve the cached global MetricsManager."""
    return MetricsManager()
