"""Prometheus metrics for access decisions and scheduled tasks."""

from prometheus_client import Counter, Histogram

# Access decision metrics
authz_decisions_total = Counter(
    "authz_decisions_total",
    "Total access decisions",
    ["check", "outcome"],
)

# Scheduler metrics
scheduler_tasks_total = Counter(
    "scheduler_tasks_total",
    "Total scheduled task executions by result",
    ["kind", "outcome"],
)

scheduler_poll_latency_ms = Histogram(
    "scheduler_poll_latency_ms",
    "Scheduler poll latency in milliseconds",
    ["mode"],
    buckets=[5, 10, 50, 100, 500, 1000, 5000, 30000, 60000],
)

# Audit metrics
audit_failures_total = Counter(
    "audit_failures_total",
    "Total audit records that could not be written",
    ["sink"],
)


class PrometheusAuthzMetrics:
    """Prometheus-based access decision metrics."""

    def inc_decision(self, check: str, outcome: str) -> None:
        """Increment decision counter."""
        authz_decisions_total.labels(check=check, outcome=outcome).inc()


class PrometheusSchedulerMetrics:
    """Prometheus-based scheduler metrics."""

    def inc_task(self, kind: str, outcome: str) -> None:
        """Increment task execution counter."""
        scheduler_tasks_total.labels(kind=kind, outcome=outcome).inc()

    def record_poll_latency(self, mode: str, latency_ms: float) -> None:
        """Record poll latency."""
        scheduler_poll_latency_ms.labels(mode=mode).observe(latency_ms)
