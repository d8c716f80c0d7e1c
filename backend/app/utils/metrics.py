"""Prometheus metrics for chat turns and completion calls."""

from prometheus_client import Counter, Histogram

# Completion provider metrics
completion_latency_ms = Histogram(
    "completion_latency_ms",
    "Completion call latency in milliseconds",
    ["mode", "outcome"],
    buckets=[100, 500, 1000, 2000, 5000, 10000, 30000, 60000, 120000, 240000],
)

completion_errors_total = Counter(
    "completion_errors_total",
    "Total completion call errors",
    ["reason"],
)

sse_frames_skipped_total = Counter(
    "sse_frames_skipped_total",
    "Total SSE frames skipped because they could not be parsed",
    ["reason"],
)

# Turn metrics
chat_turns_total = Counter(
    "chat_turns_total",
    "Total chat turns by outcome",
    ["mode", "outcome"],
)

excerpt_cache_hits_total = Counter(
    "excerpt_cache_hits_total",
    "Total document excerpt cache hits",
)


class PrometheusCompletionMetrics:
    """Prometheus-based completion metrics implementation."""

    def record_latency(self, mode: str, outcome: str, latency_ms: float) -> None:
        """Record completion call latency."""
        completion_latency_ms.labels(mode=mode, outcome=outcome).observe(latency_ms)

    def inc_error(self, reason: str) -> None:
        """Increment error counter."""
        completion_errors_total.labels(reason=reason).inc()

    def inc_skipped_frame(self, reason: str) -> None:
        """Increment skipped SSE frame counter."""
        sse_frames_skipped_total.labels(reason=reason).inc()


def record_turn(mode: str, outcome: str) -> None:
    """Count a finished chat turn."""
    chat_turns_total.labels(mode=mode, outcome=outcome).inc()
