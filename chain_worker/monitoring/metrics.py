"""Prometheus metrics for RPC call observability"""

import time
from typing import Callable, Dict, Protocol

from prometheus_client import CONTENT_TYPE_LATEST, Histogram, generate_latest, start_http_server

BLOCKCHAIN_RPC_CALL_DURATION_METRIC_NAME = "blockchain_rpc_call_duration_seconds"

# Label set: the remote operation name
blockchain_rpc_call_duration = Histogram(
    BLOCKCHAIN_RPC_CALL_DURATION_METRIC_NAME,
    "Duration of blockchain RPC calls in seconds, including retries",
    ["function"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

StopTimer = Callable[[Dict[str, str]], float]


class DurationMetric(Protocol):
    """Start/stop timer capability used to record call durations"""

    def start_timer(self) -> StopTimer:
        """Start measuring; the returned callable stops the timer with labels"""
        ...


class HistogramDurationMetric:
    """DurationMetric backed by a labelled Prometheus histogram"""

    def __init__(self, histogram: Histogram = blockchain_rpc_call_duration):
        self._histogram = histogram

    def start_timer(self) -> StopTimer:
        start = time.perf_counter()

        def stop(labels: Dict[str, str]) -> float:
            duration = time.perf_counter() - start
            self._histogram.labels(**labels).observe(duration)
            return duration

        return stop


def get_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 9090)
    """
    start_http_server(port)
