"""
Prometheus metrics for the checkout worker.

Collectors are created on first use and exposed through
``start_metrics_server`` when a metrics port is configured.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import Counter, Histogram, start_http_server

# ---------------------------------------------------------------------------
# Lazy singletons
# ---------------------------------------------------------------------------

_RECEIVED_COUNTER: Optional[Counter] = None
_ACKED_COUNTER: Optional[Counter] = None
_FAILED_COUNTER: Optional[Counter] = None
_PIPELINE_LATENCY_SECONDS: Optional[Histogram] = None


def _get_received_counter() -> Counter:
    global _RECEIVED_COUNTER
    if _RECEIVED_COUNTER is None:
        _RECEIVED_COUNTER = Counter(
            "checkout_messages_received_total",
            "Checkout messages received from the queue.",
        )
    return _RECEIVED_COUNTER


def _get_acked_counter() -> Counter:
    global _ACKED_COUNTER
    if _ACKED_COUNTER is None:
        _ACKED_COUNTER = Counter(
            "checkout_messages_acknowledged_total",
            "Checkout messages deleted from the queue after a full pipeline run.",
        )
    return _ACKED_COUNTER


def _get_failed_counter() -> Counter:
    global _FAILED_COUNTER
    if _FAILED_COUNTER is None:
        _FAILED_COUNTER = Counter(
            "checkout_pipeline_failures_total",
            "Pipeline runs that left their message on the queue.",
            labelnames=("error",),
        )
    return _FAILED_COUNTER


def _get_pipeline_latency() -> Histogram:
    global _PIPELINE_LATENCY_SECONDS
    if _PIPELINE_LATENCY_SECONDS is None:
        _PIPELINE_LATENCY_SECONDS = Histogram(
            "checkout_pipeline_latency_seconds",
            "Wall time of one checkout pipeline run in seconds.",
            labelnames=("outcome",),
        )
    return _PIPELINE_LATENCY_SECONDS


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def record_received() -> None:
    _get_received_counter().inc()


def record_acknowledged() -> None:
    _get_acked_counter().inc()


def record_failure(error: str) -> None:
    _get_failed_counter().labels(error=error).inc()


def observe_latency(outcome: str, duration_seconds: float) -> None:
    _get_pipeline_latency().labels(outcome=outcome).observe(duration_seconds)


@contextmanager
def track_pipeline() -> Iterator[None]:
    """
    Time one pipeline run, labelling it ``success`` or ``failure``:

    with track_pipeline():
        pipeline.process(message)
    """
    start = time.perf_counter()
    outcome = "failure"
    try:
        yield
        outcome = "success"
    finally:
        observe_latency(outcome, time.perf_counter() - start)


def start_metrics_server(port: int) -> None:
    start_http_server(port)


__all__ = [
    "observe_latency",
    "record_acknowledged",
    "record_failure",
    "record_received",
    "start_metrics_server",
    "track_pipeline",
]
