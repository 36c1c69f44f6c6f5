from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from services.checkout_worker import metrics


def _sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_counters_increment() -> None:
    metrics.record_received()
    before_received = _sample("checkout_messages_received_total")
    before_failed = _sample("checkout_pipeline_failures_total", {"error": "LedgerWriteFailed"})

    metrics.record_received()
    metrics.record_failure("LedgerWriteFailed")

    assert _sample("checkout_messages_received_total") == before_received + 1
    assert _sample("checkout_pipeline_failures_total", {"error": "LedgerWriteFailed"}) == before_failed + 1


def test_track_pipeline_labels_outcome() -> None:
    with metrics.track_pipeline():
        pass
    before = _sample("checkout_pipeline_latency_seconds_count", {"outcome": "failure"})

    with pytest.raises(ValueError):
        with metrics.track_pipeline():
            raise ValueError("step failed")

    assert _sample("checkout_pipeline_latency_seconds_count", {"outcome": "failure"}) == before + 1
    assert _sample("checkout_pipeline_latency_seconds_count", {"outcome": "success"}) >= 1


def test_start_metrics_server_binds_port(monkeypatch: pytest.MonkeyPatch) -> None:
    ports = []
    monkeypatch.setattr(metrics, "start_http_server", lambda port: ports.append(port))

    metrics.start_metrics_server(9108)

    assert ports == [9108]
