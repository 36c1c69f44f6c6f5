from __future__ import annotations

import threading

import pytest

from common.config import load_config
from services.checkout_worker import main as worker_main
from services.checkout_worker.pipeline import CheckoutWorker
from services.checkout_worker.sqs_queue import SqsCheckoutQueue


def test_build_worker_wires_config(monkeypatch: pytest.MonkeyPatch, minimal_local_env) -> None:
    monkeypatch.setenv("CHECKOUT_QUEUE_URL", "http://sqs.test/queue/checkout")
    monkeypatch.setenv("WORKER_POLL_ERROR_BACKOFF_SECONDS", "1.5")
    cfg = load_config(env_file=None)

    worker = worker_main.build_worker(cfg)

    assert isinstance(worker, CheckoutWorker)
    assert isinstance(worker.queue, SqsCheckoutQueue)
    assert worker.queue.url == "http://sqs.test/queue/checkout"
    assert worker.poll_error_backoff_seconds == 1.5


def test_main_returns_when_stopped_and_flushes_producer(monkeypatch: pytest.MonkeyPatch, minimal_local_env) -> None:
    flushed = []
    monkeypatch.setattr(worker_main, "flush_producer", lambda timeout_sec: flushed.append(timeout_sec))
    monkeypatch.setattr(worker_main.signal, "signal", lambda signum, handler: None)
    stop = threading.Event()
    stop.set()

    worker_main.main(stop_event=stop)

    assert flushed == [10.0]
