"""
Checkout worker entrypoint: consume start-checkout messages from SQS, post
invoices, publish order events to Kafka, record transactions in DynamoDB.

Run with ``python -m services.checkout_worker.main``.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from functools import partial
from typing import Any, Optional

from common.config import AppConfig, get_config
from services.checkout_worker import metrics
from services.checkout_worker.aws import make_client
from services.checkout_worker.currency_client import fetch_conversion_table
from services.checkout_worker.invoice_client import post_invoice
from services.checkout_worker.ledger import TransactionLedger
from services.checkout_worker.pipeline import CheckoutPipeline, CheckoutWorker, PipelineDeps
from services.checkout_worker.sqs_queue import SqsCheckoutQueue
from services.kafka.producer import flush_producer, publish_order_event

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
    )


def build_worker(cfg: AppConfig) -> CheckoutWorker:
    ledger = TransactionLedger(table_name=cfg.ledger.table_name, client=make_client("dynamodb", cfg.aws))
    deps = PipelineDeps(
        fetch_conversion_table=partial(fetch_conversion_table, cfg.currency_api),
        post_invoice=partial(post_invoice, settings=cfg.invoice_api),
        publish_order_event=partial(publish_order_event, settings=cfg.kafka),
        write_transaction=ledger.write_transaction,
    )
    return CheckoutWorker(
        queue=SqsCheckoutQueue(cfg.queue, client=make_client("sqs", cfg.aws)),
        pipeline=CheckoutPipeline(deps),
        poll_error_backoff_seconds=cfg.worker.poll_error_backoff_seconds,
    )


def main(stop_event: Optional[threading.Event] = None) -> None:
    cfg = get_config()
    configure_logging(cfg.worker.log_level)

    stop = stop_event or threading.Event()

    def shutdown(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s; stopping after the current message", signum)
        stop.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    if cfg.worker.metrics_port:
        metrics.start_metrics_server(cfg.worker.metrics_port)
        logger.info("Serving Prometheus metrics on :%d", cfg.worker.metrics_port)

    logger.info(
        "Checkout worker consuming %s (visibility_timeout=%ss, wait_time=%ss, topic=%s, table=%s)",
        cfg.queue.url,
        cfg.queue.visibility_timeout_seconds,
        cfg.queue.wait_time_seconds,
        cfg.kafka.orders_topic,
        cfg.ledger.table_name,
    )

    worker = build_worker(cfg)
    try:
        worker.run(stop)
    finally:
        flush_producer(timeout_sec=cfg.kafka.delivery_timeout_seconds)


if __name__ == "__main__":
    main()
