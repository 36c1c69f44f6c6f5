"""
Kafka producer wrapper for order events.

Unlike a fire-and-forget emitter, publishing here blocks until the broker
confirms delivery (or the configured timeout expires), so the checkout
worker never acknowledges a queue message whose event was not stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from confluent_kafka import KafkaException, Producer

from common.config import KafkaConfig, get_config
from services.checkout_worker.errors import EventPublishFailed
from services.checkout_worker.models import OrderEvent

logger = logging.getLogger(__name__)


_producer: Optional[Producer] = None


@dataclass(frozen=True)
class DeliveryReport:
    topic: str
    partition: int
    offset: int

    def __str__(self) -> str:
        return f"{self.topic} [{self.partition}] @ {self.offset}"


def _get_producer(settings: Optional[KafkaConfig] = None) -> Producer:
    """
    Lazily construct the process-wide Kafka producer.

    The producer is reused for every message; it is only torn down by
    ``flush_producer`` at shutdown.
    """
    global _producer
    if _producer is not None:
        return _producer

    cfg = settings or get_config().kafka
    logger.info("Initialising Kafka producer (bootstrap_servers=%s)", cfg.bootstrap_servers)
    _producer = Producer(
        {
            "bootstrap.servers": cfg.bootstrap_servers,
            "acks": "all",
            "message.timeout.ms": int(cfg.delivery_timeout_seconds * 1000),
        }
    )
    return _producer


def publish_order_event(
    event: OrderEvent,
    key: str,
    settings: Optional[KafkaConfig] = None,
) -> DeliveryReport:
    """
    Produce one order event to the orders topic and wait for its delivery report.

    - Keyed by ``key`` (the invoice id) so events for one cart share a partition.
    - Value is the JSON-encoded ``OrderEvent``.
    - Any produce, delivery or timeout error raises ``EventPublishFailed``.
    """
    cfg = settings or get_config().kafka
    topic = cfg.orders_topic
    producer = _get_producer(cfg)

    value = event.serialize()
    logger.info("Kafka payload for %s: %s", key, value.decode("utf-8"))

    results: List[Any] = []

    def on_delivery(err: Any, msg: Any) -> None:
        results.append((err, msg))

    try:
        producer.produce(topic, key=key.encode("utf-8"), value=value, on_delivery=on_delivery)
        remaining = producer.flush(timeout=cfg.delivery_timeout_seconds)
    except (KafkaException, BufferError) as exc:
        logger.error("Kafka produce failed (topic=%s, key=%s): %s", topic, key, exc)
        raise EventPublishFailed(f"Kafka produce failed: {exc}") from exc

    if remaining > 0 or not results:
        logger.error("Kafka delivery timed out (topic=%s, key=%s)", topic, key)
        raise EventPublishFailed(
            f"Kafka delivery not confirmed within {cfg.delivery_timeout_seconds:g}s."
        )

    err, msg = results[0]
    if err is not None:
        logger.error("Kafka delivery failed (topic=%s, key=%s): %s", topic, key, err)
        raise EventPublishFailed(f"Kafka delivery failed: {err}")

    report = DeliveryReport(topic=msg.topic(), partition=msg.partition(), offset=msg.offset())
    logger.info("Kafka delivered order event for %s to %s", key, report)
    return report


def flush_producer(timeout_sec: float = 10.0) -> None:
    """
    Flush outstanding producer messages and drop the cached producer. Call at
    worker shutdown.
    """
    global _producer
    if _producer is None:
        return
    try:
        remaining = _producer.flush(timeout=timeout_sec)
        if remaining > 0:
            logger.warning("Kafka producer flush timed out; %d messages may be lost", remaining)
    except KafkaException as exc:
        logger.warning("Kafka producer flush failed: %s", exc)
    finally:
        _producer = None


__all__ = ["DeliveryReport", "flush_producer", "publish_order_event"]
