"""
Checkout-to-invoice pipeline and the worker loop that drives it.

Per message, strictly in order:

1. parse the queue body into a ``CheckoutMessage``
2. fetch fresh rates and build the conversion table
3. compute the settlement total and assemble the invoice
4. POST the invoice
5. publish the order event
6. write the transaction ledger entry

The message is deleted from the queue only after step 6 succeeds. Any
failure leaves it in place; once its lease expires the whole pipeline runs
again from step 1. Steps already completed by the failed attempt (an
invoice POST, an event) are not rolled back and will be repeated.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

from pydantic import ValidationError

from services.checkout_worker import metrics
from services.checkout_worker.currency import ConversionTable, compute_total
from services.checkout_worker.errors import CheckoutError, DeserializationFailed
from services.checkout_worker.invoice import (
    assemble_invoice,
    build_order_event,
    build_transaction_record,
)
from services.checkout_worker.models import CheckoutMessage, Invoice, OrderEvent, TransactionRecord
from services.checkout_worker.sqs_queue import QueueMessage

logger = logging.getLogger(__name__)


class CheckoutQueue(Protocol):
    def receive(self) -> Sequence[QueueMessage]: ...

    def delete(self, receipt_handle: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PipelineDeps:
    fetch_conversion_table: Callable[[], ConversionTable]
    post_invoice: Callable[[Invoice, str], Any]
    publish_order_event: Callable[[OrderEvent, str], Any]
    write_transaction: Callable[[TransactionRecord], None]
    clock: Callable[[], datetime] = field(default=_utcnow)


@dataclass(frozen=True)
class PipelineResult:
    invoice: Invoice
    event: OrderEvent
    record: TransactionRecord
    delivery: Any = None


def parse_message(body: str) -> CheckoutMessage:
    try:
        return CheckoutMessage.model_validate_json(body)
    except ValidationError as e:
        raise DeserializationFailed(f"Invalid checkout message: {e.error_count()} error(s)") from e


class CheckoutPipeline:
    def __init__(self, deps: PipelineDeps) -> None:
        self.deps = deps

    def process(self, body: str) -> PipelineResult:
        message = parse_message(body)
        cart_id = message.cart.id
        logger.info(
            "Processing cart %s (%d items, settle in %s)",
            cart_id,
            len(message.cart.items),
            message.invoice.currency_code,
        )

        table = self.deps.fetch_conversion_table()
        total = compute_total(message.cart.items, table, message.invoice.currency_code)
        invoice = assemble_invoice(message, total)
        logger.info("Cart %s total is %d (scale %d) %s", cart_id, total.amount, total.scale, total.currency_code)

        self.deps.post_invoice(invoice, message.correlation_token)

        event = build_order_event(message, invoice)
        delivery = self.deps.publish_order_event(event, invoice.id)

        record = build_transaction_record(message, invoice, self.deps.clock())
        self.deps.write_transaction(record)

        return PipelineResult(invoice=invoice, event=event, record=record, delivery=delivery)


class CheckoutWorker:
    """
    Single-threaded poll loop: one message at a time, acknowledged only on
    full success. Scale out by running more worker processes; the queue lease
    is the only mutual exclusion between them.
    """

    def __init__(
        self,
        queue: CheckoutQueue,
        pipeline: CheckoutPipeline,
        poll_error_backoff_seconds: float = 5.0,
    ) -> None:
        self.queue = queue
        self.pipeline = pipeline
        self.poll_error_backoff_seconds = poll_error_backoff_seconds

    def handle(self, message: QueueMessage) -> bool:
        """Run the pipeline for one message; return True if it was acknowledged."""
        metrics.record_received()
        try:
            with metrics.track_pipeline():
                self.pipeline.process(message.body)
        except CheckoutError as exc:
            metrics.record_failure(type(exc).__name__)
            logger.error(
                "Checkout message %s failed (receive_count=%d): %s: %s",
                message.message_id,
                message.receive_count,
                type(exc).__name__,
                exc,
            )
            return False
        except Exception:
            metrics.record_failure("unexpected")
            logger.exception(
                "Checkout message %s failed unexpectedly (receive_count=%d)",
                message.message_id,
                message.receive_count,
            )
            return False

        try:
            self.queue.delete(message.receipt_handle)
        except Exception:
            # Everything downstream already happened; redelivery will repeat it.
            logger.exception("Failed to acknowledge checkout message %s", message.message_id)
            return False

        metrics.record_acknowledged()
        logger.info("Checkout message %s processed and acknowledged", message.message_id)
        return True

    def poll_once(self) -> int:
        """Receive one batch (at most one message) and process it; return the ack count."""
        acked = 0
        for message in self.queue.receive():
            if self.handle(message):
                acked += 1
        return acked

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Poll until ``stop_event`` is set. The event is checked only between
        polls; a message already in flight always runs to completion.
        """
        stop = stop_event or threading.Event()
        logger.info("Checkout worker started")
        while not stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Polling the checkout queue failed; retrying")
                stop.wait(self.poll_error_backoff_seconds)
        logger.info("Checkout worker stopped")


__all__ = [
    "CheckoutPipeline",
    "CheckoutQueue",
    "CheckoutWorker",
    "PipelineDeps",
    "PipelineResult",
    "parse_message",
]
