"""Pure mappers from a checkout message to the invoice, event and ledger payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from services.checkout_worker.models import (
    CheckoutMessage,
    Invoice,
    InvoiceItem,
    InvoiceTotal,
    OrderEvent,
    OrderEventHeader,
    OrderEventPayload,
    OrderEventPrice,
    TransactionRecord,
)


def assemble_invoice(message: CheckoutMessage, total: InvoiceTotal) -> Invoice:
    # One invoice line per cart line, in cart order; repeats are kept.
    cart = message.cart
    return Invoice(
        id=cart.id,
        customer_id=cart.customer_id,
        status=cart.status,
        total=total,
        items=[
            InvoiceItem(
                id=item.product.id,
                name=item.product.name,
                image_url=item.product.image_url,
                currency_code=item.currency_code,
                price=item.price,
                scale=item.scale,
            )
            for item in cart.items
        ],
    )


def build_order_event(message: CheckoutMessage, invoice: Invoice) -> OrderEvent:
    return OrderEvent(
        headers=OrderEventHeader(correlation_token=message.correlation_token),
        payload=OrderEventPayload(
            cart_id=message.cart.id,
            price=OrderEventPrice(
                amount=invoice.total.amount,
                currency_code=invoice.total.currency_code,
                scale=invoice.total.scale,
            ),
        ),
    )


def build_transaction_record(
    message: CheckoutMessage,
    invoice: Invoice,
    timestamp: Optional[datetime] = None,
) -> TransactionRecord:
    ts = timestamp or datetime.now(timezone.utc)
    return TransactionRecord(
        cart_id=invoice.id,
        amount=invoice.total.amount,
        scale=invoice.total.scale,
        currency_code=invoice.total.currency_code,
        correlation_token=message.correlation_token,
        timestamp=ts.isoformat(),
    )


__all__ = ["assemble_invoice", "build_order_event", "build_transaction_record"]
