from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from services.checkout_worker.invoice import (
    assemble_invoice,
    build_order_event,
    build_transaction_record,
)
from services.checkout_worker.models import CheckoutMessage, InvoiceTotal
from services.checkout_worker.errors import DeserializationFailed
from services.checkout_worker.pipeline import parse_message


@pytest.fixture
def message(checkout_body: str) -> CheckoutMessage:
    return parse_message(checkout_body)


@pytest.fixture
def total() -> InvoiceTotal:
    return InvoiceTotal(amount=7778, scale=2, currency_code="BRL")


def test_parse_message_reads_cart_and_directive(message: CheckoutMessage) -> None:
    assert message.cart.id == "cart-1"
    assert message.cart.customer_id == "cust-7"
    assert [item.product.id for item in message.cart.items] == ["p-1", "p-2"]
    assert message.invoice.currency_code == "BRL"
    assert message.correlation_token == "team-42"


@pytest.mark.parametrize(
    "body",
    [
        "",
        "not json",
        json.dumps({"cart": {"id": "c"}}),
        json.dumps({"cart": {"id": "c", "customerId": "x", "items": []}, "invoice": {"currencyCode": "BRL"}}),
    ],
)
def test_parse_message_rejects_malformed_bodies(body: str) -> None:
    with pytest.raises(DeserializationFailed):
        parse_message(body)


def test_parse_message_rejects_negative_scale(make_body) -> None:
    body = make_body(items=[{"product": {"id": "p"}, "price": 1, "scale": -1, "currencyCode": "USD"}])
    with pytest.raises(DeserializationFailed):
        parse_message(body)


def test_message_is_immutable(message: CheckoutMessage) -> None:
    with pytest.raises(ValidationError):
        message.cart.id = "other"  # type: ignore[misc]


def test_assemble_invoice_maps_every_line_in_order(message: CheckoutMessage, total: InvoiceTotal) -> None:
    invoice = assemble_invoice(message, total)

    assert invoice.id == "cart-1"
    assert invoice.customer_id == "cust-7"
    assert invoice.status == "CHECKOUT"
    assert invoice.total == total
    assert [(i.id, i.currency_code, i.price, i.scale) for i in invoice.items] == [
        ("p-1", "USD", 1000, 2),
        ("p-2", "EUR", 500, 2),
    ]
    assert invoice.items[0].image_url == "https://img/p-1.png"


def test_assemble_invoice_keeps_repeated_products(make_body, total: InvoiceTotal) -> None:
    line = {"product": {"id": "p-1", "name": "Keyboard"}, "price": 100, "scale": 2, "currencyCode": "USD"}
    message = parse_message(make_body(items=[line, line, line]))

    invoice = assemble_invoice(message, total)
    assert [i.id for i in invoice.items] == ["p-1", "p-1", "p-1"]


def test_invoice_wire_format_uses_api_field_names(message: CheckoutMessage, total: InvoiceTotal) -> None:
    wire = assemble_invoice(message, total).to_wire()

    assert wire["customerId"] == "cust-7"
    assert wire["total"] == {"amount": 7778, "scale": 2, "currencyCode": "BRL"}
    assert set(wire["items"][0]) == {"id", "name", "imageURL", "currencyCode", "price", "scale"}


def test_order_event_carries_token_and_total(message: CheckoutMessage, total: InvoiceTotal) -> None:
    invoice = assemble_invoice(message, total)
    event = build_order_event(message, invoice)

    assert json.loads(event.serialize()) == {
        "headers": {"x-team-control": "team-42"},
        "payload": {"cartId": "cart-1", "price": {"amount": 7778, "currencyCode": "BRL", "scale": 2}},
    }


def test_transaction_record_to_dynamodb_item(message: CheckoutMessage, total: InvoiceTotal) -> None:
    invoice = assemble_invoice(message, total)
    ts = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)

    record = build_transaction_record(message, invoice, ts)

    assert record.to_item() == {
        "cartId": {"S": "cart-1"},
        "amount": {"N": "7778"},
        "scale": {"N": "2"},
        "currencyCode": {"S": "BRL"},
        "x-team-control": {"S": "team-42"},
        "timestamp": {"S": "2026-03-04T12:00:00+00:00"},
    }
