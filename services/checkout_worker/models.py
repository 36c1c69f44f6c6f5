"""
Wire types exchanged by the checkout worker.

Field aliases follow the camelCase JSON used by the cart API (queue
messages), the currency API, the invoice API and the orders topic. Models
are frozen: a message is never mutated after it has been parsed.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

CORRELATION_HEADER = "x-team-control"
TOTAL_SCALE = 2


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Queue message
# ---------------------------------------------------------------------------


class Product(_WireModel):
    id: str
    name: str = ""
    image_url: str = Field(default="", alias="imageURL")


class CartLineItem(_WireModel):
    """One cart line; its price is ``price * 10**-scale`` in ``currency_code``."""

    product: Product
    price: int
    scale: int = Field(ge=0)
    currency_code: str = Field(alias="currencyCode", min_length=1)


class Cart(_WireModel):
    id: str
    customer_id: str = Field(alias="customerId")
    status: str = ""
    items: List[CartLineItem] = Field(default_factory=list)


class InvoiceDirective(_WireModel):
    currency_code: str = Field(alias="currencyCode", min_length=1)
    correlation_token: str = Field(alias=CORRELATION_HEADER)


class CheckoutMessage(_WireModel):
    cart: Cart
    invoice: InvoiceDirective

    @property
    def correlation_token(self) -> str:
        return self.invoice.correlation_token


# ---------------------------------------------------------------------------
# Currency API
# ---------------------------------------------------------------------------


class CurrencyRate(_WireModel):
    """A named quote such as ``USD_TO_BRL``; factor is ``value * 10**-scale``."""

    name: str = Field(alias="currencyCode")
    value: int = Field(alias="currencyValue")
    scale: int = Field(ge=0)

    @property
    def factor(self) -> float:
        return self.value / 10**self.scale


# ---------------------------------------------------------------------------
# Invoice API
# ---------------------------------------------------------------------------


class InvoiceTotal(_WireModel):
    amount: int
    scale: int = TOTAL_SCALE
    currency_code: str = Field(alias="currencyCode")


class InvoiceItem(_WireModel):
    id: str
    name: str
    image_url: str = Field(alias="imageURL")
    currency_code: str = Field(alias="currencyCode")
    price: int
    scale: int


class Invoice(_WireModel):
    id: str
    customer_id: str = Field(alias="customerId")
    status: str
    total: InvoiceTotal
    items: List[InvoiceItem]


# ---------------------------------------------------------------------------
# Orders topic
# ---------------------------------------------------------------------------


class OrderEventHeader(_WireModel):
    correlation_token: str = Field(alias=CORRELATION_HEADER)


class OrderEventPrice(_WireModel):
    amount: int
    currency_code: str = Field(alias="currencyCode")
    scale: int


class OrderEventPayload(_WireModel):
    cart_id: str = Field(alias="cartId")
    price: OrderEventPrice


class OrderEvent(_WireModel):
    headers: OrderEventHeader
    payload: OrderEventPayload

    def serialize(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


# ---------------------------------------------------------------------------
# Transaction ledger
# ---------------------------------------------------------------------------


class TransactionRecord(_WireModel):
    cart_id: str = Field(alias="cartId")
    amount: int
    scale: int
    currency_code: str = Field(alias="currencyCode")
    correlation_token: str = Field(alias=CORRELATION_HEADER)
    timestamp: str

    def to_item(self) -> dict:
        """Render as a DynamoDB attribute map (numbers travel as strings)."""
        return {
            "cartId": {"S": self.cart_id},
            "amount": {"N": str(self.amount)},
            "scale": {"N": str(self.scale)},
            "currencyCode": {"S": self.currency_code},
            CORRELATION_HEADER: {"S": self.correlation_token},
            "timestamp": {"S": self.timestamp},
        }


__all__ = [
    "CORRELATION_HEADER",
    "TOTAL_SCALE",
    "Cart",
    "CartLineItem",
    "CheckoutMessage",
    "CurrencyRate",
    "Invoice",
    "InvoiceDirective",
    "InvoiceItem",
    "InvoiceTotal",
    "OrderEvent",
    "OrderEventHeader",
    "OrderEventPayload",
    "OrderEventPrice",
    "Product",
    "TransactionRecord",
]
