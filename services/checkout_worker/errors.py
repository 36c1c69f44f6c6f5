"""
Error taxonomy for the checkout pipeline.

Every step raises a subclass of ``CheckoutError``; the worker loop treats
them all the same way (log, leave the message on the queue, keep polling).
"""

from __future__ import annotations

from typing import Optional


class CheckoutError(Exception):
    """Base class for failures that abort one message's pipeline run."""


class DeserializationFailed(CheckoutError):
    """The queue message body is not a valid checkout message."""


class RateServiceUnavailable(CheckoutError):
    """The currency API could not be reached or returned unusable rates."""


class UnknownCurrencyPair(CheckoutError):
    """A conversion was requested for a currency pair with no known factor."""

    def __init__(self, source: str, target: str, message: Optional[str] = None) -> None:
        self.source = source
        self.target = target
        super().__init__(message or f"No conversion factor for {source}-{target}.")


class InvoiceSubmissionFailed(CheckoutError):
    """The invoicing service rejected the invoice or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        self.status = status
        super().__init__(message)


class EventPublishFailed(CheckoutError):
    """The order event was not confirmed by the Kafka broker."""


class LedgerWriteFailed(CheckoutError):
    """The transaction record could not be written to DynamoDB."""


__all__ = [
    "CheckoutError",
    "DeserializationFailed",
    "RateServiceUnavailable",
    "UnknownCurrencyPair",
    "InvoiceSubmissionFailed",
    "EventPublishFailed",
    "LedgerWriteFailed",
]
