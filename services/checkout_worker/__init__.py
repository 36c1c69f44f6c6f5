"""Checkout worker - turns start-checkout queue messages into posted invoices."""

from services.checkout_worker.pipeline import CheckoutPipeline, CheckoutWorker, PipelineDeps

__all__ = [
    "CheckoutPipeline",
    "CheckoutWorker",
    "PipelineDeps",
]
