"""
Client for the external invoicing service.

One POST per call and no retry: a failure propagates to the worker, which
leaves the queue message to be redelivered. Nothing here deduplicates, so a
redelivered message can post the same invoice twice.
"""

from __future__ import annotations

import http.client
import logging
import socket
import urllib.error
import urllib.request
from typing import Optional

from common.config import InvoiceApiConfig, get_config
from services.checkout_worker.errors import InvoiceSubmissionFailed
from services.checkout_worker.models import CORRELATION_HEADER, Invoice

logger = logging.getLogger(__name__)


def post_invoice(
    invoice: Invoice,
    correlation_token: str,
    settings: Optional[InvoiceApiConfig] = None,
) -> int:
    """POST the invoice to ``{base_url}/invoices`` and return the HTTP status."""
    cfg = settings or get_config().invoice_api
    url = f"{cfg.base_url}/invoices"
    req = urllib.request.Request(
        url,
        data=invoice.model_dump_json(by_alias=True).encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            CORRELATION_HEADER: correlation_token,
        },
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:
            status = getattr(resp, "status", 200)
    except urllib.error.HTTPError as e:
        logger.error("Invoice API rejected invoice %s with HTTP %s", invoice.id, e.code)
        raise InvoiceSubmissionFailed(f"Invoice API returned HTTP {e.code}.", status=e.code) from e
    except (socket.timeout, urllib.error.URLError, http.client.HTTPException, OSError) as e:
        logger.error("Invoice API unreachable while posting invoice %s: %s", invoice.id, e)
        raise InvoiceSubmissionFailed(f"Invoice API unreachable: {e}") from e

    if not 200 <= status < 300:
        logger.error("Invoice API answered invoice %s with HTTP %s", invoice.id, status)
        raise InvoiceSubmissionFailed(f"Invoice API returned HTTP {status}.", status=status)

    logger.info("Posted invoice %s (status=%s)", invoice.id, status)
    return status


__all__ = ["post_invoice"]
