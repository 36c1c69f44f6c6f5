"""
Thin client for the currency API (the rate oracle).

Rates are fetched fresh for every checkout message; nothing is cached
between messages.
"""

from __future__ import annotations

import http.client
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, List, Optional

from pydantic import ValidationError

from common.config import CurrencyApiConfig, get_config
from services.checkout_worker.currency import ConversionTable, build_conversion_table
from services.checkout_worker.errors import RateServiceUnavailable
from services.checkout_worker.models import CurrencyRate

logger = logging.getLogger(__name__)


def _parse_rates(body: str) -> List[CurrencyRate]:
    data: Any = json.loads(body)
    if isinstance(data, dict):
        if "currencies" not in data:
            raise ValueError(f"Expected a 'currencies' key, got {sorted(data)}.")
        data = data["currencies"]
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of currency rates, got {type(data).__name__}.")
    return [CurrencyRate.model_validate(row) for row in data]


def fetch_rates(settings: Optional[CurrencyApiConfig] = None) -> List[CurrencyRate]:
    """
    GET ``{base_url}/currencies`` and return the named rate records.

    Any transport error, non-2xx status or undecodable body raises
    ``RateServiceUnavailable``. No retry happens here.
    """
    cfg = settings or get_config().currency_api
    url = f"{cfg.base_url}/currencies"
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:
            body = resp.read()
    except urllib.error.HTTPError as e:
        logger.error("Currency API returned HTTP %s for %s", e.code, url)
        raise RateServiceUnavailable(f"Currency API returned HTTP {e.code}.") from e
    except (socket.timeout, urllib.error.URLError, http.client.HTTPException, OSError) as e:
        logger.error("Currency API unreachable at %s: %s", url, e)
        raise RateServiceUnavailable(f"Currency API unreachable: {e}") from e

    try:
        rates = _parse_rates(body.decode("utf-8"))
    except (ValueError, ValidationError) as e:
        logger.error("Currency API returned an unusable body: %s", e)
        raise RateServiceUnavailable(f"Currency API returned an unusable body: {e}") from e

    logger.info("Fetched %d currency rates", len(rates))
    return rates


def fetch_conversion_table(settings: Optional[CurrencyApiConfig] = None) -> ConversionTable:
    return build_conversion_table(fetch_rates(settings))


__all__ = ["fetch_conversion_table", "fetch_rates"]
