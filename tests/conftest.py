from __future__ import annotations

import json
import os
from typing import Any, Dict, List

import pytest

from common.config import get_config
from services.checkout_worker.models import CurrencyRate

_ENV_PREFIXES = (
    "ENVIRONMENT",
    "AWS_",
    "CHECKOUT_QUEUE_",
    "CURRENCY_API_",
    "INVOICE_API_",
    "KAFKA_",
    "LEDGER_",
    "WORKER_",
    "LOG_LEVEL",
)


@pytest.fixture
def minimal_local_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Strip worker settings from the environment and keep stray .env files out of reach."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def make_checkout_body(
    items: List[Dict[str, Any]] | None = None,
    currency_code: str = "BRL",
    cart_id: str = "cart-1",
    token: str = "team-42",
) -> str:
    if items is None:
        items = [
            {
                "product": {"id": "p-1", "name": "Keyboard", "imageURL": "https://img/p-1.png"},
                "price": 1000,
                "scale": 2,
                "currencyCode": "USD",
            },
            {
                "product": {"id": "p-2", "name": "Mouse", "imageURL": "https://img/p-2.png"},
                "price": 500,
                "scale": 2,
                "currencyCode": "EUR",
            },
        ]
    return json.dumps(
        {
            "cart": {"id": cart_id, "customerId": "cust-7", "status": "CHECKOUT", "items": items},
            "invoice": {"currencyCode": currency_code, "x-team-control": token},
        }
    )


@pytest.fixture
def make_body():
    return make_checkout_body


@pytest.fixture
def checkout_body() -> str:
    return make_checkout_body()


@pytest.fixture
def usd_rates() -> List[CurrencyRate]:
    # USD->BRL 5.00, USD->EUR 0.90
    return [
        CurrencyRate.model_validate({"currencyCode": "USD_TO_BRL", "currencyValue": 500, "scale": 2}),
        CurrencyRate.model_validate({"currencyCode": "USD_TO_EUR", "currencyValue": 90, "scale": 2}),
    ]
