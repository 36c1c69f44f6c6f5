"""
Currency conversion for checkout totals.

``build_conversion_table`` turns the USD quotes returned by the currency API
into a full pairwise table (identity, inverse and cross rates through USD).
``compute_total`` then converts every cart line into the settlement currency.

Totals are accumulated in integer minor units (scale 2), rounding each line
on its own rather than rounding the final sum once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Union

from services.checkout_worker.errors import RateServiceUnavailable, UnknownCurrencyPair
from services.checkout_worker.models import TOTAL_SCALE, CartLineItem, CurrencyRate, InvoiceTotal

logger = logging.getLogger(__name__)


class Currency(str, Enum):
    USD = "USD"
    BRL = "BRL"
    EUR = "EUR"

    @classmethod
    def parse(cls, code: str) -> "Currency":
        try:
            return cls(code.strip().upper())
        except ValueError:
            raise ValueError(f"Unsupported currency code {code!r}.") from None


PIVOT = Currency.USD


@dataclass(frozen=True)
class CurrencyPair:
    source: Currency
    target: Currency

    @classmethod
    def parse(cls, key: str) -> "CurrencyPair":
        """Parse a ``"SRC-DST"`` key (case-insensitive)."""
        source, sep, target = key.partition("-")
        if not sep:
            raise UnknownCurrencyPair(key, "", f"Malformed currency pair key {key!r}.")
        return cls.of(source, target)

    @classmethod
    def of(cls, source: str, target: str) -> "CurrencyPair":
        try:
            return cls(Currency.parse(source), Currency.parse(target))
        except ValueError:
            raise UnknownCurrencyPair(source.upper(), target.upper()) from None

    @property
    def key(self) -> str:
        return f"{self.source.value}-{self.target.value}"

    def __str__(self) -> str:
        return self.key


PairLike = Union[CurrencyPair, str]


@dataclass(frozen=True)
class ConversionTable:
    """Immutable ``CurrencyPair -> factor`` mapping built for one message."""

    factors: Mapping[CurrencyPair, float]

    def factor(self, source: str, target: str) -> float:
        return self[CurrencyPair.of(source, target)]

    def __getitem__(self, pair: PairLike) -> float:
        if isinstance(pair, str):
            pair = CurrencyPair.parse(pair)
        try:
            return self.factors[pair]
        except KeyError:
            raise UnknownCurrencyPair(pair.source.value, pair.target.value) from None

    def __contains__(self, pair: object) -> bool:
        if isinstance(pair, str):
            try:
                pair = CurrencyPair.parse(pair)
            except UnknownCurrencyPair:
                return False
        return pair in self.factors

    def __len__(self) -> int:
        return len(self.factors)

    def keys(self) -> list[str]:
        return sorted(pair.key for pair in self.factors)


def _usd_quotes(rates: Iterable[CurrencyRate]) -> Dict[Currency, float]:
    by_name: Dict[str, list[CurrencyRate]] = {}
    for rate in rates:
        by_name.setdefault(rate.name.strip().upper(), []).append(rate)

    quotes: Dict[Currency, float] = {PIVOT: 1.0}
    for currency in Currency:
        if currency is PIVOT:
            continue
        name = f"{PIVOT.value}_TO_{currency.value}"
        matches = by_name.get(name, [])
        if len(matches) != 1:
            # Exactly one quote per currency; never guess between duplicates.
            raise UnknownCurrencyPair(
                PIVOT.value,
                currency.value,
                f"Expected exactly one {name} rate, got {len(matches)}.",
            )
        factor = matches[0].factor
        if factor <= 0:
            raise RateServiceUnavailable(f"Rate {name} is not positive ({factor!r}).")
        quotes[currency] = factor
    return quotes


def build_conversion_table(rates: Iterable[CurrencyRate]) -> ConversionTable:
    """
    Derive every supported pair from the ``USD_TO_*`` quotes.

    ``A->B`` is ``(A->USD) * (USD->B)`` with ``A->USD = 1 / (USD->A)``, so
    ``A->A`` is exactly 1.0 and ``A->B * B->A`` is 1 within float tolerance.
    """
    usd_to = _usd_quotes(rates)
    factors: Dict[CurrencyPair, float] = {}
    for source in Currency:
        for target in Currency:
            pair = CurrencyPair(source, target)
            if source is target:
                factors[pair] = 1.0
            elif source is PIVOT:
                factors[pair] = usd_to[target]
            elif target is PIVOT:
                factors[pair] = 1 / usd_to[source]
            else:
                factors[pair] = (1 / usd_to[source]) * usd_to[target]
    logger.debug("Built conversion table with %d pairs", len(factors))
    return ConversionTable(factors=factors)


def to_minor_units(item: CartLineItem, factor: float) -> int:
    price = item.price / 10**item.scale
    # round() is half-to-even; per-line rounding is intentional.
    return int(round(price * factor * 10**TOTAL_SCALE))


def compute_total(
    items: Iterable[CartLineItem],
    table: ConversionTable,
    target_currency: str,
) -> InvoiceTotal:
    """Sum cart lines in ``target_currency`` minor units (scale 2)."""
    # Resolves the settlement currency even when the cart is empty.
    table.factor(target_currency, target_currency)
    amount = 0
    for item in items:
        factor = table.factor(item.currency_code, target_currency)
        amount += to_minor_units(item, factor)
    return InvoiceTotal(amount=amount, scale=TOTAL_SCALE, currency_code=target_currency.strip().upper())


__all__ = [
    "PIVOT",
    "ConversionTable",
    "Currency",
    "CurrencyPair",
    "build_conversion_table",
    "compute_total",
    "to_minor_units",
]
