# Overview: Pure conversion between the base currency and auxiliary currencies.

"""
Conversion rules (authoritative)

- Same currency on both sides: amount is returned unchanged, no rate needed.
- Each non-base currency carries a method:
    multiply -> amount_in_base = amount_in_foreign * rate
    divide   -> amount_in_base = amount_in_foreign / rate
  Base -> foreign is the arithmetic inverse.
- A rate must be a finite number > 0. A missing rate for a non-base currency
  raises InvalidRate unless the settings were built with
  legacy_implicit_rate=True, which reproduces the old "rate defaults to 1"
  behaviour for replaying legacy data.
- One side of a conversion must be the base currency; a single rate cannot
  describe a foreign -> foreign cross.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping

from ..errors import InvalidRate, UnknownCurrency, InvalidInput
from ..models.mixins import SUPPORTED_CURRENCIES


METHOD_MULTIPLY = "multiply"
METHOD_DIVIDE = "divide"
METHODS = {METHOD_MULTIPLY, METHOD_DIVIDE}


@dataclass(frozen=True)
class CurrencySettings:
    base_currency: str
    configs: Mapping[str, Mapping] = field(default_factory=dict)
    legacy_implicit_rate: bool = False

    def require_known(self, currency: str) -> str:
        if currency not in self.configs or currency not in SUPPORTED_CURRENCIES:
            raise UnknownCurrency(
                f"Unknown currency {currency!r}",
                details={"currency": currency, "known": sorted(self.configs)},
            )
        return currency

    def method_for(self, currency: str) -> str:
        self.require_known(currency)
        method = self.configs[currency].get("method", METHOD_MULTIPLY)
        if method not in METHODS:
            raise InvalidInput(f"Currency {currency} has unsupported method {method!r}")
        return method

    def is_base(self, currency: str) -> bool:
        return currency == self.base_currency


def checked_rate(rate, currency: str, settings: CurrencySettings) -> float:
    """Validate an exchange rate for a non-base currency."""
    if rate is None:
        if settings.legacy_implicit_rate:
            return 1.0
        raise InvalidRate(
            f"Exchange rate required for {currency}",
            details={"currency": currency},
        )
    try:
        value = float(rate)
    except (TypeError, ValueError):
        raise InvalidRate(f"Exchange rate must be a number, got {rate!r}", details={"currency": currency})
    if not math.isfinite(value) or value <= 0:
        raise InvalidRate(f"Exchange rate must be greater than zero, got {rate!r}", details={"currency": currency})
    return value


def effective_rate(currency: str, rate, settings: CurrencySettings) -> float:
    """Rate stored on an invoice: 1 for the base currency, validated otherwise."""
    settings.require_known(currency)
    if settings.is_base(currency):
        return 1.0
    return checked_rate(rate, currency, settings)


def to_base(amount: float, currency: str, rate, settings: CurrencySettings) -> float:
    if settings.is_base(currency):
        settings.require_known(currency)
        return amount
    method = settings.method_for(currency)
    value = checked_rate(rate, currency, settings)
    return amount * value if method == METHOD_MULTIPLY else amount / value


def from_base(amount: float, currency: str, rate, settings: CurrencySettings) -> float:
    if settings.is_base(currency):
        settings.require_known(currency)
        return amount
    method = settings.method_for(currency)
    value = checked_rate(rate, currency, settings)
    return amount / value if method == METHOD_MULTIPLY else amount * value


def convert(amount: float, from_currency: str, to_currency: str, rate=None, settings: CurrencySettings = None) -> float:
    """Convert `amount` between two currencies, one of which must be the base."""
    if settings is None:
        raise InvalidInput("currency settings are required")
    settings.require_known(from_currency)
    settings.require_known(to_currency)

    if from_currency == to_currency:
        return amount
    if settings.is_base(from_currency):
        return from_base(amount, to_currency, rate, settings)
    if settings.is_base(to_currency):
        return to_base(amount, from_currency, rate, settings)
    raise InvalidInput(
        f"Cannot convert {from_currency} to {to_currency} directly; convert through {settings.base_currency}",
        details={"from": from_currency, "to": to_currency, "base": settings.base_currency},
    )
