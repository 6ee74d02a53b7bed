from __future__ import annotations

from uuid import uuid4

from ..extensions import db


# Per-currency balance columns carried by every counter-party.
SUPPORTED_CURRENCIES = ("AFN", "USD", "IRT")


def new_token() -> str:
    """Opaque unique id for non-invoice entities."""
    return uuid4().hex


class BalanceMixin:
    """
    Triple-currency balances plus a base-currency aggregate.

    `balance` is authoritative for net worth; the per-currency columns are
    display figures moved in lock-step by the BalanceBook.
    """

    balance = db.Column(db.Float, nullable=False, default=0.0)
    balance_afn = db.Column(db.Float, nullable=False, default=0.0)
    balance_usd = db.Column(db.Float, nullable=False, default=0.0)
    balance_irt = db.Column(db.Float, nullable=False, default=0.0)

    @staticmethod
    def balance_attr(currency: str) -> str:
        return f"balance_{currency.lower()}"

    def currency_balance(self, currency: str) -> float:
        return getattr(self, self.balance_attr(currency)) or 0.0

    def balances_to_dict(self) -> dict:
        return {
            "balance": self.balance,
            "balances": {code: self.currency_balance(code) for code in SUPPORTED_CURRENCIES},
        }

    def has_zero_balance(self, tolerance: float = 1e-9) -> bool:
        return all(abs(self.currency_balance(code)) <= tolerance for code in SUPPORTED_CURRENCIES)
