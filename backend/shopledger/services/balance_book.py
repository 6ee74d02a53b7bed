# Overview: Triple-currency counter-party balances, each change paired with one transaction row.

"""
Balance rules (authoritative)

- `balance` (base currency) is the source of truth; the per-currency column
  for the delta's currency moves in the same step.
- Customers: positive = the customer owes the shop.
  Suppliers: positive = the shop owes the supplier.
  Employees: positive = advances taken against salary.
  Deposit holders: positive = money held for the holder.
- Every mutation writes exactly one transaction row. The one permitted
  rewrite is an edited invoice updating the row that carries its invoice_id.
- revert_and_reapply() runs as two ordered steps (undo old, apply new) so
  each per-currency column stays individually correct when the currencies
  differ.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..errors import InvalidInput
from ..models import (
    Customer,
    Supplier,
    Employee,
    DepositHolder,
    CustomerTransaction,
    SupplierTransaction,
    PayrollTransaction,
    DepositTransaction,
)
from ..models.mixins import SUPPORTED_CURRENCIES
from ..time_utils import utcnow


TRANSACTION_MODELS = {
    Customer: CustomerTransaction,
    Supplier: SupplierTransaction,
    Employee: PayrollTransaction,
    DepositHolder: DepositTransaction,
}


@dataclass(frozen=True)
class Delta:
    currency: str
    amount: float
    amount_base: float

    def negated(self) -> "Delta":
        return Delta(self.currency, -self.amount, -self.amount_base)

    @classmethod
    def zero(cls, currency: str) -> "Delta":
        return cls(currency, 0.0, 0.0)

    @classmethod
    def of(cls, transaction) -> "Delta":
        return cls(transaction.currency, transaction.amount, transaction.amount_base)


def transaction_model_for(party):
    model = TRANSACTION_MODELS.get(type(party))
    if model is None:
        raise InvalidInput(f"{type(party).__name__} does not carry a balance")
    return model


def _shift(party, delta: Delta, sign: int) -> None:
    if delta.currency not in SUPPORTED_CURRENCIES:
        raise InvalidInput(f"Unsupported balance currency {delta.currency}")
    attr = party.balance_attr(delta.currency)
    setattr(party, attr, (getattr(party, attr) or 0.0) + sign * delta.amount)
    party.balance = (party.balance or 0.0) + sign * delta.amount_base


def apply_delta(
    party,
    delta: Delta,
    *,
    type: str,
    exchange_rate: float = 1.0,
    description: str | None = None,
    invoice_id: str | None = None,
    date: datetime | None = None,
    **extra,
):
    """Move the party's balances by `delta` and append its transaction row."""
    _shift(party, delta, +1)
    model = transaction_model_for(party)
    txn = model(
        type=type,
        amount=delta.amount,
        currency=delta.currency,
        exchange_rate=exchange_rate,
        amount_base=delta.amount_base,
        description=description,
        invoice_id=invoice_id,
        date=date or utcnow(),
        **extra,
    )
    setattr(txn, model.party_field, party.id)
    db.session.add(txn)
    return txn


def revert_and_reapply(
    party,
    old: Delta,
    new: Delta,
    *,
    transaction=None,
    type: str | None = None,
    exchange_rate: float = 1.0,
    description: str | None = None,
    invoice_id: str | None = None,
):
    """
    Undo `old`, then apply `new`.

    With `transaction`, that row is rewritten to describe `new` instead of a
    row being appended.
    """
    _shift(party, old, -1)
    if transaction is None:
        return apply_delta(
            party, new,
            type=type, exchange_rate=exchange_rate,
            description=description, invoice_id=invoice_id,
        )

    _shift(party, new, +1)
    transaction.amount = new.amount
    transaction.currency = new.currency
    transaction.amount_base = new.amount_base
    transaction.exchange_rate = exchange_rate
    if type is not None:
        transaction.type = type
    if description is not None:
        transaction.description = description
    return transaction


def find_invoice_transaction(party, invoice_id: str):
    model = transaction_model_for(party)
    return (
        db.session.query(model)
        .filter(getattr(model, model.party_field) == party.id, model.invoice_id == invoice_id)
        .order_by(model.date.asc())
        .first()
    )


def post_invoice_delta(
    party,
    delta: Delta,
    *,
    invoice_id: str,
    type: str,
    exchange_rate: float = 1.0,
    description: str | None = None,
):
    """
    Bring the party's share of an invoice to `delta`.

    First posting appends a row; later postings (edits) revert what the
    existing row recorded and rewrite it.
    """
    existing = find_invoice_transaction(party, invoice_id)
    if existing is None:
        return apply_delta(
            party, delta,
            type=type, exchange_rate=exchange_rate,
            description=description, invoice_id=invoice_id,
        )
    return revert_and_reapply(
        party, Delta.of(existing), delta,
        transaction=existing, type=type, exchange_rate=exchange_rate,
        description=description, invoice_id=invoice_id,
    )


def settle(party, *, type: str, base_currency: str, description: str | None = None, invoice_id: str | None = None):
    """
    Zero every balance of the party in one step.

    The transaction records the base-currency movement.
    """
    movement = -(party.balance or 0.0)
    for code in SUPPORTED_CURRENCIES:
        setattr(party, party.balance_attr(code), 0.0)
    party.balance = 0.0

    model = transaction_model_for(party)
    txn = model(
        type=type,
        amount=movement,
        currency=base_currency,
        exchange_rate=1.0,
        amount_base=movement,
        description=description,
        invoice_id=invoice_id,
        date=utcnow(),
    )
    setattr(txn, model.party_field, party.id)
    db.session.add(txn)
    return txn
