from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .mixins import new_token


class TransactionMixin:
    """
    Immutable audit row paired with exactly one balance change.

    The only sanctioned rewrite is an edited sale/purchase updating the row
    that carries its invoice_id.
    """

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    type = db.Column(db.String(32), nullable=False, index=True)
    # Signed balance effect in `currency`
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(8), nullable=False)
    exchange_rate = db.Column(db.Float, nullable=False, default=1.0)
    amount_base = db.Column(db.Float, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    invoice_id = db.Column(db.String(16), nullable=True, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    def _common_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "amount": self.amount,
            "currency": self.currency,
            "exchange_rate": self.exchange_rate,
            "amount_base": self.amount_base,
            "description": self.description,
            "invoice_id": self.invoice_id,
            "date": to_utc_z(self.date),
        }


class CustomerTransaction(TransactionMixin, db.Model):
    __tablename__ = "customer_transactions"

    customer_id = db.Column(db.String(32), db.ForeignKey("customers.id"), nullable=False, index=True)

    party_field = "customer_id"

    def to_dict(self) -> dict:
        return {**self._common_dict(), "customer_id": self.customer_id}


class SupplierTransaction(TransactionMixin, db.Model):
    __tablename__ = "supplier_transactions"

    supplier_id = db.Column(db.String(32), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    # Prepayments against an in-transit shipment
    in_transit_id = db.Column(db.String(16), nullable=True, index=True)

    party_field = "supplier_id"

    def to_dict(self) -> dict:
        return {**self._common_dict(), "supplier_id": self.supplier_id, "in_transit_id": self.in_transit_id}


class PayrollTransaction(TransactionMixin, db.Model):
    __tablename__ = "payroll_transactions"

    employee_id = db.Column(db.String(32), db.ForeignKey("employees.id"), nullable=False, index=True)

    party_field = "employee_id"

    def to_dict(self) -> dict:
        return {**self._common_dict(), "employee_id": self.employee_id}


class DepositTransaction(TransactionMixin, db.Model):
    __tablename__ = "deposit_transactions"

    holder_id = db.Column(db.String(32), db.ForeignKey("deposit_holders.id"), nullable=False, index=True)

    party_field = "holder_id"

    def to_dict(self) -> dict:
        return {**self._common_dict(), "holder_id": self.holder_id}


class Expense(db.Model):
    """Shop expense in base currency; logistics/salary rows are system-generated."""
    __tablename__ = "expenses"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    category = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    # Linked purchase invoice for logistics costs
    invoice_id = db.Column(db.String(16), nullable=True, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "amount": self.amount,
            "invoice_id": self.invoice_id,
            "date": to_utc_z(self.date),
        }
