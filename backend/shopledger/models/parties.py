from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .mixins import BalanceMixin, new_token


class Customer(BalanceMixin, db.Model):
    """Positive balance: the customer owes the shop."""
    __tablename__ = "customers"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    credit_limit = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "credit_limit": self.credit_limit,
            "created_at": to_utc_z(self.created_at),
            **self.balances_to_dict(),
        }


class Supplier(BalanceMixin, db.Model):
    """Positive balance: the shop owes the supplier."""
    __tablename__ = "suppliers"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            **self.balances_to_dict(),
        }


class Employee(BalanceMixin, db.Model):
    """Positive balance: advances the employee has taken against salary."""
    __tablename__ = "employees"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    position = db.Column(db.String(120), nullable=True)
    monthly_salary = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "monthly_salary": self.monthly_salary,
            "created_at": to_utc_z(self.created_at),
            **self.balances_to_dict(),
        }


class DepositHolder(BalanceMixin, db.Model):
    """Positive balance: money the shop holds on the holder's behalf."""
    __tablename__ = "deposit_holders"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            **self.balances_to_dict(),
        }
