# Overview: Counter-party accounts: customers, suppliers, deposit holders, employees, expenses.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InsufficientBalance, InvalidInput, LockedForDeletion, NonZeroBalance
from ..models import (
    Customer,
    Supplier,
    Employee,
    DepositHolder,
    Expense,
    SaleInvoice,
    PurchaseInvoice,
    InTransitInvoice,
)
from ..models.mixins import new_token
from ..time_utils import utcnow
from ..validation import coerce_amount, optional_str, require_str
from .concurrency import atomic
from .entity_store import EntityStore
from .currency_service import effective_rate, to_base
from .settings_service import get_currency_settings
from .balance_book import Delta, apply_delta, transaction_model_for


logger = logging.getLogger(__name__)

BALANCE_DEBTOR = "debtor"
BALANCE_CREDITOR = "creditor"

EXPENSE_CATEGORIES = {"rent", "utilities", "supplies", "salary", "logistics", "other"}

customers = EntityStore(Customer)
suppliers = EntityStore(Supplier)
employees = EntityStore(Employee)
deposit_holders = EntityStore(DepositHolder, "Deposit holder")
expenses = EntityStore(Expense)


def _money(amount, currency, exchange_rate, settings) -> tuple[str, float, float, float]:
    """(currency, rate, amount, amount in base) for a strictly positive amount."""
    value = coerce_amount(amount, "amount")
    if value <= 0:
        raise InvalidInput("amount must be greater than zero")
    code = currency or settings.base_currency
    rate = effective_rate(code, exchange_rate, settings)
    return code, rate, value, to_base(value, code, rate, settings)


def _opening_balance(party, payload: dict, *, debtor_sign: int) -> None:
    """Post an opening balance; `debtor_sign` is the sign a debtor balance carries for this party kind."""
    if payload.get("opening_balance") in (None, "", 0, "0"):
        return
    settings = get_currency_settings()
    code, rate, value, value_base = _money(
        payload.get("opening_balance"), payload.get("currency"), payload.get("exchange_rate"), settings
    )
    kind = payload.get("balance_type") or BALANCE_DEBTOR
    if kind not in (BALANCE_DEBTOR, BALANCE_CREDITOR):
        raise InvalidInput("balance_type must be 'debtor' or 'creditor'")
    sign = debtor_sign if kind == BALANCE_DEBTOR else -debtor_sign
    apply_delta(
        party, Delta(code, sign * value, sign * value_base),
        type="opening_balance", exchange_rate=rate, description="Opening balance",
    )


# ---- customers ---------------------------------------------------------------

def create_customer(payload: dict) -> Customer:
    def _op():
        customer = Customer(
            id=new_token(),
            name=require_str(payload.get("name"), "name"),
            phone=optional_str(payload.get("phone")),
            credit_limit=(
                coerce_amount(payload.get("credit_limit"), "credit_limit")
                if payload.get("credit_limit") not in (None, "") else None
            ),
        )
        customers.put(customer)
        _opening_balance(customer, payload, debtor_sign=+1)
        return customer
    return atomic(_op)


def record_customer_payment(customer_id: str, amount, *, currency=None, exchange_rate=None, description=None):
    """Customer pays off part of what they owe."""
    def _op():
        customer = customers.require(customer_id)
        settings = get_currency_settings()
        code, rate, value, value_base = _money(amount, currency, exchange_rate, settings)
        return apply_delta(
            customer, Delta(code, -value, -value_base),
            type="payment", exchange_rate=rate,
            description=optional_str(description) or "Payment received",
        )
    return atomic(_op)


# ---- suppliers ---------------------------------------------------------------

def create_supplier(payload: dict) -> Supplier:
    def _op():
        supplier = Supplier(
            id=new_token(),
            name=require_str(payload.get("name"), "name"),
            contact_person=optional_str(payload.get("contact_person")),
            phone=optional_str(payload.get("phone")),
            address=optional_str(payload.get("address")),
        )
        suppliers.put(supplier)
        # A supplier balance is positive when the shop owes; a debtor supplier owes the shop.
        _opening_balance(supplier, payload, debtor_sign=-1)
        return supplier
    return atomic(_op)


def record_supplier_payment(supplier_id: str, amount, *, currency=None, exchange_rate=None, description=None):
    """Shop pays the supplier; lowers what the shop owes."""
    def _op():
        supplier = suppliers.require(supplier_id)
        settings = get_currency_settings()
        code, rate, value, value_base = _money(amount, currency, exchange_rate, settings)
        return apply_delta(
            supplier, Delta(code, -value, -value_base),
            type="payment", exchange_rate=rate,
            description=optional_str(description) or "Payment to supplier",
        )
    return atomic(_op)


# ---- deposit holders -----------------------------------------------------------

def create_deposit_holder(payload: dict) -> DepositHolder:
    def _op():
        holder = DepositHolder(
            id=new_token(),
            name=require_str(payload.get("name"), "name"),
            phone=optional_str(payload.get("phone")),
        )
        deposit_holders.put(holder)
        return holder
    return atomic(_op)


def record_deposit(holder_id: str, amount, *, currency=None, exchange_rate=None, description=None):
    def _op():
        holder = deposit_holders.require(holder_id)
        settings = get_currency_settings()
        code, rate, value, value_base = _money(amount, currency, exchange_rate, settings)
        return apply_delta(
            holder, Delta(code, value, value_base),
            type="deposit", exchange_rate=rate,
            description=optional_str(description) or "Deposit",
        )
    return atomic(_op)


def record_withdrawal(holder_id: str, amount, *, currency=None, exchange_rate=None, description=None):
    """Pay money back to a holder. Needs a reason and cannot overdraw that currency."""
    def _op():
        holder = deposit_holders.require(holder_id)
        reason = optional_str(description)
        if not reason:
            raise InvalidInput("A description is required for withdrawals")
        settings = get_currency_settings()
        code, rate, value, value_base = _money(amount, currency, exchange_rate, settings)
        held = holder.currency_balance(code)
        if value > held + 1e-9:
            raise InsufficientBalance(
                f"Holder has only {held} {code} on deposit",
                details={"holder_id": holder.id, "currency": code, "balance": held, "requested": value},
            )
        return apply_delta(
            holder, Delta(code, -value, -value_base),
            type="withdrawal", exchange_rate=rate, description=reason,
        )
    return atomic(_op)


# ---- employees ---------------------------------------------------------------

def create_employee(payload: dict) -> Employee:
    def _op():
        employee = Employee(
            id=new_token(),
            name=require_str(payload.get("name"), "name"),
            position=optional_str(payload.get("position")),
            monthly_salary=coerce_amount(payload.get("monthly_salary"), "monthly_salary", default=0.0),
        )
        employees.put(employee)
        return employee
    return atomic(_op)


def record_advance(employee_id: str, amount, *, currency=None, exchange_rate=None, description=None):
    """Cash advance against next salary; raises the employee balance."""
    def _op():
        employee = employees.require(employee_id)
        settings = get_currency_settings()
        code, rate, value, value_base = _money(amount, currency, exchange_rate, settings)
        return apply_delta(
            employee, Delta(code, value, value_base),
            type="advance", exchange_rate=rate,
            description=optional_str(description) or "Salary advance",
        )
    return atomic(_op)


# ---- deletion ----------------------------------------------------------------

_REFERENCING_INVOICES = {
    Customer: ((SaleInvoice, SaleInvoice.customer_id),),
    Supplier: (
        (SaleInvoice, SaleInvoice.intermediary_supplier_id),
        (PurchaseInvoice, PurchaseInvoice.supplier_id),
        (InTransitInvoice, InTransitInvoice.supplier_id),
    ),
    Employee: (),
    DepositHolder: (),
}


def delete_party(store: EntityStore, party_id: str) -> None:
    """
    Delete a counter-party whose balances are all zero.

    Parties named on an invoice stay; their own transaction rows go with them.
    """
    def _op():
        party = store.require(party_id)
        if not party.has_zero_balance() or abs(party.balance or 0.0) > 1e-9:
            raise NonZeroBalance(
                f"{store.label} still has a balance",
                details={"id": party.id, **party.balances_to_dict()},
            )
        for model, column in _REFERENCING_INVOICES[type(party)]:
            if db.session.query(model.id).filter(column == party.id).first() is not None:
                raise LockedForDeletion(
                    f"{store.label} is referenced by invoices",
                    details={"id": party.id, "invoice_table": model.__tablename__},
                )
        txn_model = transaction_model_for(party)
        db.session.query(txn_model).filter(getattr(txn_model, txn_model.party_field) == party.id).delete(
            synchronize_session=False
        )
        store.delete(party.id)
        logger.info("%s %s deleted", store.label, party.id)

    atomic(_op)


def list_transactions(party) -> list:
    model = transaction_model_for(party)
    return (
        db.session.query(model)
        .filter(getattr(model, model.party_field) == party.id)
        .order_by(model.date.asc())
        .all()
    )


# ---- expenses ----------------------------------------------------------------

def create_expense(payload: dict) -> Expense:
    def _op():
        category = payload.get("category") or "other"
        if category not in EXPENSE_CATEGORIES:
            raise InvalidInput(f"Unknown expense category {category!r}", details={"allowed": sorted(EXPENSE_CATEGORIES)})
        amount = coerce_amount(payload.get("amount"), "amount")
        if amount <= 0:
            raise InvalidInput("amount must be greater than zero")
        expense = Expense(
            category=category,
            description=optional_str(payload.get("description")),
            amount=amount,
            date=utcnow(),
        )
        expenses.put(expense)
        return expense
    return atomic(_op)


def delete_expense(expense_id: str) -> None:
    def _op():
        expense = expenses.require(expense_id)
        if expense.invoice_id:
            raise LockedForDeletion(
                "System-generated expenses follow their source document",
                details={"id": expense.id, "invoice_id": expense.invoice_id},
            )
        expenses.delete(expense.id)
    atomic(_op)


def list_expenses(category: str | None = None) -> list[Expense]:
    query = db.session.query(Expense)
    if category:
        query = query.filter(Expense.category == category)
    return query.order_by(Expense.date.desc()).all()

