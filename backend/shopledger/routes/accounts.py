# Overview: Flask API routes for counter-party accounts, payroll and expenses.

from flask import Blueprint, request, jsonify

from ..services import accounts_service, payroll_service
from .common import json_error, payload_or_empty


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api")

# url segment -> (store, create function)
_PARTIES = {
    "customers": (accounts_service.customers, accounts_service.create_customer),
    "suppliers": (accounts_service.suppliers, accounts_service.create_supplier),
    "employees": (accounts_service.employees, accounts_service.create_employee),
    "deposit-holders": (accounts_service.deposit_holders, accounts_service.create_deposit_holder),
}

# (url segment, movement) -> service function taking (party_id, amount, **money)
_MOVEMENTS = {
    ("customers", "payments"): accounts_service.record_customer_payment,
    ("suppliers", "payments"): accounts_service.record_supplier_payment,
    ("employees", "advances"): accounts_service.record_advance,
    ("deposit-holders", "deposits"): accounts_service.record_deposit,
    ("deposit-holders", "withdrawals"): accounts_service.record_withdrawal,
}


_KIND = '<any(customers, suppliers, employees, "deposit-holders"):kind>'


@accounts_bp.get(f"/{_KIND}")
def list_parties(kind: str):
    entry = _PARTIES[kind]
    try:
        items = [p.to_dict() for p in entry[0].get_all()]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, f"list {kind}")


@accounts_bp.post(f"/{_KIND}")
def create_party(kind: str):
    """Body: {name, ..., opening_balance?, balance_type?, currency?, exchange_rate?}"""
    entry = _PARTIES[kind]
    try:
        party = entry[1](payload_or_empty(request))
        return jsonify({"item": party.to_dict()}), 201
    except Exception as e:
        return json_error(e, f"create {kind}")


@accounts_bp.get(f"/{_KIND}/<party_id>")
def get_party(kind: str, party_id: str):
    entry = _PARTIES[kind]
    try:
        party = entry[0].require(party_id)
        return jsonify({
            "item": party.to_dict(),
            "transactions": [t.to_dict() for t in accounts_service.list_transactions(party)],
        })
    except Exception as e:
        return json_error(e, f"load {kind}")


@accounts_bp.delete(f"/{_KIND}/<party_id>")
def delete_party(kind: str, party_id: str):
    entry = _PARTIES[kind]
    try:
        accounts_service.delete_party(entry[0], party_id)
        return jsonify({"deleted": party_id})
    except Exception as e:
        return json_error(e, f"delete {kind}")


@accounts_bp.post(f"/{_KIND}/<party_id>/<movement>")
def record_movement(kind: str, party_id: str, movement: str):
    """Body: {amount, currency?, exchange_rate?, description?}"""
    handler = _MOVEMENTS.get((kind, movement))
    if handler is None:
        return jsonify({"error": "Not found"}), 404
    try:
        data = payload_or_empty(request)
        txn = handler(
            party_id,
            data.get("amount"),
            currency=data.get("currency"),
            exchange_rate=data.get("exchange_rate"),
            description=data.get("description"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except Exception as e:
        return json_error(e, f"record {movement}")


@accounts_bp.post("/payroll/pay")
def pay_salaries():
    try:
        return jsonify(payroll_service.pay_salaries().to_dict()), 201
    except Exception as e:
        return json_error(e, "pay salaries")


@accounts_bp.get("/expenses")
def list_expenses():
    try:
        items = [x.to_dict() for x in accounts_service.list_expenses(request.args.get("category"))]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list expenses")


@accounts_bp.post("/expenses")
def create_expense():
    try:
        expense = accounts_service.create_expense(payload_or_empty(request))
        return jsonify({"item": expense.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create expense")


@accounts_bp.delete("/expenses/<expense_id>")
def delete_expense(expense_id: str):
    try:
        accounts_service.delete_expense(expense_id)
        return jsonify({"deleted": expense_id})
    except Exception as e:
        return json_error(e, "delete expense")
