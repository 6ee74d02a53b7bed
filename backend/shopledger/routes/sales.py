# Overview: Flask API routes for checkout, sale edits and sale returns.

from flask import Blueprint, request, jsonify

from ..services import sales_service
from .common import json_error, payload_or_empty


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales():
    try:
        items = [s.to_dict() for s in sales_service.list_sales(request.args.get("type"))]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list sales")


@sales_bp.get("/<invoice_id>")
def get_sale(invoice_id: str):
    try:
        return jsonify({"invoice": sales_service.get_sale(invoice_id).to_dict()})
    except Exception as e:
        return json_error(e, "load sale")


@sales_bp.post("/checkout")
def checkout():
    """
    Complete the cart. While a sale is open for edit, this replaces it.

    Body: {cart: [{item_type, item_id, quantity, price?, final_price?}],
           cashier?, customer_id?, currency?, exchange_rate?, intermediary_supplier_id?}
    """
    try:
        data = payload_or_empty(request)
        invoice = sales_service.complete_sale(
            data.get("cart") or [],
            cashier=data.get("cashier"),
            customer_id=data.get("customer_id"),
            currency=data.get("currency"),
            exchange_rate=data.get("exchange_rate"),
            intermediary_supplier_id=data.get("intermediary_supplier_id"),
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except Exception as e:
        return json_error(e, "complete sale")


@sales_bp.get("/edit")
def current_edit():
    try:
        return jsonify({"editing_invoice_id": sales_service.editing_invoice_id()})
    except Exception as e:
        return json_error(e, "load edit state")


@sales_bp.post("/<invoice_id>/edit")
def begin_edit(invoice_id: str):
    try:
        invoice, cart = sales_service.begin_edit(invoice_id)
        return jsonify({"invoice": invoice.to_dict(), "cart": cart})
    except Exception as e:
        return json_error(e, "begin sale edit")


@sales_bp.delete("/edit")
def cancel_edit():
    try:
        return jsonify({"cancelled": sales_service.cancel_edit()})
    except Exception as e:
        return json_error(e, "cancel sale edit")


@sales_bp.post("/<invoice_id>/returns")
def create_return(invoice_id: str):
    """Body: {lines: [{item_id | line_id, quantity}], cashier?}"""
    try:
        data = payload_or_empty(request)
        invoice = sales_service.add_return(invoice_id, data.get("lines") or [], data.get("cashier"))
        return jsonify({"invoice": invoice.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create sale return")
