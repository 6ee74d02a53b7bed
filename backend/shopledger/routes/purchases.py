# Overview: Flask API routes for purchase invoices, purchase edits and purchase returns.

from flask import Blueprint, request, jsonify

from ..services import purchase_service
from .common import json_error, payload_or_empty


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _purchase_kwargs(data: dict) -> dict:
    return {
        "currency": data.get("currency"),
        "exchange_rate": data.get("exchange_rate"),
        "additional_cost": data.get("additional_cost"),
        "cost_description": data.get("cost_description"),
        "invoice_number": data.get("invoice_number"),
    }


@purchases_bp.get("")
def list_purchases():
    try:
        items = [p.to_dict() for p in purchase_service.list_purchases(request.args.get("type"))]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list purchases")


@purchases_bp.get("/<invoice_id>")
def get_purchase(invoice_id: str):
    try:
        return jsonify({"invoice": purchase_service.get_purchase(invoice_id).to_dict()})
    except Exception as e:
        return json_error(e, "load purchase")


@purchases_bp.post("")
def create_purchase():
    """
    Body: {supplier_id, items: [{product_id, lot_number, quantity, unit_price, expiry_date?}],
           currency?, exchange_rate?, additional_cost?, cost_description?, invoice_number?}
    """
    try:
        data = payload_or_empty(request)
        invoice = purchase_service.create_purchase(
            data.get("supplier_id"), data.get("items") or [], **_purchase_kwargs(data)
        )
        return jsonify({"invoice": invoice.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create purchase")


@purchases_bp.post("/<invoice_id>/edit")
def begin_edit(invoice_id: str):
    try:
        return jsonify({"invoice": purchase_service.begin_edit(invoice_id).to_dict()})
    except Exception as e:
        return json_error(e, "begin purchase edit")


@purchases_bp.delete("/edit")
def cancel_edit():
    try:
        return jsonify({"cancelled": purchase_service.cancel_edit()})
    except Exception as e:
        return json_error(e, "cancel purchase edit")


@purchases_bp.put("/<invoice_id>")
def update_purchase(invoice_id: str):
    try:
        data = payload_or_empty(request)
        invoice = purchase_service.update_purchase(
            invoice_id, data.get("items") or [], supplier_id=data.get("supplier_id"), **_purchase_kwargs(data)
        )
        return jsonify({"invoice": invoice.to_dict()})
    except Exception as e:
        return json_error(e, "update purchase")


@purchases_bp.post("/<invoice_id>/returns")
def create_return(invoice_id: str):
    """Body: {lines: [{product_id, lot_number, quantity}]}"""
    try:
        data = payload_or_empty(request)
        invoice = purchase_service.add_purchase_return(invoice_id, data.get("lines") or [])
        return jsonify({"invoice": invoice.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create purchase return")
