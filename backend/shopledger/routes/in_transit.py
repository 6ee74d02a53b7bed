# Overview: Flask API routes for in-transit shipments.

from flask import Blueprint, request, jsonify

from ..services import in_transit_service
from .common import json_error, payload_or_empty


in_transit_bp = Blueprint("in_transit", __name__, url_prefix="/api/in-transit")


@in_transit_bp.get("")
def list_shipments():
    try:
        items = [s.to_dict() for s in in_transit_service.list_shipments(request.args.get("status"))]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list shipments")


@in_transit_bp.get("/<shipment_id>")
def get_shipment(shipment_id: str):
    try:
        return jsonify({"shipment": in_transit_service.get_shipment(shipment_id).to_dict()})
    except Exception as e:
        return json_error(e, "load shipment")


@in_transit_bp.post("")
def create_shipment():
    """
    Body: {supplier_id, items: [{product_id, quantity, unit_price, lot_number?, expiry_date?}],
           currency?, exchange_rate?, invoice_number?, expected_arrival_date?}
    """
    try:
        data = payload_or_empty(request)
        shipment = in_transit_service.create_shipment(
            data.get("supplier_id"),
            data.get("items") or [],
            currency=data.get("currency"),
            exchange_rate=data.get("exchange_rate"),
            invoice_number=data.get("invoice_number"),
            expected_arrival_date=data.get("expected_arrival_date"),
        )
        return jsonify({"shipment": shipment.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create shipment")


@in_transit_bp.put("/<shipment_id>")
def update_shipment(shipment_id: str):
    try:
        data = payload_or_empty(request)
        shipment = in_transit_service.update_shipment(
            shipment_id,
            data.get("items") or [],
            currency=data.get("currency"),
            exchange_rate=data.get("exchange_rate"),
            invoice_number=data.get("invoice_number"),
            expected_arrival_date=data.get("expected_arrival_date"),
        )
        return jsonify({"shipment": shipment.to_dict()})
    except Exception as e:
        return json_error(e, "update shipment")


@in_transit_bp.post("/<shipment_id>/move")
def move(shipment_id: str):
    """Body: {movements: [{product_id, to_transit?, to_received?, lot_number?, expiry_date?}]}"""
    try:
        data = payload_or_empty(request)
        shipment, purchase = in_transit_service.move(shipment_id, data.get("movements") or [])
        return jsonify({
            "shipment": shipment.to_dict(),
            "purchase": purchase.to_dict() if purchase else None,
        })
    except Exception as e:
        return json_error(e, "move shipment goods")


@in_transit_bp.post("/<shipment_id>/archive")
def archive(shipment_id: str):
    try:
        return jsonify({"shipment": in_transit_service.archive(shipment_id).to_dict()})
    except Exception as e:
        return json_error(e, "archive shipment")


@in_transit_bp.delete("/<shipment_id>")
def delete_shipment(shipment_id: str):
    try:
        in_transit_service.delete_shipment(shipment_id)
        return jsonify({"deleted": shipment_id})
    except Exception as e:
        return json_error(e, "delete shipment")


@in_transit_bp.post("/<shipment_id>/prepayments")
def prepayment(shipment_id: str):
    """Body: {amount, currency?, exchange_rate?, description?}"""
    try:
        data = payload_or_empty(request)
        txn = in_transit_service.record_prepayment(
            shipment_id,
            data.get("amount"),
            currency=data.get("currency"),
            exchange_rate=data.get("exchange_rate"),
            description=data.get("description"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except Exception as e:
        return json_error(e, "record prepayment")
