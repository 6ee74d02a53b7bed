# Overview: Flask API routes for products, services and stock; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import inventory_service
from .common import json_error, payload_or_empty


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.get("/products")
def list_products():
    try:
        include_batches = request.args.get("include_batches", "1") != "0"
        items = [p.to_dict(include_batches=include_batches) for p in inventory_service.list_products()]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list products")


@inventory_bp.post("/products")
def create_product():
    """
    Create a product.

    Body: {name, barcode?, manufacturer?, sale_price?, items_per_package?,
           batch?: {lot_number, quantity, unit_cost, expiry_date?}}
    """
    try:
        product = inventory_service.create_product(payload_or_empty(request))
        return jsonify({"product": product.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create product")


@inventory_bp.get("/products/<product_id>")
def get_product(product_id: str):
    try:
        return jsonify(inventory_service.stock_summary(product_id))
    except Exception as e:
        return json_error(e, "load product")


@inventory_bp.patch("/products/<product_id>")
def update_product(product_id: str):
    try:
        product = inventory_service.update_product(product_id, payload_or_empty(request))
        return jsonify({"product": product.to_dict()})
    except Exception as e:
        return json_error(e, "update product")


@inventory_bp.delete("/products/<product_id>")
def delete_product(product_id: str):
    try:
        inventory_service.delete_product(product_id)
        return jsonify({"deleted": product_id})
    except Exception as e:
        return json_error(e, "delete product")


@inventory_bp.get("/services")
def list_services():
    try:
        items = [s.to_dict() for s in inventory_service.list_services()]
        return jsonify({"items": items, "count": len(items)})
    except Exception as e:
        return json_error(e, "list services")


@inventory_bp.post("/services")
def create_service():
    try:
        service = inventory_service.create_service(payload_or_empty(request))
        return jsonify({"service": service.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create service")


@inventory_bp.delete("/services/<service_id>")
def delete_service(service_id: str):
    try:
        inventory_service.delete_service(service_id)
        return jsonify({"deleted": service_id})
    except Exception as e:
        return json_error(e, "delete service")
