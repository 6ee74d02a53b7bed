# Overview: Product and service catalogue, first-batch intake and stock summaries.

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import InvalidInput, LockedForDeletion
from ..models import Product, Service, InTransitInvoice, InTransitLine
from ..models.invoices import SHIPMENT_STATUS_ACTIVE
from ..models.mixins import new_token
from ..validation import coerce_int, coerce_amount, coerce_date, optional_str, require_str
from .concurrency import atomic
from .entity_store import EntityStore
from .lot_ledger import LotLedger


logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "barcode", "manufacturer", "sale_price", "items_per_package"}

products = EntityStore(Product)
services = EntityStore(Service)


def _clean_product_fields(patch: dict) -> dict:
    cleaned = {}
    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            continue
        if key == "name":
            cleaned[key] = require_str(value, "name")
        elif key == "sale_price":
            cleaned[key] = coerce_amount(value, "sale_price", default=0.0)
        elif key == "items_per_package":
            cleaned[key] = None if value in (None, "") else coerce_int(value, "items_per_package", minimum=1)
        else:
            cleaned[key] = optional_str(value)
    return cleaned


def create_product(payload: dict) -> Product:
    """
    Create a product, optionally with its first batch.

    The batch is given as payload["batch"] = {lot_number, quantity,
    unit_cost (base currency), expiry_date}.
    """
    def _op():
        if not payload.get("name"):
            raise InvalidInput("name is required")
        product = Product(id=new_token(), **_clean_product_fields(payload))
        products.put(product)

        batch = payload.get("batch")
        if batch:
            if not isinstance(batch, dict):
                raise InvalidInput("batch must be an object")
            # Product row must exist before the ledger can attach a lot to it.
            db.session.flush()
            ledger = LotLedger()
            ledger.receive(
                product.id,
                require_str(batch.get("lot_number"), "lot_number"),
                coerce_int(batch.get("quantity"), "quantity", minimum=1),
                coerce_amount(batch.get("unit_cost"), "unit_cost", default=0.0),
                coerce_date(batch.get("expiry_date"), "expiry_date"),
            )
            ledger.flush()
        return product

    return atomic(_op)


def update_product(product_id: str, patch: dict) -> Product:
    def _op():
        product = products.require(product_id)
        for key, value in _clean_product_fields(patch).items():
            setattr(product, key, value)
        return product
    return atomic(_op)


def delete_product(product_id: str) -> None:
    """Delete a product together with its batches. Not while it is on an open shipment."""
    def _op():
        product = products.require(product_id)
        shipment = (
            db.session.query(InTransitLine.invoice_id)
            .join(InTransitInvoice, InTransitLine.invoice_id == InTransitInvoice.id)
            .filter(InTransitLine.product_id == product.id, InTransitInvoice.status == SHIPMENT_STATUS_ACTIVE)
            .first()
        )
        if shipment is not None:
            raise LockedForDeletion(
                "Product is on an open shipment",
                details={"product_id": product.id, "in_transit_id": shipment[0]},
            )
        db.session.delete(product)
        logger.info("Product %s deleted with %s batches", product.id, len(product.batches))
    atomic(_op)


def list_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.name.asc()).all()


def split_packages(quantity: int, items_per_package: int | None) -> dict:
    if not items_per_package or items_per_package <= 1:
        return {"packages": None, "units": quantity}
    packages, units = divmod(quantity, items_per_package)
    return {"packages": packages, "units": units}


def stock_summary(product_id: str) -> dict:
    """Total stock, package/unit split and batches in the order they will be sold."""
    product = products.require(product_id)
    ledger = LotLedger()
    batches = ledger.batches_for(product.id)
    total = sum(b.quantity for b in batches)
    stock_value = sum(b.quantity * b.unit_cost for b in batches)
    return {
        "product_id": product.id,
        "name": product.name,
        "total_stock": total,
        "items_per_package": product.items_per_package,
        **split_packages(total, product.items_per_package),
        "stock_value_base": stock_value,
        "batches": [b.to_dict() for b in batches],
    }


def create_service(payload: dict) -> Service:
    def _op():
        service = Service(
            id=new_token(),
            name=require_str(payload.get("name"), "name"),
            price=coerce_amount(payload.get("price"), "price", default=0.0),
        )
        services.put(service)
        return service
    return atomic(_op)


def delete_service(service_id: str) -> None:
    atomic(lambda: services.delete(service_id))


def list_services() -> list[Service]:
    return db.session.query(Service).order_by(Service.name.asc()).all()
