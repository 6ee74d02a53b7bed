# Overview: In-transit shipments moving factory -> road -> warehouse, receiving goods as sub-purchases.

"""
Shipment rules (authoritative)

- Per line: at_factory + in_transit + received == ordered quantity, always.
- move(): to_transit is capped at at_factory; to_received is capped at
  in_transit + to_transit, so goods may go straight from factory to
  warehouse in one call.
- A product may appear only once per move() call.
- Every line receiving goods needs a lot number that does not exist for
  that product in the warehouse or in any other open shipment. All lines are
  validated before anything moves.
- Received goods become an ordinary purchase (P-invoice) pointing back via
  source_in_transit_id; supplier balance and lots follow purchase rules.
- A shipment closes when nothing is left at factory or on the road, or when
  archived (remainder cancelled). Closed shipments accept no movement.
- A shipment is locked for deletion once anything was received, a purchase
  references it, or a prepayment was made against it.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import (
    DuplicateLotNumber,
    EditNotAllowed,
    EntityNotFound,
    InvalidInput,
    LockedForDeletion,
    MissingLotNumber,
    ShipmentClosed,
)
from ..models import Supplier, InTransitInvoice, InTransitLine, PurchaseInvoice, SupplierTransaction
from ..models.invoices import IN_TRANSIT_TYPE, SHIPMENT_STATUS_ACTIVE, SHIPMENT_STATUS_CLOSED
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_amount, coerce_date, optional_str
from .concurrency import atomic
from .entity_store import EntityStore
from .document_service import next_invoice_id, PREFIX_IN_TRANSIT
from .currency_service import effective_rate, from_base, to_base
from .settings_service import get_currency_settings
from .lot_ledger import LotLedger
from .balance_book import Delta, apply_delta
from .purchase_service import parse_purchase_items, create_purchase_inner


logger = logging.getLogger(__name__)

_suppliers = EntityStore(Supplier)
_shipments = EntityStore(InTransitInvoice, "In-transit invoice")


def _require_open(shipment: InTransitInvoice) -> None:
    if not shipment.is_open:
        raise ShipmentClosed(f"Shipment {shipment.id} is closed", details={"in_transit_id": shipment.id})


def _recompute_totals(shipment: InTransitInvoice, settings) -> None:
    shipment.total_amount = sum(line.unit_price * line.quantity for line in shipment.lines)
    shipment.total_amount_base = to_base(shipment.total_amount, shipment.currency, shipment.exchange_rate, settings)


def _check_unique_products(items: list[dict]) -> None:
    seen = set()
    for item in items:
        if item["product_id"] in seen:
            raise InvalidInput(
                "A product can appear only once per shipment",
                details={"product_id": item["product_id"]},
            )
        seen.add(item["product_id"])


def create_shipment(
    supplier_id: str,
    items,
    *,
    currency: str | None = None,
    exchange_rate=None,
    invoice_number: str | None = None,
    expected_arrival_date=None,
) -> InTransitInvoice:
    """Open a shipment with every ordered unit at the factory."""
    def _op():
        settings = get_currency_settings()
        supplier = _suppliers.require(supplier_id)
        code = currency or settings.base_currency
        rate = effective_rate(code, exchange_rate, settings)
        parsed = parse_purchase_items(items, require_lot=False)
        _check_unique_products(parsed)

        shipment = InTransitInvoice(
            id=next_invoice_id(PREFIX_IN_TRANSIT),
            type=IN_TRANSIT_TYPE,
            supplier_id=supplier.id,
            invoice_number=optional_str(invoice_number),
            currency=code,
            exchange_rate=rate,
            status=SHIPMENT_STATUS_ACTIVE,
            expected_arrival_date=coerce_date(expected_arrival_date, "expected_arrival_date"),
            timestamp=utcnow(),
        )
        for line_no, item in enumerate(parsed, start=1):
            shipment.lines.append(InTransitLine(
                line_no=line_no,
                product_id=item["product_id"],
                lot_number=item["lot_number"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                expiry_date=item["expiry_date"],
                at_factory_qty=item["quantity"],
                in_transit_qty=0,
                received_qty=0,
            ))
        _recompute_totals(shipment, settings)
        db.session.add(shipment)
        logger.info("Shipment %s opened with %s lines", shipment.id, len(parsed))
        return shipment

    return atomic(_op)


def update_shipment(
    shipment_id: str,
    items,
    *,
    currency: str | None = None,
    exchange_rate=None,
    invoice_number: str | None = None,
    expected_arrival_date=None,
) -> InTransitInvoice:
    """
    Edit ordered quantities and prices of an open shipment.

    A line cannot drop below what is already on the road or received; the
    difference lands at the factory.
    """
    def _op():
        shipment = _shipments.require(shipment_id)
        _require_open(shipment)
        settings = get_currency_settings()
        parsed = parse_purchase_items(items, require_lot=False)
        _check_unique_products(parsed)

        code = currency or shipment.currency
        if code != shipment.currency and any(line.received_qty for line in shipment.lines):
            raise EditNotAllowed(
                "Currency cannot change after goods were received",
                details={"in_transit_id": shipment.id},
            )
        rate_input = exchange_rate
        if rate_input is None and code == shipment.currency:
            rate_input = shipment.exchange_rate

        wanted = {item["product_id"]: item for item in parsed}
        for line in list(shipment.lines):
            moved = line.in_transit_qty + line.received_qty
            item = wanted.get(line.product_id)
            if item is None:
                if moved:
                    raise InvalidInput(
                        "Cannot remove a line whose goods already left the factory",
                        details={"product_id": line.product_id, "moved_quantity": moved},
                    )
                shipment.lines.remove(line)
                continue
            if item["quantity"] < moved:
                raise InvalidInput(
                    "Ordered quantity cannot be lower than in-transit plus received",
                    details={"product_id": line.product_id, "requested_quantity": item["quantity"],
                             "moved_quantity": moved},
                )
            line.quantity = item["quantity"]
            line.at_factory_qty = item["quantity"] - moved
            line.unit_price = item["unit_price"]
            if item["lot_number"]:
                line.lot_number = item["lot_number"]
            if item["expiry_date"]:
                line.expiry_date = item["expiry_date"]

        existing = {line.product_id for line in shipment.lines}
        next_no = max((line.line_no for line in shipment.lines), default=0)
        for item in parsed:
            if item["product_id"] in existing:
                continue
            next_no += 1
            shipment.lines.append(InTransitLine(
                line_no=next_no,
                product_id=item["product_id"],
                lot_number=item["lot_number"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                expiry_date=item["expiry_date"],
                at_factory_qty=item["quantity"],
                in_transit_qty=0,
                received_qty=0,
            ))

        shipment.currency = code
        shipment.exchange_rate = effective_rate(code, rate_input, settings)
        if invoice_number is not None:
            shipment.invoice_number = optional_str(invoice_number)
        if expected_arrival_date is not None:
            shipment.expected_arrival_date = coerce_date(expected_arrival_date, "expected_arrival_date")
        _recompute_totals(shipment, settings)
        return shipment

    return atomic(_op)


def _normalize_movements(movements) -> list[dict]:
    if isinstance(movements, dict):
        movements = [dict(value or {}, product_id=key) for key, value in movements.items()]
    if not isinstance(movements, list):
        raise InvalidInput("movements must be a list or an object keyed by product id")
    return movements


def _lot_taken_elsewhere(shipment: InTransitInvoice, ledger: LotLedger, product_id: str, lot_number: str) -> str | None:
    """Where the lot number is already used: "warehouse", another shipment id, or None."""
    if ledger.find_lot(product_id, lot_number) is not None:
        return "warehouse"
    other = (
        db.session.query(InTransitLine.invoice_id)
        .join(InTransitInvoice, InTransitLine.invoice_id == InTransitInvoice.id)
        .filter(
            InTransitInvoice.id != shipment.id,
            InTransitInvoice.status == SHIPMENT_STATUS_ACTIVE,
            InTransitLine.product_id == product_id,
            InTransitLine.lot_number == lot_number,
        )
        .first()
    )
    return other[0] if other else None


def move(shipment_id: str, movements) -> tuple[InTransitInvoice, PurchaseInvoice | None]:
    """
    Advance goods along factory -> road -> warehouse.

    Returns the shipment and the purchase created for received goods (None
    when nothing reached the warehouse).
    """
    def _op():
        shipment = _shipments.require(shipment_id)
        _require_open(shipment)
        settings = get_currency_settings()
        ledger = LotLedger()

        planned = []
        seen = set()
        for raw in _normalize_movements(movements):
            if not isinstance(raw, dict):
                raise InvalidInput("Each movement must be an object")
            product_id = raw.get("product_id")
            if product_id in seen:
                raise InvalidInput(
                    "A product can appear only once per movement",
                    details={"in_transit_id": shipment.id, "product_id": product_id},
                )
            seen.add(product_id)
            line = shipment.line_for(product_id)
            if line is None:
                raise EntityNotFound(
                    "Product is not on this shipment",
                    details={"in_transit_id": shipment.id, "product_id": product_id},
                )
            to_transit = min(coerce_int(raw.get("to_transit") or 0, "to_transit", minimum=0), line.at_factory_qty)
            to_received = min(
                coerce_int(raw.get("to_received") or 0, "to_received", minimum=0),
                line.in_transit_qty + to_transit,
            )
            lot_number = optional_str(raw.get("lot_number")) or line.lot_number
            expiry_date = coerce_date(raw.get("expiry_date"), "expiry_date") or line.expiry_date
            planned.append((line, to_transit, to_received, lot_number, expiry_date))

        # Validate every receiving line before anything moves.
        claimed = set()
        for line, _, to_received, lot_number, _ in planned:
            if to_received <= 0:
                continue
            if not lot_number:
                raise MissingLotNumber(
                    "Lot number required to receive goods",
                    details={"in_transit_id": shipment.id, "product_id": line.product_id},
                )
            where = _lot_taken_elsewhere(shipment, ledger, line.product_id, lot_number)
            if where is None and (line.product_id, lot_number) in claimed:
                where = shipment.id
            if where is not None:
                raise DuplicateLotNumber(
                    f"Lot {lot_number} already exists for this product",
                    details={"product_id": line.product_id, "lot_number": lot_number, "found_in": where},
                )
            claimed.add((line.product_id, lot_number))

        receipts = []
        for line, to_transit, to_received, lot_number, expiry_date in planned:
            line.at_factory_qty -= to_transit
            line.in_transit_qty += to_transit - to_received
            line.received_qty += to_received
            line.lot_number = lot_number
            line.expiry_date = expiry_date
            if to_received > 0:
                receipts.append({
                    "product_id": line.product_id,
                    "lot_number": lot_number,
                    "quantity": to_received,
                    "unit_price": line.unit_price,
                    "expiry_date": expiry_date,
                })

        purchase = None
        if receipts:
            purchase = create_purchase_inner(
                ledger,
                supplier=_suppliers.require(shipment.supplier_id),
                items=receipts,
                currency=shipment.currency,
                rate=shipment.exchange_rate,
                settings=settings,
                invoice_number=shipment.invoice_number,
                source_in_transit_id=shipment.id,
                require_new_lot=True,
            )

        if shipment.lines and all(l.at_factory_qty == 0 and l.in_transit_qty == 0 for l in shipment.lines):
            shipment.status = SHIPMENT_STATUS_CLOSED
            shipment.closed_at = utcnow()
            logger.info("Shipment %s fully received and closed", shipment.id)

        ledger.flush()
        return shipment, purchase

    return atomic(_op)


def archive(shipment_id: str) -> InTransitInvoice:
    """Force-close a shipment; anything not yet received is cancelled."""
    def _op():
        shipment = _shipments.require(shipment_id)
        _require_open(shipment)
        shipment.status = SHIPMENT_STATUS_CLOSED
        shipment.remainder_cancelled = any(l.at_factory_qty or l.in_transit_qty for l in shipment.lines)
        shipment.closed_at = utcnow()
        logger.info("Shipment %s archived (remainder cancelled: %s)", shipment.id, shipment.remainder_cancelled)
        return shipment

    return atomic(_op)


def delete_shipment(shipment_id: str) -> None:
    def _op():
        shipment = _shipments.require(shipment_id)
        received = sum(line.received_qty for line in shipment.lines)
        purchase = (
            db.session.query(PurchaseInvoice.id)
            .filter(PurchaseInvoice.source_in_transit_id == shipment.id)
            .first()
        )
        prepaid = (
            db.session.query(SupplierTransaction.id)
            .filter(SupplierTransaction.in_transit_id == shipment.id)
            .first()
        )
        if received or purchase is not None or prepaid is not None:
            raise LockedForDeletion(
                f"Shipment {shipment.id} has received goods or payments and cannot be deleted",
                details={
                    "in_transit_id": shipment.id,
                    "received_quantity": received,
                    "purchase_id": purchase[0] if purchase else None,
                    "has_prepayments": prepaid is not None,
                },
            )
        db.session.delete(shipment)

    atomic(_op)


def record_prepayment(
    shipment_id: str,
    amount,
    *,
    currency: str | None = None,
    exchange_rate=None,
    description: str | None = None,
) -> SupplierTransaction:
    """Pay the supplier ahead of delivery; lowers the supplier balance."""
    def _op():
        shipment = _shipments.require(shipment_id)
        _require_open(shipment)
        settings = get_currency_settings()
        value = coerce_amount(amount, "amount")
        if value <= 0:
            raise InvalidInput("amount must be greater than zero")
        code = currency or shipment.currency
        rate_input = exchange_rate
        if rate_input is None and code == shipment.currency:
            rate_input = shipment.exchange_rate
        rate = effective_rate(code, rate_input, settings)
        value_base = to_base(value, code, rate, settings)

        if code == shipment.currency:
            shipment.paid_amount = (shipment.paid_amount or 0.0) + value
        else:
            shipment.paid_amount = (shipment.paid_amount or 0.0) + from_base(
                value_base, shipment.currency, shipment.exchange_rate, settings
            )

        supplier = _suppliers.require(shipment.supplier_id)
        return apply_delta(
            supplier, Delta(code, -value, -value_base),
            type="prepayment", exchange_rate=rate,
            description=optional_str(description) or f"Prepayment for shipment {shipment.id}",
            in_transit_id=shipment.id,
        )

    return atomic(_op)


def get_shipment(shipment_id: str) -> InTransitInvoice:
    return _shipments.require(shipment_id)


def list_shipments(status: str | None = None) -> list[InTransitInvoice]:
    query = db.session.query(InTransitInvoice)
    if status:
        query = query.filter(InTransitInvoice.status == status)
    return query.order_by(InTransitInvoice.timestamp.desc(), InTransitInvoice.id.desc()).all()
