# Overview: Purchase invoices: lot receiving with landed cost, edits by direct lot decrement, lot-targeted returns.

"""
Purchase rules (authoritative)

Create:
- Each line's unit price is converted to base currency.
- additional_cost (invoice currency) is converted to base and allocated
  across lines by each line's share of the invoice's base value (by quantity
  share when the invoice is worth nothing). Per-unit surcharge = allocated
  share / quantity. Lot unit cost = converted unit price + surcharge.
- Supplier balance += invoice total (the shop owes more).
- additional_cost > 0 creates a `logistics` Expense linked to the invoice.

Update:
- The original lines are taken back out of their lots by direct decrement,
  not by a virtual restore: the lots may already have been partly sold.
  A batch can go negative here; it is logged, not corrected.
- The new lines are received against the same invoice id, the supplier
  transaction is rewritten, and the logistics expense follows the new cost.

Return:
- Targets lots the operator names; each (product, lot) must be on the
  original invoice. Cumulative returns cannot exceed the purchased quantity.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..errors import (
    EditNotAllowed,
    EmptyCart,
    ExcessiveReturnQuantity,
    InvalidInput,
    LotNotFound,
    MissingLotNumber,
)
from ..models import Product, Supplier, PurchaseInvoice, PurchaseInvoiceLine, Expense
from ..models.invoices import PURCHASE_TYPE_PURCHASE, PURCHASE_TYPE_RETURN
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_amount, coerce_date, optional_str, require_str
from .concurrency import atomic
from .entity_store import EntityStore
from .document_service import next_invoice_id, PREFIX_PURCHASE, PREFIX_PURCHASE_RETURN
from .currency_service import effective_rate, to_base
from .settings_service import get_currency_settings
from .lot_ledger import LotLedger
from .balance_book import Delta, apply_delta, post_invoice_delta, find_invoice_transaction
from .edit_state import EDIT_KIND_PURCHASE, current_edit, open_edit, close_edit


logger = logging.getLogger(__name__)

EXPENSE_CATEGORY_LOGISTICS = "logistics"

_products = EntityStore(Product)
_suppliers = EntityStore(Supplier)
_purchases = EntityStore(PurchaseInvoice, "Purchase invoice")


def parse_purchase_items(items, *, require_lot: bool = True) -> list[dict]:
    if not items:
        raise EmptyCart("Purchase has no items")
    parsed = []
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidInput("Purchase items must be objects")
        product = _products.require(require_str(raw.get("product_id"), "product_id"))
        lot_number = optional_str(raw.get("lot_number"))
        if require_lot and not lot_number:
            raise MissingLotNumber(
                f"Lot number required for {product.name}",
                details={"product_id": product.id},
            )
        parsed.append({
            "product_id": product.id,
            "lot_number": lot_number,
            "quantity": coerce_int(raw.get("quantity"), "quantity", minimum=1),
            "unit_price": coerce_amount(raw.get("unit_price"), "unit_price"),
            "expiry_date": coerce_date(raw.get("expiry_date"), "expiry_date"),
        })
    return parsed


def allocate_landed_costs(unit_bases: list[float], quantities: list[int], additional_base: float) -> list[float]:
    """Per-unit base cost after folding `additional_base` into each line."""
    line_values = [u * q for u, q in zip(unit_bases, quantities)]
    total_value = sum(line_values)
    total_qty = sum(quantities)
    landed = []
    for unit_base, qty, value in zip(unit_bases, quantities, line_values):
        if additional_base and total_value > 0:
            share = value / total_value
        elif additional_base and total_qty > 0:
            share = qty / total_qty
        else:
            share = 0.0
        landed.append(unit_base + (additional_base * share) / qty)
    return landed


def _sync_logistics_expense(invoice: PurchaseInvoice, additional_base: float, description: str | None) -> None:
    expense = (
        db.session.query(Expense)
        .filter(Expense.invoice_id == invoice.id, Expense.category == EXPENSE_CATEGORY_LOGISTICS)
        .first()
    )
    if additional_base > 0:
        if expense is None:
            expense = Expense(category=EXPENSE_CATEGORY_LOGISTICS, invoice_id=invoice.id, date=utcnow())
            db.session.add(expense)
        expense.amount = additional_base
        expense.description = description or f"Logistics for purchase {invoice.id}"
    elif expense is not None:
        db.session.delete(expense)


def _apply_purchase_lines(
    ledger: LotLedger,
    invoice: PurchaseInvoice,
    items: list[dict],
    *,
    settings,
    additional_cost: float,
    require_new_lot: bool = False,
) -> tuple[float, float, float]:
    """Receive every line into the ledger; returns (total, total_base, additional_base)."""
    currency, rate = invoice.currency, invoice.exchange_rate
    unit_bases = [to_base(item["unit_price"], currency, rate, settings) for item in items]
    quantities = [item["quantity"] for item in items]
    additional_base = to_base(additional_cost, currency, rate, settings) if additional_cost else 0.0
    landed = allocate_landed_costs(unit_bases, quantities, additional_base)

    total = 0.0
    total_base = 0.0
    for line_no, (item, unit_base, unit_cost) in enumerate(zip(items, unit_bases, landed), start=1):
        ledger.receive(
            item["product_id"],
            item["lot_number"],
            item["quantity"],
            unit_cost,
            item["expiry_date"],
            acquired_at=invoice.timestamp,
            require_new_lot=require_new_lot,
        )
        invoice.lines.append(PurchaseInvoiceLine(
            line_no=line_no,
            product_id=item["product_id"],
            lot_number=item["lot_number"],
            quantity=item["quantity"],
            unit_price=item["unit_price"],
            unit_cost_base=unit_cost,
            expiry_date=item["expiry_date"],
        ))
        total += item["unit_price"] * item["quantity"]
        total_base += unit_base * item["quantity"]
    return total, total_base, additional_base


def create_purchase_inner(
    ledger: LotLedger,
    *,
    supplier: Supplier,
    items: list[dict],
    currency: str,
    rate: float,
    settings,
    additional_cost: float = 0.0,
    cost_description: str | None = None,
    invoice_number: str | None = None,
    source_in_transit_id: str | None = None,
    require_new_lot: bool = False,
) -> PurchaseInvoice:
    """Stage a purchase in the current unit of work. Caller flushes the ledger and commits."""
    invoice = PurchaseInvoice(
        id=next_invoice_id(PREFIX_PURCHASE),
        type=PURCHASE_TYPE_PURCHASE,
        supplier_id=supplier.id,
        invoice_number=invoice_number,
        currency=currency,
        exchange_rate=rate,
        additional_cost=additional_cost,
        cost_description=cost_description,
        source_in_transit_id=source_in_transit_id,
        timestamp=utcnow(),
    )
    db.session.add(invoice)

    total, total_base, additional_base = _apply_purchase_lines(
        ledger, invoice, items, settings=settings, additional_cost=additional_cost,
        require_new_lot=require_new_lot,
    )
    invoice.total_amount = total
    invoice.total_amount_base = total_base

    post_invoice_delta(
        supplier, Delta(currency, total, total_base),
        invoice_id=invoice.id, type="purchase", exchange_rate=rate,
        description=f"Purchase {invoice.id}",
    )
    _sync_logistics_expense(invoice, additional_base, cost_description)
    return invoice


def create_purchase(
    supplier_id: str,
    items,
    *,
    currency: str | None = None,
    exchange_rate=None,
    additional_cost=None,
    cost_description: str | None = None,
    invoice_number: str | None = None,
) -> PurchaseInvoice:
    def _op():
        settings = get_currency_settings()
        supplier = _suppliers.require(supplier_id)
        code = currency or settings.base_currency
        rate = effective_rate(code, exchange_rate, settings)
        parsed = parse_purchase_items(items)
        extra = coerce_amount(additional_cost, "additional_cost", default=0.0)

        ledger = LotLedger()
        invoice = create_purchase_inner(
            ledger,
            supplier=supplier,
            items=parsed,
            currency=code,
            rate=rate,
            settings=settings,
            additional_cost=extra,
            cost_description=optional_str(cost_description),
            invoice_number=optional_str(invoice_number),
        )
        ledger.flush()
        logger.info("Purchase %s committed (%s lines, %.2f %s)", invoice.id, len(parsed), invoice.total_amount, code)
        return invoice

    return atomic(_op)


def _ensure_editable(invoice: PurchaseInvoice) -> None:
    if invoice.type != PURCHASE_TYPE_PURCHASE:
        raise EditNotAllowed("Only purchase invoices can be edited", details={"invoice_id": invoice.id})
    if invoice.source_in_transit_id:
        raise EditNotAllowed(
            "Purchases received from a shipment are edited through the shipment",
            details={"invoice_id": invoice.id, "in_transit_id": invoice.source_in_transit_id},
        )
    has_returns = (
        db.session.query(PurchaseInvoice.id)
        .filter(PurchaseInvoice.original_invoice_id == invoice.id)
        .first()
    )
    if has_returns is not None:
        raise EditNotAllowed("Purchase has returns and can no longer be edited", details={"invoice_id": invoice.id})


def begin_edit(invoice_id: str) -> PurchaseInvoice:
    def _op():
        invoice = _purchases.require(invoice_id)
        _ensure_editable(invoice)
        open_edit(EDIT_KIND_PURCHASE, invoice.id)
        return invoice
    return atomic(_op)


def cancel_edit() -> bool:
    return atomic(lambda: close_edit(EDIT_KIND_PURCHASE))


def update_purchase(
    invoice_id: str,
    items,
    *,
    supplier_id: str | None = None,
    currency: str | None = None,
    exchange_rate=None,
    additional_cost=None,
    cost_description: str | None = None,
    invoice_number: str | None = None,
) -> PurchaseInvoice:
    """Replace a purchase's lines, supplier amount and logistics cost in place."""
    def _op():
        invoice = _purchases.require(invoice_id)
        pointer = current_edit(EDIT_KIND_PURCHASE)
        if pointer is not None and pointer.invoice_id != invoice.id:
            # Raises ConcurrentEditConflict.
            open_edit(EDIT_KIND_PURCHASE, invoice.id)
        _ensure_editable(invoice)

        settings = get_currency_settings()
        code = currency or invoice.currency
        rate_input = exchange_rate
        if rate_input is None and code == invoice.currency:
            rate_input = invoice.exchange_rate
        rate = effective_rate(code, rate_input, settings)
        parsed = parse_purchase_items(items)
        extra = coerce_amount(additional_cost, "additional_cost", default=0.0)
        supplier = _suppliers.require(supplier_id or invoice.supplier_id)
        former_supplier = _suppliers.get(invoice.supplier_id)

        ledger = LotLedger()
        for line in invoice.lines:
            batch = ledger.decrement_lot(line.product_id, line.lot_number, line.quantity, allow_negative=True)
            if ledger.available(batch) < 0:
                logger.warning(
                    "Editing purchase %s takes lot %s of product %s below zero (%s); stock was sold since receipt",
                    invoice.id, line.lot_number, line.product_id, ledger.available(batch),
                )

        invoice.lines.clear()
        invoice.supplier_id = supplier.id
        invoice.currency = code
        invoice.exchange_rate = rate
        invoice.additional_cost = extra
        invoice.cost_description = optional_str(cost_description)
        if invoice_number is not None:
            invoice.invoice_number = optional_str(invoice_number)
        invoice.edited_at = utcnow()

        total, total_base, additional_base = _apply_purchase_lines(
            ledger, invoice, parsed, settings=settings, additional_cost=extra,
        )
        invoice.total_amount = total
        invoice.total_amount_base = total_base

        if former_supplier is not None and former_supplier is not supplier:
            old_txn = find_invoice_transaction(former_supplier, invoice.id)
            if old_txn is not None:
                post_invoice_delta(
                    former_supplier, Delta.zero(old_txn.currency),
                    invoice_id=invoice.id, type=old_txn.type, exchange_rate=old_txn.exchange_rate,
                )
        post_invoice_delta(
            supplier, Delta(code, total, total_base),
            invoice_id=invoice.id, type="purchase", exchange_rate=rate,
            description=f"Purchase {invoice.id}",
        )
        _sync_logistics_expense(invoice, additional_base, invoice.cost_description)

        ledger.flush()
        if pointer is not None:
            close_edit(EDIT_KIND_PURCHASE)
        logger.info("Purchase %s updated (%s lines, %.2f %s)", invoice.id, len(parsed), total, code)
        return invoice

    return atomic(_op)


def _returned_quantity(original: PurchaseInvoice, product_id: str, lot_number: str) -> int:
    rows = (
        db.session.query(PurchaseInvoiceLine)
        .join(PurchaseInvoice, PurchaseInvoiceLine.invoice_id == PurchaseInvoice.id)
        .filter(
            PurchaseInvoice.original_invoice_id == original.id,
            PurchaseInvoice.type == PURCHASE_TYPE_RETURN,
            PurchaseInvoiceLine.product_id == product_id,
            PurchaseInvoiceLine.lot_number == lot_number,
        )
        .all()
    )
    return sum(row.quantity for row in rows)


def add_purchase_return(original_invoice_id: str, lines) -> PurchaseInvoice:
    """Send named lots back to the supplier as a PR-invoice."""
    def _op():
        original = _purchases.require(original_invoice_id)
        if original.type != PURCHASE_TYPE_PURCHASE:
            raise InvalidInput("Returns can only reference purchase invoices", details={"invoice_id": original.id})
        if not lines:
            raise EmptyCart("No return lines given")

        settings = get_currency_settings()
        supplier = _suppliers.require(original.supplier_id)
        ledger = LotLedger()

        purchased: dict[tuple[str, str], PurchaseInvoiceLine] = {}
        for line in original.lines:
            purchased.setdefault((line.product_id, line.lot_number), line)
        pending: dict[tuple[str, str], int] = {}
        rows = []
        total = 0.0
        total_base = 0.0

        for request in lines:
            if not isinstance(request, dict):
                raise InvalidInput("Return lines must be objects")
            key = (request.get("product_id"), request.get("lot_number"))
            quantity = coerce_int(request.get("quantity"), "quantity", minimum=1)
            line = purchased.get(key)
            if line is None:
                raise LotNotFound(
                    "Lot is not on the original purchase invoice",
                    details={"invoice_id": original.id, "product_id": key[0], "lot_number": key[1]},
                )
            bought = sum(l.quantity for l in original.lines if (l.product_id, l.lot_number) == key)
            if key not in pending:
                pending[key] = _returned_quantity(original, *key)
            if pending[key] + quantity > bought:
                raise ExcessiveReturnQuantity(
                    "Return quantity exceeds quantity purchased",
                    details={
                        "product_id": key[0], "lot_number": key[1],
                        "purchased_quantity": bought, "already_returned": pending[key],
                        "requested_quantity": quantity,
                    },
                )
            ledger.decrement_lot(key[0], key[1], quantity)
            pending[key] += quantity

            amount = line.unit_price * quantity
            total += amount
            total_base += to_base(amount, original.currency, original.exchange_rate, settings)
            rows.append((line, quantity))

        invoice = PurchaseInvoice(
            id=next_invoice_id(PREFIX_PURCHASE_RETURN),
            type=PURCHASE_TYPE_RETURN,
            original_invoice_id=original.id,
            supplier_id=supplier.id,
            invoice_number=original.invoice_number,
            currency=original.currency,
            exchange_rate=original.exchange_rate,
            total_amount=total,
            total_amount_base=total_base,
            timestamp=utcnow(),
        )
        for line_no, (line, quantity) in enumerate(rows, start=1):
            invoice.lines.append(PurchaseInvoiceLine(
                line_no=line_no,
                product_id=line.product_id,
                lot_number=line.lot_number,
                quantity=quantity,
                unit_price=line.unit_price,
                unit_cost_base=line.unit_cost_base,
                expiry_date=line.expiry_date,
            ))
        db.session.add(invoice)

        apply_delta(
            supplier, Delta(invoice.currency, -total, -total_base),
            type="purchase_return", exchange_rate=invoice.exchange_rate,
            description=f"Return {invoice.id} of purchase {original.id}", invoice_id=invoice.id,
        )

        ledger.flush()
        logger.info("Purchase return %s committed against %s", invoice.id, original.id)
        return invoice

    return atomic(_op)


def get_purchase(invoice_id: str) -> PurchaseInvoice:
    return _purchases.require(invoice_id)


def list_purchases(invoice_type: str | None = None) -> list[PurchaseInvoice]:
    query = db.session.query(PurchaseInvoice)
    if invoice_type:
        query = query.filter(PurchaseInvoice.type == invoice_type)
    return query.order_by(PurchaseInvoice.timestamp.desc(), PurchaseInvoice.id.desc()).all()
