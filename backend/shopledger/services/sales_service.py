# Overview: Point-of-sale checkout, sale edits and sale returns over the lot ledger and balance book.

"""
Sale processing rules (authoritative)

Checkout:
- Cart lines are products (consume stock FIFO) or services (no stock).
- Prices are in the invoice currency. display price = final_price if set,
  else list price. Discounts are expressed by lowering final_price.
- subtotal = total = sum(display price * qty); total_discount stays 0,
  the discount lives in the lowered line price.
- A customer sale is on credit: customer balance += total. When an
  intermediary supplier brokers the sale, that supplier's balance is reduced
  by the total instead (the supplier now owes the shop).

Edit:
- Idle -> Editing(invoice) -> Idle. One sale in edit at a time.
- complete_sale() while editing first restores the old invoice's recorded
  deductions in the journal (no row touched), then consumes the new cart,
  then rewrites the invoice-linked transaction rows in place.
- Sales that already have returns cannot be edited.

Returns:
- Always a new R-invoice referencing the original; the original is never
  changed. Quantity returned per line is bounded by what was sold minus
  what earlier returns already gave back. Stock comes back newest-consumed
  batch first.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from ..extensions import db
from ..errors import EmptyCart, EditNotAllowed, ExcessiveReturnQuantity, EntityNotFound, InvalidInput
from ..models import (
    Product,
    Service,
    Customer,
    Supplier,
    SaleInvoice,
    SaleInvoiceLine,
    SaleLineDeduction,
)
from ..models.invoices import SALE_TYPE_SALE, SALE_TYPE_RETURN, LINE_TYPE_PRODUCT, LINE_TYPE_SERVICE
from ..time_utils import utcnow
from ..validation import coerce_int, coerce_amount, require_str
from .concurrency import atomic
from .entity_store import EntityStore
from .document_service import next_invoice_id, PREFIX_SALE, PREFIX_SALE_RETURN
from .currency_service import effective_rate, from_base, to_base
from .settings_service import get_currency_settings
from .lot_ledger import LotLedger
from .balance_book import Delta, apply_delta, post_invoice_delta, find_invoice_transaction
from .edit_state import EDIT_KIND_SALE, current_edit, open_edit, close_edit


logger = logging.getLogger(__name__)

_products = EntityStore(Product)
_services = EntityStore(Service)
_customers = EntityStore(Customer)
_suppliers = EntityStore(Supplier)
_sales = EntityStore(SaleInvoice, "Sale invoice")


def _parse_cart(cart, settings, currency: str, rate: float) -> list[dict]:
    parsed = []
    for raw in cart:
        if not isinstance(raw, dict):
            raise InvalidInput("Cart lines must be objects")
        item_type = raw.get("item_type") or LINE_TYPE_PRODUCT
        if item_type not in (LINE_TYPE_PRODUCT, LINE_TYPE_SERVICE):
            raise InvalidInput(f"Unknown cart line type {item_type!r}")
        item_id = require_str(raw.get("item_id"), "item_id")
        quantity = coerce_int(raw.get("quantity"), "quantity", minimum=1)

        if item_type == LINE_TYPE_PRODUCT:
            item = _products.require(item_id)
            base_price = item.sale_price
        else:
            item = _services.require(item_id)
            base_price = item.price

        if raw.get("price") in (None, ""):
            list_price = from_base(base_price or 0.0, currency, rate, settings)
        else:
            list_price = coerce_amount(raw.get("price"), "price")
        final_price = None
        if raw.get("final_price") not in (None, ""):
            final_price = coerce_amount(raw.get("final_price"), "final_price")

        parsed.append({
            "item_type": item_type,
            "item_id": item_id,
            "name": item.name,
            "quantity": quantity,
            "list_price": list_price,
            "final_price": final_price,
        })
    return parsed


def _ensure_editable(invoice: SaleInvoice) -> None:
    if invoice.type != SALE_TYPE_SALE:
        raise EditNotAllowed("Only sale invoices can be edited", details={"invoice_id": invoice.id})
    has_returns = (
        db.session.query(SaleInvoice.id)
        .filter(SaleInvoice.original_invoice_id == invoice.id)
        .first()
    )
    if has_returns is not None:
        raise EditNotAllowed(
            "Sale has returns and can no longer be edited",
            details={"invoice_id": invoice.id},
        )


def _receivable(customer, supplier, currency: str, total: float, total_base: float):
    """(party, delta, txn type) carrying the sale's receivable, or None for a cash sale."""
    if supplier is not None:
        return supplier, Delta(currency, -total, -total_base), "intermediary_sale"
    if customer is not None:
        return customer, Delta(currency, total, total_base), "sale"
    return None


def _release(party, invoice: SaleInvoice) -> None:
    """Zero a former party's share of an edited invoice."""
    txn = find_invoice_transaction(party, invoice.id)
    if txn is not None:
        post_invoice_delta(
            party, Delta.zero(txn.currency),
            invoice_id=invoice.id, type=txn.type, exchange_rate=txn.exchange_rate,
        )


def cart_from_invoice(invoice: SaleInvoice) -> list[dict]:
    return [
        {
            "item_type": line.item_type,
            "item_id": line.item_id,
            "name": line.name,
            "quantity": line.quantity,
            "price": line.list_price,
            "final_price": line.final_price,
        }
        for line in invoice.lines
    ]


def begin_edit(invoice_id: str) -> tuple[SaleInvoice, list[dict]]:
    """Open a sale for editing; returns the invoice and its lines as a cart."""
    def _op():
        invoice = _sales.require(invoice_id)
        _ensure_editable(invoice)
        open_edit(EDIT_KIND_SALE, invoice.id)
        return invoice

    invoice = atomic(_op)
    return invoice, cart_from_invoice(invoice)


def cancel_edit() -> bool:
    """Discard the edit draft. Stock and balances are untouched."""
    return atomic(lambda: close_edit(EDIT_KIND_SALE))


def editing_invoice_id() -> str | None:
    pointer = current_edit(EDIT_KIND_SALE)
    return pointer.invoice_id if pointer else None


def complete_sale(
    cart,
    *,
    cashier: str | None = None,
    customer_id: str | None = None,
    currency: str | None = None,
    exchange_rate=None,
    intermediary_supplier_id: str | None = None,
) -> SaleInvoice:
    """
    Check out a cart, or replace the invoice currently open for edit.

    Nothing is written unless every line validates and every product line
    can be funded from stock.
    """
    def _op():
        if not cart:
            raise EmptyCart("Cart is empty")

        settings = get_currency_settings()
        code = currency or settings.base_currency
        rate = effective_rate(code, exchange_rate, settings)
        lines = _parse_cart(cart, settings, code, rate)

        customer = _customers.require(customer_id) if customer_id else None
        supplier = _suppliers.require(intermediary_supplier_id) if intermediary_supplier_id else None

        ledger = LotLedger()
        pointer = current_edit(EDIT_KIND_SALE)
        invoice = None
        if pointer is not None:
            invoice = _sales.require(pointer.invoice_id)
            _ensure_editable(invoice)
            # Virtual restore: stock "as if" the old sale never happened.
            for old_line in invoice.lines:
                if old_line.item_type == LINE_TYPE_PRODUCT:
                    ledger.restore(old_line.deduction_pairs())

        for line in lines:
            if line["item_type"] == LINE_TYPE_PRODUCT:
                line["consumption"] = ledger.consume(line["item_id"], line["quantity"])

        total = sum(
            (line["final_price"] if line["final_price"] is not None else line["list_price"]) * line["quantity"]
            for line in lines
        )
        total_base = to_base(total, code, rate, settings)
        cost_of_goods = sum(
            line["consumption"].unit_cost_average * line["quantity"]
            for line in lines if "consumption" in line
        )

        now = utcnow()
        former_parties = []
        if invoice is None:
            invoice = SaleInvoice(id=next_invoice_id(PREFIX_SALE), type=SALE_TYPE_SALE, timestamp=now)
            db.session.add(invoice)
        else:
            former_parties = [
                p for p in (
                    _suppliers.get(invoice.intermediary_supplier_id),
                    _customers.get(invoice.customer_id),
                ) if p is not None
            ]
            invoice.lines.clear()
            invoice.edited_at = now

        invoice.customer_id = customer.id if customer else None
        invoice.intermediary_supplier_id = supplier.id if supplier else None
        invoice.cashier = cashier
        invoice.currency = code
        invoice.exchange_rate = rate
        invoice.subtotal = total
        invoice.total_discount = 0.0
        invoice.total_amount = total
        invoice.total_amount_base = total_base
        invoice.cost_of_goods_base = cost_of_goods

        for line_no, line in enumerate(lines, start=1):
            consumption = line.get("consumption")
            row = SaleInvoiceLine(
                line_no=line_no,
                item_type=line["item_type"],
                item_id=line["item_id"],
                name=line["name"],
                quantity=line["quantity"],
                list_price=line["list_price"],
                final_price=line["final_price"],
                unit_cost_base=consumption.unit_cost_average if consumption else 0.0,
            )
            if consumption:
                for seq, (batch_id, qty) in enumerate(consumption.deductions, start=1):
                    row.deductions.append(SaleLineDeduction(seq=seq, batch_id=batch_id, quantity=qty))
            invoice.lines.append(row)

        receivable = _receivable(customer, supplier, code, total, total_base)
        for party in former_parties:
            if receivable is None or party is not receivable[0]:
                _release(party, invoice)
        if receivable is not None:
            party, delta, txn_type = receivable
            post_invoice_delta(
                party, delta,
                invoice_id=invoice.id, type=txn_type, exchange_rate=rate,
                description=f"Sale {invoice.id}",
            )

        ledger.flush()
        if pointer is not None:
            close_edit(EDIT_KIND_SALE)
        logger.info("Sale %s committed (%s lines, %.2f %s)", invoice.id, len(lines), total, code)
        return invoice

    return atomic(_op)


def _returned_by_batch(line: SaleInvoiceLine) -> tuple[int, dict[str, int]]:
    """Quantity earlier returns took back from a sale line, total and per batch."""
    total = 0
    per_batch: dict[str, int] = defaultdict(int)
    rows = db.session.query(SaleInvoiceLine).filter(SaleInvoiceLine.source_line_id == line.id).all()
    for row in rows:
        total += row.quantity
        for batch_id, qty in row.deduction_pairs():
            per_batch[batch_id] += qty
    return total, per_batch


def _find_original_line(invoice: SaleInvoice, request: dict) -> SaleInvoiceLine:
    line_id = request.get("line_id")
    if line_id is not None:
        line_id = coerce_int(line_id, "line_id")
    item_id = request.get("item_id")
    for line in invoice.lines:
        if line_id is not None and line.id == line_id:
            return line
        if line_id is None and line.item_id == item_id:
            return line
    raise EntityNotFound(
        "Item is not on the original invoice",
        details={"invoice_id": invoice.id, "item_id": item_id, "line_id": line_id},
    )


def add_return(original_invoice_id: str, lines, cashier: str | None = None) -> SaleInvoice:
    """Give back part of a sale as a new R-invoice."""
    def _op():
        original = _sales.require(original_invoice_id)
        if original.type != SALE_TYPE_SALE:
            raise InvalidInput("Returns can only reference sale invoices", details={"invoice_id": original.id})
        if not lines:
            raise EmptyCart("No return lines given")

        settings = get_currency_settings()
        ledger = LotLedger()

        # Running totals so two requests against one line in the same call add up.
        returned_qty: dict[int, int] = {}
        returned_batches: dict[int, dict[str, int]] = {}
        return_rows = []
        total = 0.0
        cost = 0.0

        for request in lines:
            if not isinstance(request, dict):
                raise InvalidInput("Return lines must be objects")
            quantity = coerce_int(request.get("quantity"), "quantity", minimum=1)
            line = _find_original_line(original, request)

            if line.id not in returned_qty:
                returned_qty[line.id], returned_batches[line.id] = _returned_by_batch(line)
            available = line.quantity - returned_qty[line.id]
            if quantity > available:
                raise ExcessiveReturnQuantity(
                    "Return quantity exceeds quantity sold",
                    details={
                        "item_id": line.item_id,
                        "sold_quantity": line.quantity,
                        "already_returned": returned_qty[line.id],
                        "requested_quantity": quantity,
                    },
                )

            restored = []
            if line.item_type == LINE_TYPE_PRODUCT:
                already = returned_batches[line.id]
                remaining = [
                    (batch_id, qty - already.get(batch_id, 0))
                    for batch_id, qty in line.deduction_pairs()
                    if qty - already.get(batch_id, 0) > 0
                ]
                restored = ledger.restore_reverse_order(remaining, quantity)
                for batch_id, qty in restored:
                    already[batch_id] = already.get(batch_id, 0) + qty

            returned_qty[line.id] += quantity
            total += line.display_price * quantity
            cost += line.unit_cost_base * quantity
            return_rows.append((line, quantity, restored))

        invoice = SaleInvoice(
            id=next_invoice_id(PREFIX_SALE_RETURN),
            type=SALE_TYPE_RETURN,
            original_invoice_id=original.id,
            customer_id=original.customer_id,
            intermediary_supplier_id=original.intermediary_supplier_id,
            cashier=cashier,
            currency=original.currency,
            exchange_rate=original.exchange_rate,
            subtotal=total,
            total_discount=0.0,
            total_amount=total,
            total_amount_base=to_base(total, original.currency, original.exchange_rate, settings),
            cost_of_goods_base=cost,
            timestamp=utcnow(),
        )
        for line_no, (line, quantity, restored) in enumerate(return_rows, start=1):
            row = SaleInvoiceLine(
                line_no=line_no,
                item_type=line.item_type,
                item_id=line.item_id,
                name=line.name,
                quantity=quantity,
                list_price=line.display_price,
                final_price=None,
                unit_cost_base=line.unit_cost_base,
                source_line_id=line.id,
            )
            for seq, (batch_id, qty) in enumerate(restored, start=1):
                row.deductions.append(SaleLineDeduction(seq=seq, batch_id=batch_id, quantity=qty))
            invoice.lines.append(row)
        db.session.add(invoice)

        supplier = _suppliers.get(original.intermediary_supplier_id)
        customer = _customers.get(original.customer_id)
        receivable = _receivable(customer, supplier, invoice.currency, total, invoice.total_amount_base)
        if receivable is not None:
            party, delta, _ = receivable
            apply_delta(
                party, delta.negated(),
                type="sale_return", exchange_rate=invoice.exchange_rate,
                description=f"Return {invoice.id} of sale {original.id}", invoice_id=invoice.id,
            )

        ledger.flush()
        logger.info("Sale return %s committed against %s (%.2f %s)", invoice.id, original.id, total, invoice.currency)
        return invoice

    return atomic(_op)


def get_sale(invoice_id: str) -> SaleInvoice:
    return _sales.require(invoice_id)


def list_sales(invoice_type: str | None = None) -> list[SaleInvoice]:
    query = db.session.query(SaleInvoice)
    if invoice_type:
        query = query.filter(SaleInvoice.type == invoice_type)
    return query.order_by(SaleInvoice.timestamp.desc(), SaleInvoice.id.desc()).all()
