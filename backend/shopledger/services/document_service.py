# Overview: Human-readable sequential invoice ids, scoped per invoice kind.

from __future__ import annotations

import re

from ..extensions import db
from ..models import SaleInvoice, PurchaseInvoice, InTransitInvoice


PREFIX_SALE = "F"
PREFIX_SALE_RETURN = "R"
PREFIX_PURCHASE = "P"
PREFIX_PURCHASE_RETURN = "PR"
PREFIX_IN_TRANSIT = "IT"

# Kinds that share a table are told apart by the exact prefix match below.
_PREFIX_MODELS = {
    PREFIX_SALE: SaleInvoice,
    PREFIX_SALE_RETURN: SaleInvoice,
    PREFIX_PURCHASE: PurchaseInvoice,
    PREFIX_PURCHASE_RETURN: PurchaseInvoice,
    PREFIX_IN_TRANSIT: InTransitInvoice,
}


def next_sequence_id(prefix: str, existing_ids) -> str:
    """prefix + (max numeric suffix among ids with exactly this prefix + 1)."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    for value in existing_ids:
        match = pattern.match(value or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1}"


def next_invoice_id(prefix: str) -> str:
    """
    Allocate the next id for an invoice kind.

    Runs inside the caller's unit of work; the single-writer lock taken by
    begin_writer() keeps two tills from drawing the same number.
    """
    model = _PREFIX_MODELS[prefix]
    ids = [row[0] for row in db.session.query(model.id).filter(model.id.like(f"{prefix}%"))]
    return next_sequence_id(prefix, ids)
