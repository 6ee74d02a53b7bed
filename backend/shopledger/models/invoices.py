from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


SALE_TYPE_SALE = "sale"
SALE_TYPE_RETURN = "return"
PURCHASE_TYPE_PURCHASE = "purchase"
PURCHASE_TYPE_RETURN = "return"
IN_TRANSIT_TYPE = "in_transit"

LINE_TYPE_PRODUCT = "product"
LINE_TYPE_SERVICE = "service"

SHIPMENT_STATUS_ACTIVE = "active"
SHIPMENT_STATUS_CLOSED = "closed"


class SaleInvoice(db.Model):
    """
    Sale (F-prefixed) or sale return (R-prefixed).

    Amounts are in the invoice currency except the *_base columns.
    Returns reference the original invoice and never modify it.
    """
    __tablename__ = "sale_invoices"
    __table_args__ = (
        db.Index("ix_sale_invoices_type_timestamp", "type", "timestamp"),
    )

    id = db.Column(db.String(16), primary_key=True)
    type = db.Column(db.String(16), nullable=False, default=SALE_TYPE_SALE, index=True)
    original_invoice_id = db.Column(
        db.String(16), db.ForeignKey("sale_invoices.id"), nullable=True, index=True
    )

    customer_id = db.Column(db.String(32), db.ForeignKey("customers.id"), nullable=True, index=True)
    intermediary_supplier_id = db.Column(
        db.String(32), db.ForeignKey("suppliers.id"), nullable=True, index=True
    )
    cashier = db.Column(db.String(120), nullable=True)

    currency = db.Column(db.String(8), nullable=False)
    exchange_rate = db.Column(db.Float, nullable=False, default=1.0)

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    total_discount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount_base = db.Column(db.Float, nullable=False, default=0.0)
    cost_of_goods_base = db.Column(db.Float, nullable=False, default=0.0)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "SaleInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="SaleInvoiceLine.line_no",
    )
    original_invoice = db.relationship("SaleInvoice", remote_side=[id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "original_invoice_id": self.original_invoice_id,
            "customer_id": self.customer_id,
            "intermediary_supplier_id": self.intermediary_supplier_id,
            "cashier": self.cashier,
            "currency": self.currency,
            "exchange_rate": self.exchange_rate,
            "subtotal": self.subtotal,
            "total_discount": self.total_discount,
            "total_amount": self.total_amount,
            "total_amount_base": self.total_amount_base,
            "cost_of_goods_base": self.cost_of_goods_base,
            "timestamp": to_utc_z(self.timestamp),
            "edited_at": to_utc_z(self.edited_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class SaleInvoiceLine(db.Model):
    __tablename__ = "sale_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.String(16), db.ForeignKey("sale_invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no = db.Column(db.Integer, nullable=False)

    item_type = db.Column(db.String(16), nullable=False, default=LINE_TYPE_PRODUCT)
    # Product id for product lines, service id for service lines
    item_id = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    list_price = db.Column(db.Float, nullable=False, default=0.0)
    # Operator override; discounts are expressed by lowering this price
    final_price = db.Column(db.Float, nullable=True)

    # Quantity-weighted cost of the batches that funded this line (base currency)
    unit_cost_base = db.Column(db.Float, nullable=False, default=0.0)

    # Return lines point at the sale line they give back
    source_line_id = db.Column(db.Integer, db.ForeignKey("sale_invoice_lines.id"), nullable=True, index=True)

    invoice = db.relationship("SaleInvoice", back_populates="lines")
    deductions = db.relationship(
        "SaleLineDeduction",
        back_populates="line",
        cascade="all, delete-orphan",
        order_by="SaleLineDeduction.seq",
    )

    @property
    def display_price(self) -> float:
        return self.final_price if self.final_price is not None else self.list_price

    @property
    def line_total(self) -> float:
        return self.display_price * self.quantity

    def deduction_pairs(self) -> list[tuple[str, int]]:
        return [(d.batch_id, d.quantity) for d in self.deductions]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_no": self.line_no,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "list_price": self.list_price,
            "final_price": self.final_price,
            "display_price": self.display_price,
            "line_total": self.line_total,
            "unit_cost_base": self.unit_cost_base,
            "source_line_id": self.source_line_id,
            "batch_deductions": [d.to_dict() for d in self.deductions],
        }


class SaleLineDeduction(db.Model):
    """
    (batch, quantity) pair that funded a sale line, in consumption order.

    For return lines the rows record what was put back. batch_id is kept as a
    plain value so history survives product deletion.
    """
    __tablename__ = "sale_line_deductions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    line_id = db.Column(
        db.Integer, db.ForeignKey("sale_invoice_lines.id", ondelete="CASCADE"), nullable=False, index=True
    )
    seq = db.Column(db.Integer, nullable=False)
    batch_id = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    line = db.relationship("SaleInvoiceLine", back_populates="deductions")

    def to_dict(self) -> dict:
        return {"batch_id": self.batch_id, "quantity": self.quantity}


class PurchaseInvoice(db.Model):
    """Purchase (P-prefixed) or purchase return (PR-prefixed)."""
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        db.Index("ix_purchase_invoices_supplier_timestamp", "supplier_id", "timestamp"),
    )

    id = db.Column(db.String(16), primary_key=True)
    type = db.Column(db.String(16), nullable=False, default=PURCHASE_TYPE_PURCHASE, index=True)
    original_invoice_id = db.Column(
        db.String(16), db.ForeignKey("purchase_invoices.id"), nullable=True, index=True
    )
    supplier_id = db.Column(db.String(32), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    # Supplier's own reference number
    invoice_number = db.Column(db.String(64), nullable=True)

    currency = db.Column(db.String(8), nullable=False)
    exchange_rate = db.Column(db.Float, nullable=False, default=1.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount_base = db.Column(db.Float, nullable=False, default=0.0)

    # Freight/customs in invoice currency, folded into lot unit costs
    additional_cost = db.Column(db.Float, nullable=False, default=0.0)
    cost_description = db.Column(db.String(255), nullable=True)

    source_in_transit_id = db.Column(
        db.String(16), db.ForeignKey("in_transit_invoices.id"), nullable=True, index=True
    )

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "PurchaseInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="PurchaseInvoiceLine.line_no",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "original_invoice_id": self.original_invoice_id,
            "supplier_id": self.supplier_id,
            "invoice_number": self.invoice_number,
            "currency": self.currency,
            "exchange_rate": self.exchange_rate,
            "total_amount": self.total_amount,
            "total_amount_base": self.total_amount_base,
            "additional_cost": self.additional_cost,
            "cost_description": self.cost_description,
            "source_in_transit_id": self.source_in_transit_id,
            "timestamp": to_utc_z(self.timestamp),
            "edited_at": to_utc_z(self.edited_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class PurchaseInvoiceLine(db.Model):
    __tablename__ = "purchase_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.String(16), db.ForeignKey("purchase_invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.String(32), nullable=False, index=True)
    lot_number = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    # Invoice-currency unit price as billed
    unit_price = db.Column(db.Float, nullable=False)
    # Base-currency landed cost (converted price + allocated surcharge)
    unit_cost_base = db.Column(db.Float, nullable=False, default=0.0)
    expiry_date = db.Column(db.Date, nullable=True)

    invoice = db.relationship("PurchaseInvoice", back_populates="lines")

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_no": self.line_no,
            "product_id": self.product_id,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "unit_cost_base": self.unit_cost_base,
            "expiry_date": to_iso_date(self.expiry_date),
            "line_total": self.line_total,
        }


class InTransitInvoice(db.Model):
    """
    Purchase order tracked through factory, road and warehouse stages.

    Goods reaching the warehouse become ordinary purchase invoices that point
    back here through source_in_transit_id.
    """
    __tablename__ = "in_transit_invoices"

    id = db.Column(db.String(16), primary_key=True)
    type = db.Column(db.String(16), nullable=False, default=IN_TRANSIT_TYPE)
    supplier_id = db.Column(db.String(32), db.ForeignKey("suppliers.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=True)

    currency = db.Column(db.String(8), nullable=False)
    exchange_rate = db.Column(db.Float, nullable=False, default=1.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount_base = db.Column(db.Float, nullable=False, default=0.0)
    # Prepayments made against this shipment, invoice currency
    paid_amount = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(16), nullable=False, default=SHIPMENT_STATUS_ACTIVE, index=True)
    # True when archived with goods still at factory or on the road
    remainder_cancelled = db.Column(db.Boolean, nullable=False, default=False)
    expected_arrival_date = db.Column(db.Date, nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "InTransitLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InTransitLine.line_no",
    )

    @property
    def is_open(self) -> bool:
        return self.status == SHIPMENT_STATUS_ACTIVE

    def line_for(self, product_id: str):
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "supplier_id": self.supplier_id,
            "invoice_number": self.invoice_number,
            "currency": self.currency,
            "exchange_rate": self.exchange_rate,
            "total_amount": self.total_amount,
            "total_amount_base": self.total_amount_base,
            "paid_amount": self.paid_amount,
            "status": self.status,
            "remainder_cancelled": self.remainder_cancelled,
            "expected_arrival_date": to_iso_date(self.expected_arrival_date),
            "timestamp": to_utc_z(self.timestamp),
            "closed_at": to_utc_z(self.closed_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class InTransitLine(db.Model):
    """Invariant: at_factory_qty + in_transit_qty + received_qty == quantity."""
    __tablename__ = "in_transit_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "product_id", name="uq_in_transit_lines_invoice_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.String(16), db.ForeignKey("in_transit_invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_no = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.String(32), nullable=False, index=True)
    lot_number = db.Column(db.String(64), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)

    at_factory_qty = db.Column(db.Integer, nullable=False, default=0)
    in_transit_qty = db.Column(db.Integer, nullable=False, default=0)
    received_qty = db.Column(db.Integer, nullable=False, default=0)

    invoice = db.relationship("InTransitInvoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_no": self.line_no,
            "product_id": self.product_id,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "expiry_date": to_iso_date(self.expiry_date),
            "at_factory_qty": self.at_factory_qty,
            "in_transit_qty": self.in_transit_qty,
            "received_qty": self.received_qty,
        }
