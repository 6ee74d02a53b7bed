from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date, start_of_day
from .mixins import new_token


class Product(db.Model):
    """
    Product master data.

    Stock is never stored on the product: it is the sum of its batch
    quantities. Batches are deleted together with their product.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    manufacturer = db.Column(db.String(255), nullable=True)

    # List price in base currency
    sale_price = db.Column(db.Float, nullable=False, default=0.0)
    items_per_package = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    batches = db.relationship(
        "Batch",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    @property
    def total_stock(self) -> int:
        return sum(b.quantity for b in self.batches)

    def to_dict(self, include_batches: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "manufacturer": self.manufacturer,
            "sale_price": self.sale_price,
            "items_per_package": self.items_per_package,
            "total_stock": self.total_stock,
            "created_at": to_utc_z(self.created_at),
        }
        if include_batches:
            data["batches"] = [b.to_dict() for b in sorted(self.batches, key=lambda b: b.fifo_key)]
        return data


class Batch(db.Model):
    """
    One lot of a product: quantity on hand, base-currency unit cost, acquisition
    date and optional expiry. Lot numbers are unique per product.
    """
    __tablename__ = "batches"
    __table_args__ = (
        db.UniqueConstraint("product_id", "lot_number", name="uq_batches_product_lot"),
        db.Index("ix_batches_product_expiry", "product_id", "expiry_date"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    product_id = db.Column(
        db.String(32), db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lot_number = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Float, nullable=False, default=0.0)
    acquired_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)

    product = db.relationship("Product", back_populates="batches")

    @property
    def fifo_key(self):
        # Expiring soonest first; batches without expiry fall back to acquisition time.
        primary = start_of_day(self.expiry_date) if self.expiry_date else self.acquired_at
        return (primary, self.acquired_at, self.lot_number)

    def __repr__(self) -> str:
        return f"<Batch id={self.id} lot={self.lot_number!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "lot_number": self.lot_number,
            "quantity": self.quantity,
            "unit_cost": self.unit_cost,
            "acquired_at": to_utc_z(self.acquired_at),
            "expiry_date": to_iso_date(self.expiry_date),
        }


class Service(db.Model):
    """Non-stock item sold at the till (repairs, delivery, ...)."""
    __tablename__ = "services"

    id = db.Column(db.String(32), primary_key=True, default=new_token)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "price": self.price}
