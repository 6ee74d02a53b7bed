from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreSetting(db.Model):
    """
    Singleton row (id="current") holding store-level configuration.

    Absent row means Config defaults apply.
    """
    __tablename__ = "store_settings"

    id = db.Column(db.String(16), primary_key=True, default="current")
    store_name = db.Column(db.String(255), nullable=True)
    base_currency = db.Column(db.String(8), nullable=False)
    currency_configs = db.Column(db.JSON, nullable=False)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    expiry_threshold_months = db.Column(db.Integer, nullable=False, default=3)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "store_name": self.store_name,
            "base_currency": self.base_currency,
            "currency_configs": self.currency_configs,
            "low_stock_threshold": self.low_stock_threshold,
            "expiry_threshold_months": self.expiry_threshold_months,
            "updated_at": to_utc_z(self.updated_at),
        }


class EditPointer(db.Model):
    """The single invoice of a kind ("sale" / "purchase") currently open for edit."""
    __tablename__ = "edit_pointers"

    kind = db.Column(db.String(16), primary_key=True)
    invoice_id = db.Column(db.String(16), nullable=False)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "invoice_id": self.invoice_id, "opened_at": to_utc_z(self.opened_at)}
