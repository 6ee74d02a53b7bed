# Overview: Flask API routes for store settings and the currency table.

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services import settings_service
from ..services.edit_state import current_edit, EDIT_KIND_SALE, EDIT_KIND_PURCHASE
from .common import json_error, payload_or_empty


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _editing() -> dict:
    editing = {}
    for kind in (EDIT_KIND_SALE, EDIT_KIND_PURCHASE):
        pointer = current_edit(kind)
        editing[kind] = pointer.invoice_id if pointer else None
    return editing


@settings_bp.get("")
def get_settings():
    try:
        row = settings_service.get_store_setting()
        if row is not None:
            data = row.to_dict()
        else:
            currency = settings_service.get_currency_settings()
            data = {
                "store_name": None,
                "base_currency": currency.base_currency,
                "currency_configs": currency.configs,
                "low_stock_threshold": 10,
                "expiry_threshold_months": 3,
                "updated_at": None,
            }
        data["base_currency_locked"] = settings_service.ledger_has_data()
        data["editing"] = _editing()
        return jsonify({"settings": data})
    except Exception as e:
        return json_error(e, "load settings")


@settings_bp.put("")
def update_settings():
    """
    Body: {store_name?, base_currency?, currency_configs?, low_stock_threshold?, expiry_threshold_months?}

    Changing base_currency after the first invoice or transaction returns 409.
    """
    try:
        row = settings_service.update_settings(payload_or_empty(request))
        return jsonify({"settings": row.to_dict()})
    except Exception as e:
        return json_error(e, "update settings")
