# Overview: Store settings and the read-only currency configuration handed to the ledger.

from __future__ import annotations

import copy

from flask import current_app

from ..extensions import db
from ..errors import BaseCurrencyLocked, InvalidInput
from ..models import (
    StoreSetting,
    SaleInvoice,
    PurchaseInvoice,
    InTransitInvoice,
    CustomerTransaction,
    SupplierTransaction,
    PayrollTransaction,
    DepositTransaction,
    Expense,
)
from ..models.mixins import SUPPORTED_CURRENCIES
from .currency_service import CurrencySettings, METHODS
from .concurrency import atomic


SETTINGS_ID = "current"

# Rows whose existence freezes the base currency.
_LEDGER_MODELS = (
    SaleInvoice,
    PurchaseInvoice,
    InTransitInvoice,
    CustomerTransaction,
    SupplierTransaction,
    PayrollTransaction,
    DepositTransaction,
    Expense,
)


def get_store_setting() -> StoreSetting | None:
    return db.session.get(StoreSetting, SETTINGS_ID)


def get_currency_settings() -> CurrencySettings:
    """Current base currency + currency table; the row wins over app config."""
    row = get_store_setting()
    if row is not None:
        base = row.base_currency
        configs = row.currency_configs
    else:
        base = current_app.config["BASE_CURRENCY"]
        configs = current_app.config["CURRENCY_CONFIGS"]
    return CurrencySettings(
        base_currency=base,
        configs=copy.deepcopy(configs),
        legacy_implicit_rate=bool(current_app.config.get("LEGACY_IMPLICIT_RATE", False)),
    )


def ledger_has_data() -> bool:
    for model in _LEDGER_MODELS:
        if db.session.query(model.id).first() is not None:
            return True
    return False


def _validate_currency_configs(configs) -> dict:
    if not isinstance(configs, dict) or not configs:
        raise InvalidInput("currency_configs must be a non-empty object")
    cleaned = {}
    for code, cfg in configs.items():
        if code not in SUPPORTED_CURRENCIES:
            raise InvalidInput(f"Unsupported currency {code}", details={"supported": list(SUPPORTED_CURRENCIES)})
        if not isinstance(cfg, dict):
            raise InvalidInput(f"Configuration for {code} must be an object")
        method = cfg.get("method", "multiply")
        if method not in METHODS:
            raise InvalidInput(f"Unsupported conversion method {method!r} for {code}")
        cleaned[code] = {
            "code": code,
            "name": cfg.get("name") or code,
            "symbol": cfg.get("symbol") or code,
            "method": method,
        }
    return cleaned


def _ensure_row() -> StoreSetting:
    row = get_store_setting()
    if row is None:
        row = StoreSetting(
            id=SETTINGS_ID,
            base_currency=current_app.config["BASE_CURRENCY"],
            currency_configs=copy.deepcopy(current_app.config["CURRENCY_CONFIGS"]),
        )
        db.session.add(row)
    return row


def seed_settings() -> StoreSetting:
    """Write the configured defaults if no settings row exists yet."""
    return atomic(_ensure_row)


def update_settings(payload: dict) -> StoreSetting:
    """
    Update store settings.

    The base currency can only change while the ledger is empty; every
    invoice and transaction records amounts relative to it.
    """
    def _op():
        row = _ensure_row()

        configs = row.currency_configs
        if "currency_configs" in payload:
            configs = _validate_currency_configs(payload["currency_configs"])

        base = payload.get("base_currency", row.base_currency)
        if base not in configs:
            raise InvalidInput(f"Base currency {base} is not in the currency table")

        if base != row.base_currency and ledger_has_data():
            raise BaseCurrencyLocked(
                "Base currency cannot change once invoices or transactions exist",
                details={"base_currency": row.base_currency, "requested": base},
            )
        row.base_currency = base
        row.currency_configs = configs

        if "store_name" in payload:
            row.store_name = payload.get("store_name") or None
        for key in ("low_stock_threshold", "expiry_threshold_months"):
            if key in payload:
                try:
                    value = int(payload[key])
                except (TypeError, ValueError):
                    raise InvalidInput(f"{key} must be an integer")
                if value < 0:
                    raise InvalidInput(f"{key} must be >= 0")
                setattr(row, key, value)
        return row

    return atomic(_op)
