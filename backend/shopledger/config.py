# backend/shopledger/config.py
from __future__ import annotations
import os


# Shipped currency table. "multiply": base = foreign * rate, "divide": base = foreign / rate.
DEFAULT_CURRENCY_CONFIGS = {
    "AFN": {"code": "AFN", "name": "Afghani", "symbol": "AFN", "method": "multiply"},
    "USD": {"code": "USD", "name": "Dollar", "symbol": "$", "method": "divide"},
    "IRT": {"code": "IRT", "name": "Toman", "symbol": "IRT", "method": "multiply"},
}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BASE_CURRENCY = os.environ.get("BASE_CURRENCY", "AFN")
    CURRENCY_CONFIGS = DEFAULT_CURRENCY_CONFIGS

    # When True, a missing exchange rate for a non-base currency falls back to 1
    # instead of raising InvalidRate. Kept only for replaying legacy data.
    LEGACY_IMPLICIT_RATE = os.environ.get("LEGACY_IMPLICIT_RATE", "0") == "1"
