# Overview: Shared JSON error translation for the ledger blueprints.

from __future__ import annotations

from flask import current_app, jsonify

from ..errors import LedgerError


def json_error(exc: Exception, action: str):
    """LedgerError -> its status + details; anything else is logged and returned as 500."""
    if isinstance(exc, LedgerError):
        return jsonify(exc.to_dict()), exc.http_status
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def payload_or_empty(request) -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
