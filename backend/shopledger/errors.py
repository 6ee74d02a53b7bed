"""
Ledger error taxonomy.

Every error here is a local validation failure raised before any row is
touched. Routes map them to JSON via ``http_status``.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger operation errors."""

    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "type": type(self).__name__, "details": self.details}


class InvalidInput(LedgerError):
    """Malformed or out-of-range input (negative quantity, bad date, ...)."""


class EntityNotFound(LedgerError):
    http_status = 404


class InsufficientStock(LedgerError):
    http_status = 409


class InvalidRate(LedgerError):
    pass


class UnknownCurrency(LedgerError):
    pass


class DuplicateLot(LedgerError):
    http_status = 409


class DuplicateLotNumber(DuplicateLot):
    """Lot number already used in the warehouse or another open shipment."""


class MissingLotNumber(LedgerError):
    pass


class ExcessiveReturnQuantity(LedgerError):
    pass


class LotNotFound(LedgerError):
    http_status = 404


class EmptyCart(LedgerError):
    pass


class LockedForDeletion(LedgerError):
    http_status = 409


class ConcurrentEditConflict(LedgerError):
    http_status = 409


class EditNotAllowed(LedgerError):
    http_status = 409


class ShipmentClosed(LedgerError):
    http_status = 409


class NonZeroBalance(LedgerError):
    http_status = 409


class InsufficientBalance(LedgerError):
    http_status = 409


class BaseCurrencyLocked(LedgerError):
    http_status = 409
