# Overview: FIFO lot consumption, exact restoration and lot receiving over a pending journal.

"""
Lot ledger rules (authoritative)

- A product's stock is the sum of its batch quantities; a batch never goes
  below zero through consume() or decrement_lot() without allow_negative.
- FIFO order: ascending by (expiry date, else acquisition time), then
  acquisition time, then lot number. Earliest-expiring stock leaves first.
- consume() is all-or-nothing: either the full quantity is deducted or
  InsufficientStock is raised and the journal is left untouched.
- restore() adds back the exact (batch_id, qty) pairs a consume() returned.
  Nothing is re-derived from current FIFO order.
- restore_reverse_order() is for returns: newest-consumed batch first.

Journal:
- Every mutation is recorded as a pending per-batch delta (plus pending new
  batches and re-prices). Reads see live rows + pending deltas, so an edit can
  "virtually restore" an old sale and then consume against the result
  without touching a row.
- flush() applies the journal to the session; the unit of work commits it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime

from ..extensions import db
from ..errors import InsufficientStock, LotNotFound, DuplicateLot, InvalidInput, EntityNotFound
from ..models import Product, Batch
from ..models.mixins import new_token
from ..time_utils import utcnow, start_of_day


logger = logging.getLogger(__name__)


@dataclass
class Consumption:
    product_id: str
    deductions: list[tuple[str, int]] = field(default_factory=list)
    unit_cost_average: float = 0.0

    @property
    def quantity(self) -> int:
        return sum(qty for _, qty in self.deductions)


def _positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInput(f"Quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise InvalidInput(f"Quantity must be positive, got {quantity}")
    return quantity


class LotLedger:
    """Journaled view over Batch rows for one unit of work."""

    def __init__(self):
        self._deltas: dict[str, int] = defaultdict(int)
        self._new_batches: dict[str, Batch] = {}
        self._unit_costs: dict[str, float] = {}
        self._expiry_dates: dict[str, date | None] = {}

    # ---- reads -------------------------------------------------------------

    def _batch(self, batch_id: str) -> Batch | None:
        if batch_id in self._new_batches:
            return self._new_batches[batch_id]
        return db.session.get(Batch, batch_id)

    def batches_for(self, product_id: str) -> list[Batch]:
        """Live + pending batches of a product in FIFO order."""
        rows = db.session.query(Batch).filter(Batch.product_id == product_id).all()
        rows.extend(b for b in self._new_batches.values() if b.product_id == product_id)
        return sorted(rows, key=self._fifo_key)

    def _fifo_key(self, batch: Batch):
        expiry = self._expiry_dates.get(batch.id, batch.expiry_date)
        primary = start_of_day(expiry) if expiry else batch.acquired_at
        return (primary, batch.acquired_at, batch.lot_number)

    def available(self, batch: Batch) -> int:
        return (batch.quantity or 0) + self._deltas.get(batch.id, 0)

    def unit_cost(self, batch: Batch) -> float:
        return self._unit_costs.get(batch.id, batch.unit_cost)

    def stock(self, product_id: str) -> int:
        return sum(max(self.available(b), 0) for b in self.batches_for(product_id))

    def find_lot(self, product_id: str, lot_number: str) -> Batch | None:
        for batch in self._new_batches.values():
            if batch.product_id == product_id and batch.lot_number == lot_number:
                return batch
        return (
            db.session.query(Batch)
            .filter(Batch.product_id == product_id, Batch.lot_number == lot_number)
            .first()
        )

    # ---- mutations -----------------------------------------------------------

    def consume(self, product_id: str, quantity: int) -> Consumption:
        """Deduct `quantity` in FIFO order; all-or-nothing."""
        quantity = _positive_quantity(quantity)
        batches = self.batches_for(product_id)
        on_hand = sum(max(self.available(b), 0) for b in batches)
        if on_hand < quantity:
            raise InsufficientStock(
                "Insufficient stock",
                details={"product_id": product_id, "requested_quantity": quantity, "on_hand": on_hand},
            )

        result = Consumption(product_id=product_id)
        remaining = quantity
        cost_total = 0.0
        for batch in batches:
            if remaining == 0:
                break
            take = min(max(self.available(batch), 0), remaining)
            if take == 0:
                continue
            self._deltas[batch.id] -= take
            result.deductions.append((batch.id, take))
            cost_total += take * self.unit_cost(batch)
            remaining -= take

        result.unit_cost_average = cost_total / quantity
        return result

    def restore(self, deductions) -> None:
        """Add back exactly the given (batch_id, qty) pairs."""
        for batch_id, qty in deductions:
            if self._batch(batch_id) is None:
                raise LotNotFound(f"Batch {batch_id} no longer exists", details={"batch_id": batch_id})
        for batch_id, qty in deductions:
            self._deltas[batch_id] += qty

    def restore_reverse_order(self, deductions, quantity: int) -> list[tuple[str, int]]:
        """
        Give back `quantity` units, newest-consumed batch first.

        Returns the (batch_id, qty) pairs actually restored, in restore order.
        """
        quantity = _positive_quantity(quantity)
        if sum(qty for _, qty in deductions) < quantity:
            raise InvalidInput(
                "Cannot restore more than was deducted",
                details={"requested_quantity": quantity},
            )
        restored: list[tuple[str, int]] = []
        remaining = quantity
        for batch_id, qty in reversed(list(deductions)):
            if remaining == 0:
                break
            take = min(qty, remaining)
            if take <= 0:
                continue
            restored.append((batch_id, take))
            remaining -= take
        self.restore(restored)
        return restored

    def receive(
        self,
        product_id: str,
        lot_number: str,
        quantity: int,
        unit_cost: float,
        expiry_date: date | None = None,
        *,
        acquired_at: datetime | None = None,
        require_new_lot: bool = False,
    ) -> Batch:
        """
        Add stock to a lot. An existing lot of the same number is topped up and
        re-priced; a new lot is created otherwise.
        """
        quantity = _positive_quantity(quantity)
        lot_number = (lot_number or "").strip()
        if not lot_number:
            raise InvalidInput("Lot number is required", details={"product_id": product_id})
        if unit_cost is None or unit_cost < 0:
            raise InvalidInput("Unit cost must be >= 0", details={"product_id": product_id, "lot_number": lot_number})
        if db.session.get(Product, product_id) is None:
            raise EntityNotFound(f"Product {product_id} not found", details={"id": product_id})

        batch = self.find_lot(product_id, lot_number)
        if batch is not None:
            if require_new_lot:
                raise DuplicateLot(
                    f"Lot {lot_number} already exists for this product",
                    details={"product_id": product_id, "lot_number": lot_number},
                )
            self._unit_costs[batch.id] = float(unit_cost)
            if expiry_date is not None:
                self._expiry_dates[batch.id] = expiry_date
        else:
            batch = Batch(
                id=new_token(),
                product_id=product_id,
                lot_number=lot_number,
                quantity=0,
                unit_cost=float(unit_cost),
                acquired_at=acquired_at or utcnow(),
                expiry_date=expiry_date,
            )
            self._new_batches[batch.id] = batch

        self._deltas[batch.id] += quantity
        return batch

    def decrement_lot(self, product_id: str, lot_number: str, quantity: int, *, allow_negative: bool = False) -> Batch:
        """Take stock out of a named lot (purchase edits and purchase returns)."""
        quantity = _positive_quantity(quantity)
        batch = self.find_lot(product_id, lot_number)
        if batch is None:
            raise LotNotFound(
                f"Lot {lot_number} not found for product {product_id}",
                details={"product_id": product_id, "lot_number": lot_number},
            )
        on_hand = self.available(batch)
        if not allow_negative and on_hand < quantity:
            raise InsufficientStock(
                f"Lot {lot_number} holds only {on_hand}",
                details={"product_id": product_id, "lot_number": lot_number,
                         "requested_quantity": quantity, "on_hand": on_hand},
            )
        self._deltas[batch.id] -= quantity
        return batch

    def flush(self) -> None:
        """Write the journal to the session. Called once, right before commit."""
        for batch in self._new_batches.values():
            db.session.add(batch)

        for batch_id, delta in self._deltas.items():
            batch = self._batch(batch_id)
            if batch is None:
                raise LotNotFound(f"Batch {batch_id} no longer exists", details={"batch_id": batch_id})
            batch.quantity = (batch.quantity or 0) + delta
            if batch.quantity < 0:
                logger.warning(
                    "Batch %s (product %s, lot %s) is negative after update: %s",
                    batch.id, batch.product_id, batch.lot_number, batch.quantity,
                )

        for batch_id, cost in self._unit_costs.items():
            self._batch(batch_id).unit_cost = cost
        for batch_id, expiry in self._expiry_dates.items():
            self._batch(batch_id).expiry_date = expiry

        self._deltas.clear()
        self._new_batches.clear()
        self._unit_costs.clear()
        self._expiry_dates.clear()
