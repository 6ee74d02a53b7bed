# Overview: The single "currently being edited" invoice pointer per invoice kind.

from __future__ import annotations

from ..extensions import db
from ..errors import ConcurrentEditConflict
from ..models import EditPointer
from ..time_utils import utcnow


EDIT_KIND_SALE = "sale"
EDIT_KIND_PURCHASE = "purchase"


def current_edit(kind: str) -> EditPointer | None:
    return db.session.get(EditPointer, kind)


def open_edit(kind: str, invoice_id: str) -> EditPointer:
    """
    Mark `invoice_id` as the one invoice of `kind` under edit.

    Re-opening the same invoice is a no-op; opening a different one while a
    pointer exists raises ConcurrentEditConflict.
    """
    pointer = current_edit(kind)
    if pointer is not None:
        if pointer.invoice_id == invoice_id:
            return pointer
        raise ConcurrentEditConflict(
            f"Invoice {pointer.invoice_id} is already being edited",
            details={"kind": kind, "editing_invoice_id": pointer.invoice_id, "requested_invoice_id": invoice_id},
        )
    pointer = EditPointer(kind=kind, invoice_id=invoice_id, opened_at=utcnow())
    db.session.add(pointer)
    return pointer


def close_edit(kind: str) -> bool:
    pointer = current_edit(kind)
    if pointer is None:
        return False
    db.session.delete(pointer)
    return True
