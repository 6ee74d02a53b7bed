# Overview: Transaction boundary helpers; every ledger operation commits once or not at all.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_writer() -> None:
    """Take the database write lock up front on SQLite (single writer per shop)."""
    if db.engine.dialect.name == "sqlite" and not db.session().in_transaction():
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """
    One invoice + its lot mutations + its balance/transaction rows.

    Commits when the block exits cleanly, rolls back on any exception so no
    reader can observe a partial application.
    """
    begin_writer()
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locked database) and StaleDataError
    (optimistic locking conflicts). Ledger validation errors propagate at once.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def atomic(func):
    """Run `func` as a single retried unit of work and return its result."""
    def _op():
        with unit_of_work():
            return func()
    return run_with_retry(_op)
