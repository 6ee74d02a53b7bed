# Overview: Pytest coverage for the unit-of-work boundary on SQLite.

import pytest

from shopledger.errors import InvalidInput
from shopledger.extensions import db
from shopledger.models import Customer
from shopledger.services.concurrency import atomic, begin_writer


def _add_customer(name):
    customer = Customer(id=f"c-{name.lower()}", name=name)
    db.session.add(customer)
    return customer


class TestBeginWriter:
    def test_takes_write_lock_on_idle_session(self, db_session):
        assert not db_session().in_transaction()
        begin_writer()
        assert db_session().in_transaction()

    def test_joins_open_transaction(self, db_session):
        db_session.query(Customer).count()
        assert db_session().in_transaction()
        begin_writer()
        assert db_session().in_transaction()


class TestAtomic:
    def test_commits_once(self, db_session):
        customer = atomic(lambda: _add_customer("Ahmad"))

        assert not db_session().in_transaction()
        db_session.rollback()
        assert db_session.get(Customer, customer.id) is not None

    def test_rolls_back_on_error(self, db_session):
        def _op():
            _add_customer("Karim")
            db.session.flush()
            raise InvalidInput("stop")

        with pytest.raises(InvalidInput):
            atomic(_op)
        assert db_session.get(Customer, "c-karim") is None
