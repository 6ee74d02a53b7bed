"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, stocked products, counter-parties and the
test client.
"""

from datetime import date

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Batch
from shopledger.services import accounts_service, inventory_service
from shopledger.services.concurrency import atomic
from shopledger.services.lot_ledger import LotLedger


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def add_lot(db_session):
    """Receive a lot outside any invoice, the way a first-batch intake does."""
    def _add(product_id, lot_number, quantity, unit_cost, expiry_date=None, acquired_at=None):
        def _op():
            ledger = LotLedger()
            batch = ledger.receive(
                product_id, lot_number, quantity, unit_cost, expiry_date, acquired_at=acquired_at
            )
            ledger.flush()
            return batch
        return atomic(_op)
    return _add


@pytest.fixture(scope='function')
def lot_quantities(db_session):
    """lot number -> quantity on hand for a product."""
    def _read(product_id):
        rows = db_session.query(Batch).filter(Batch.product_id == product_id).all()
        return {b.lot_number: b.quantity for b in rows}
    return _read


@pytest.fixture(scope='function')
def product(db_session):
    """Product with a 20 AFN list price and no stock."""
    return inventory_service.create_product({"name": "Paracetamol 500mg", "sale_price": 20})


@pytest.fixture(scope='function')
def stocked_product(product, add_lot):
    """
    Two lots: L1 (5 @ 10, expires first) and L2 (5 @ 12, expires later).
    """
    add_lot(product.id, "L1", 5, 10.0, date(2030, 1, 31))
    add_lot(product.id, "L2", 5, 12.0, date(2030, 6, 30))
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    return accounts_service.create_customer({"name": "Ahmad"})


@pytest.fixture(scope='function')
def supplier(db_session):
    return accounts_service.create_supplier({"name": "Kabul Pharma"})
