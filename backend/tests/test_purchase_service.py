# Overview: Pytest coverage for purchase invoices, landed costs, purchase edits and purchase returns.

import logging

import pytest

from shopledger.errors import (
    ConcurrentEditConflict,
    DuplicateLot,
    EditNotAllowed,
    EmptyCart,
    ExcessiveReturnQuantity,
    InsufficientStock,
    LotNotFound,
    MissingLotNumber,
)
from shopledger.models import Batch, Expense, SupplierTransaction
from shopledger.services import accounts_service, purchase_service, sales_service
from shopledger.services.purchase_service import allocate_landed_costs
from shopledger.services.concurrency import atomic
from shopledger.services.lot_ledger import LotLedger
from shopledger.services.settings_service import get_currency_settings


def _item(product_id, lot_number, quantity, unit_price, **extra):
    return {"product_id": product_id, "lot_number": lot_number, "quantity": quantity, "unit_price": unit_price, **extra}


def _supplier_balance(supplier_id):
    return accounts_service.suppliers.require(supplier_id).balance


class TestLandedCost:
    def test_additional_cost_per_unit(self, db_session, product, supplier):
        """100 units at 10 AFN plus 500 AFN freight land at 15 AFN per unit."""
        invoice = purchase_service.create_purchase(
            supplier.id, [_item(product.id, "LOT-A", 100, 10)], additional_cost=500, cost_description="Freight",
        )

        batch = db_session.query(Batch).filter_by(product_id=product.id, lot_number="LOT-A").one()
        assert batch.quantity == 100
        assert batch.unit_cost == pytest.approx(15)
        assert invoice.id == "P1"
        assert invoice.lines[0].unit_cost_base == pytest.approx(15)

        # Freight is an expense, not part of what the supplier is owed.
        assert invoice.total_amount == pytest.approx(1000)
        assert _supplier_balance(supplier.id) == pytest.approx(1000)
        expense = db_session.query(Expense).filter_by(invoice_id=invoice.id).one()
        assert expense.category == "logistics"
        assert expense.amount == pytest.approx(500)
        assert expense.description == "Freight"

    def test_allocation_follows_value_share(self):
        # Line values 100 and 300; 40 of freight splits 10 / 30.
        assert allocate_landed_costs([10, 30], [10, 10], 40) == [pytest.approx(11), pytest.approx(33)]

    def test_allocation_falls_back_to_quantity_share(self):
        assert allocate_landed_costs([0, 0], [10, 30], 40) == [pytest.approx(1), pytest.approx(1)]

    def test_no_additional_cost(self):
        assert allocate_landed_costs([7.5], [4], 0.0) == [7.5]

    def test_foreign_currency_purchase(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(
            supplier.id, [_item(product.id, "LOT-U", 10, 2)], currency="IRT", exchange_rate=0.5,
        )
        assert invoice.total_amount == pytest.approx(20)
        assert invoice.total_amount_base == pytest.approx(10)
        supplier = accounts_service.suppliers.require(supplier.id)
        assert supplier.balance_irt == pytest.approx(20)
        assert supplier.balance == pytest.approx(10)
        assert db_session.query(Batch).filter_by(lot_number="LOT-U").one().unit_cost == pytest.approx(1)


class TestValidation:
    def test_lot_number_required(self, db_session, product, supplier):
        with pytest.raises(MissingLotNumber):
            purchase_service.create_purchase(supplier.id, [_item(product.id, "", 1, 1)])

    def test_empty_purchase(self, db_session, supplier):
        with pytest.raises(EmptyCart):
            purchase_service.create_purchase(supplier.id, [])

    def test_shipment_receipt_cannot_top_up_a_lot(self, db_session, stocked_product, supplier, lot_quantities):
        def _op():
            return purchase_service.create_purchase_inner(
                LotLedger(),
                supplier=supplier,
                items=purchase_service.parse_purchase_items([_item(stocked_product.id, "L1", 2, 10)]),
                currency="AFN",
                rate=1.0,
                settings=get_currency_settings(),
                require_new_lot=True,
            )

        with pytest.raises(DuplicateLot):
            atomic(_op)
        assert lot_quantities(stocked_product.id) == {"L1": 5, "L2": 5}
        assert _supplier_balance(supplier.id) == 0


class TestUpdate:
    def test_update_replaces_lines_and_amounts(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(
            supplier.id, [_item(product.id, "LOT-A", 100, 10)], additional_cost=500,
        )
        purchase_service.begin_edit(invoice.id)
        updated = purchase_service.update_purchase(invoice.id, [_item(product.id, "LOT-A", 60, 10)])

        assert updated.id == invoice.id
        assert updated.edited_at is not None
        batch = db_session.query(Batch).filter_by(lot_number="LOT-A").one()
        assert batch.quantity == 60
        assert batch.unit_cost == pytest.approx(10)
        assert _supplier_balance(supplier.id) == pytest.approx(600)
        assert db_session.query(SupplierTransaction).filter_by(supplier_id=supplier.id).count() == 1
        assert db_session.query(Expense).count() == 0

    def test_update_after_partial_sale_can_go_negative(self, db_session, product, supplier, caplog):
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])
        sales_service.complete_sale([{"item_id": product.id, "quantity": 8}])

        with caplog.at_level(logging.WARNING):
            purchase_service.update_purchase(invoice.id, [_item(product.id, "LOT-B", 5, 5)])

        quantities = {b.lot_number: b.quantity for b in db_session.query(Batch).filter_by(product_id=product.id)}
        assert quantities == {"LOT-A": -8, "LOT-B": 5}
        assert any("below zero" in record.getMessage() for record in caplog.records)

    def test_update_moves_amount_to_new_supplier(self, db_session, product, supplier):
        other = accounts_service.create_supplier({"name": "Herat Traders"})
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])

        purchase_service.update_purchase(invoice.id, [_item(product.id, "LOT-A", 10, 5)], supplier_id=other.id)

        assert _supplier_balance(supplier.id) == pytest.approx(0)
        assert _supplier_balance(other.id) == pytest.approx(50)

    def test_update_other_invoice_while_editing(self, db_session, product, supplier):
        first = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 1, 1)])
        second = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-B", 1, 1)])
        purchase_service.begin_edit(first.id)

        with pytest.raises(ConcurrentEditConflict):
            purchase_service.update_purchase(second.id, [_item(product.id, "LOT-B", 2, 1)])

        purchase_service.update_purchase(first.id, [_item(product.id, "LOT-A", 2, 1)])
        # Pointer closed by the update
        purchase_service.begin_edit(second.id)


class TestReturns:
    def test_return_decrements_named_lot(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(
            supplier.id, [_item(product.id, "LOT-A", 10, 5), _item(product.id, "LOT-B", 10, 6)],
        )
        ret = purchase_service.add_purchase_return(
            invoice.id, [{"product_id": product.id, "lot_number": "LOT-B", "quantity": 4}],
        )

        assert ret.id == "PR1"
        assert ret.total_amount == pytest.approx(24)
        quantities = {b.lot_number: b.quantity for b in db_session.query(Batch).filter_by(product_id=product.id)}
        assert quantities == {"LOT-A": 10, "LOT-B": 6}
        assert _supplier_balance(supplier.id) == pytest.approx(110 - 24)
        txn = db_session.query(SupplierTransaction).filter_by(invoice_id=ret.id).one()
        assert txn.type == "purchase_return"

    def test_lot_not_on_invoice(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])
        with pytest.raises(LotNotFound):
            purchase_service.add_purchase_return(
                invoice.id, [{"product_id": product.id, "lot_number": "LOT-Z", "quantity": 1}],
            )

    def test_return_beyond_purchased(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])
        purchase_service.add_purchase_return(
            invoice.id, [{"product_id": product.id, "lot_number": "LOT-A", "quantity": 6}],
        )
        with pytest.raises(ExcessiveReturnQuantity):
            purchase_service.add_purchase_return(
                invoice.id, [{"product_id": product.id, "lot_number": "LOT-A", "quantity": 5}],
            )

    def test_return_of_sold_stock(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])
        sales_service.complete_sale([{"item_id": product.id, "quantity": 9}])
        with pytest.raises(InsufficientStock):
            purchase_service.add_purchase_return(
                invoice.id, [{"product_id": product.id, "lot_number": "LOT-A", "quantity": 2}],
            )

    def test_purchase_with_returns_cannot_be_edited(self, db_session, product, supplier):
        invoice = purchase_service.create_purchase(supplier.id, [_item(product.id, "LOT-A", 10, 5)])
        purchase_service.add_purchase_return(
            invoice.id, [{"product_id": product.id, "lot_number": "LOT-A", "quantity": 1}],
        )
        with pytest.raises(EditNotAllowed):
            purchase_service.begin_edit(invoice.id)
