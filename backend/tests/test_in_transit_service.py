# Overview: Pytest coverage for shipments moving factory -> road -> warehouse.

import pytest

from shopledger.errors import (
    DuplicateLotNumber,
    EditNotAllowed,
    EntityNotFound,
    InvalidInput,
    LockedForDeletion,
    MissingLotNumber,
    ShipmentClosed,
)
from shopledger.models import SupplierTransaction
from shopledger.services import accounts_service, in_transit_service, inventory_service, purchase_service


def _stages(shipment, product_id):
    line = shipment.line_for(product_id)
    return (line.at_factory_qty, line.in_transit_qty, line.received_qty)


@pytest.fixture
def shipment(db_session, product, supplier):
    """Ten units at 8 AFN, all still at the factory."""
    return in_transit_service.create_shipment(
        supplier.id, [{"product_id": product.id, "quantity": 10, "unit_price": 8}], invoice_number="INV-77",
    )


class TestCreate:
    def test_everything_starts_at_factory(self, db_session, shipment, product, supplier):
        assert shipment.id == "IT1"
        assert shipment.status == "active"
        assert shipment.total_amount == pytest.approx(80)
        assert _stages(shipment, product.id) == (10, 0, 0)
        # Ordering goods does not touch what the shop owes
        assert accounts_service.suppliers.require(supplier.id).balance == 0

    def test_product_once_per_shipment(self, db_session, product, supplier):
        items = [{"product_id": product.id, "quantity": 1, "unit_price": 1}] * 2
        with pytest.raises(InvalidInput):
            in_transit_service.create_shipment(supplier.id, items)


class TestMove:
    def test_stages_always_sum_to_ordered(self, db_session, shipment, product):
        shipment, purchase = in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 6}])
        assert purchase is None
        assert _stages(shipment, product.id) == (4, 6, 0)

        shipment, purchase = in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_received": 2, "lot_number": "SH-1"}],
        )
        assert _stages(shipment, product.id) == (4, 4, 2)
        assert sum(_stages(shipment, product.id)) == 10

    def test_moves_are_capped(self, db_session, shipment, product):
        shipment, _ = in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 50}])
        assert _stages(shipment, product.id) == (0, 10, 0)

        shipment, purchase = in_transit_service.move(
            shipment.id, {product.id: {"to_received": 99, "lot_number": "SH-1"}},
        )
        assert _stages(shipment, product.id) == (0, 0, 10)
        assert purchase.lines[0].quantity == 10

    def test_product_once_per_move(self, db_session, shipment, product):
        """Caps apply per line, so naming a product twice could overdraw the factory stage."""
        with pytest.raises(InvalidInput):
            in_transit_service.move(
                shipment.id,
                [{"product_id": product.id, "to_transit": 10}, {"product_id": product.id, "to_transit": 10}],
            )
        assert _stages(in_transit_service.get_shipment(shipment.id), product.id) == (10, 0, 0)

    def test_receipt_becomes_a_purchase(self, db_session, shipment, product, supplier, lot_quantities):
        shipment, purchase = in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 6, "to_received": 6, "lot_number": "SH-1"}],
        )

        assert purchase.id == "P1"
        assert purchase.source_in_transit_id == shipment.id
        assert purchase.invoice_number == "INV-77"
        assert purchase.total_amount == pytest.approx(48)
        assert lot_quantities(product.id) == {"SH-1": 6}
        assert accounts_service.suppliers.require(supplier.id).balance == pytest.approx(48)
        assert shipment.status == "active"

    def test_straight_through_receipt_closes_shipment(self, db_session, shipment, product, lot_quantities):
        shipment, purchase = in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 10, "to_received": 10, "lot_number": "SH-1"}],
        )
        assert shipment.status == "closed"
        assert shipment.closed_at is not None
        assert shipment.remainder_cancelled is False
        assert lot_quantities(product.id) == {"SH-1": 10}

        with pytest.raises(ShipmentClosed):
            in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 1}])

    def test_receiving_needs_lot_number(self, db_session, shipment, product):
        with pytest.raises(MissingLotNumber):
            in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 3, "to_received": 2}])

        assert _stages(in_transit_service.get_shipment(shipment.id), product.id) == (10, 0, 0)

    def test_lot_number_already_in_warehouse(self, db_session, stocked_product, supplier):
        shipment = in_transit_service.create_shipment(
            supplier.id, [{"product_id": stocked_product.id, "quantity": 3, "unit_price": 1}],
        )
        with pytest.raises(DuplicateLotNumber) as exc:
            in_transit_service.move(
                shipment.id, [{"product_id": stocked_product.id, "to_transit": 3, "to_received": 3, "lot_number": "L1"}],
            )
        assert exc.value.details["found_in"] == "warehouse"

    def test_lot_number_claimed_by_other_shipment(self, db_session, product, supplier):
        first = in_transit_service.create_shipment(
            supplier.id, [{"product_id": product.id, "quantity": 3, "unit_price": 1, "lot_number": "X-1"}],
        )
        second = in_transit_service.create_shipment(
            supplier.id, [{"product_id": product.id, "quantity": 3, "unit_price": 1}],
        )
        with pytest.raises(DuplicateLotNumber) as exc:
            in_transit_service.move(
                second.id, [{"product_id": product.id, "to_transit": 1, "to_received": 1, "lot_number": "X-1"}],
            )
        assert exc.value.details["found_in"] == first.id

    def test_partial_receipts_need_fresh_lot_numbers(self, db_session, shipment, product, lot_quantities):
        in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 4, "to_received": 4, "lot_number": "SH-1"}],
        )
        with pytest.raises(DuplicateLotNumber):
            in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 2, "to_received": 2}])

        in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 2, "to_received": 2, "lot_number": "SH-2"}],
        )
        assert lot_quantities(product.id) == {"SH-1": 4, "SH-2": 2}

    def test_unknown_product(self, db_session, shipment):
        with pytest.raises(EntityNotFound):
            in_transit_service.move(shipment.id, [{"product_id": "nope", "to_transit": 1}])

    def test_purchase_from_shipment_is_not_editable(self, db_session, shipment, product):
        _, purchase = in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 1, "to_received": 1, "lot_number": "SH-1"}],
        )
        with pytest.raises(EditNotAllowed):
            purchase_service.begin_edit(purchase.id)


class TestLifecycle:
    def test_archive_cancels_remainder(self, db_session, shipment, product):
        in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 3}])
        archived = in_transit_service.archive(shipment.id)

        assert archived.status == "closed"
        assert archived.remainder_cancelled is True
        with pytest.raises(ShipmentClosed):
            in_transit_service.archive(shipment.id)

    def test_delete_untouched_shipment(self, db_session, shipment):
        in_transit_service.delete_shipment(shipment.id)
        with pytest.raises(EntityNotFound):
            in_transit_service.get_shipment(shipment.id)

    def test_delete_locked_after_receipt(self, db_session, shipment, product):
        in_transit_service.move(
            shipment.id, [{"product_id": product.id, "to_transit": 1, "to_received": 1, "lot_number": "SH-1"}],
        )
        with pytest.raises(LockedForDeletion):
            in_transit_service.delete_shipment(shipment.id)

    def test_delete_locked_after_prepayment(self, db_session, shipment):
        in_transit_service.record_prepayment(shipment.id, 10)
        with pytest.raises(LockedForDeletion):
            in_transit_service.delete_shipment(shipment.id)

    def test_prepayment_lowers_supplier_balance(self, db_session, shipment, supplier):
        txn = in_transit_service.record_prepayment(shipment.id, 30, description="Advance to factory")

        assert txn.in_transit_id == shipment.id
        assert txn.type == "prepayment"
        assert in_transit_service.get_shipment(shipment.id).paid_amount == pytest.approx(30)
        assert accounts_service.suppliers.require(supplier.id).balance == pytest.approx(-30)
        assert db_session.query(SupplierTransaction).filter_by(in_transit_id=shipment.id).count() == 1

    def test_prepayment_must_be_positive(self, db_session, shipment):
        with pytest.raises(InvalidInput):
            in_transit_service.record_prepayment(shipment.id, 0)


class TestUpdate:
    def test_increase_lands_at_factory(self, db_session, shipment, product):
        in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 4}])
        updated = in_transit_service.update_shipment(
            shipment.id, [{"product_id": product.id, "quantity": 15, "unit_price": 8}],
        )
        assert _stages(updated, product.id) == (11, 4, 0)
        assert updated.total_amount == pytest.approx(120)

    def test_cannot_drop_below_moved(self, db_session, shipment, product):
        in_transit_service.move(shipment.id, [{"product_id": product.id, "to_transit": 4}])
        with pytest.raises(InvalidInput):
            in_transit_service.update_shipment(
                shipment.id, [{"product_id": product.id, "quantity": 3, "unit_price": 8}],
            )

    def test_add_line(self, db_session, shipment, product):
        syrup = inventory_service.create_product({"name": "Cough Syrup", "sale_price": 50})

        updated = in_transit_service.update_shipment(
            shipment.id,
            [
                {"product_id": product.id, "quantity": 10, "unit_price": 8},
                {"product_id": syrup.id, "quantity": 2, "unit_price": 30},
            ],
        )
        assert [line.line_no for line in updated.lines] == [1, 2]
        assert _stages(updated, syrup.id) == (2, 0, 0)
