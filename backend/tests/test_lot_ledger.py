# Overview: Pytest coverage for FIFO lot consumption, restoration and receiving.

from datetime import date, datetime

import pytest

from shopledger.errors import InsufficientStock, DuplicateLot, LotNotFound, InvalidInput
from shopledger.models import Batch
from shopledger.services.concurrency import atomic
from shopledger.services.lot_ledger import LotLedger


def _lot(db_session, product_id, lot_number):
    return db_session.query(Batch).filter_by(product_id=product_id, lot_number=lot_number).one()


def _commit(ledger):
    atomic(ledger.flush)


class TestConsume:
    def test_spanning_two_lots(self, db_session, stocked_product):
        """Selling 7 takes all of L1 then 2 of L2 at an average cost of 74/7."""
        l1 = _lot(db_session, stocked_product.id, "L1")
        l2 = _lot(db_session, stocked_product.id, "L2")

        ledger = LotLedger()
        result = ledger.consume(stocked_product.id, 7)

        assert result.deductions == [(l1.id, 5), (l2.id, 2)]
        assert result.quantity == 7
        assert result.unit_cost_average == pytest.approx((5 * 10 + 2 * 12) / 7)

    def test_earliest_expiry_first(self, db_session, product, add_lot):
        """Lots are drained T1 before T2 before T3 whatever order they arrived in."""
        add_lot(product.id, "T3", 4, 1.0, date(2031, 3, 1))
        add_lot(product.id, "T1", 4, 1.0, date(2029, 1, 1))
        add_lot(product.id, "T2", 4, 1.0, date(2030, 2, 1))

        ledger = LotLedger()
        result = ledger.consume(product.id, 10)

        lots = [db_session.get(Batch, batch_id).lot_number for batch_id, _ in result.deductions]
        assert lots == ["T1", "T2", "T3"]
        assert [qty for _, qty in result.deductions] == [4, 4, 2]

    def test_no_expiry_falls_back_to_acquisition(self, db_session, product, add_lot):
        add_lot(product.id, "NEW", 3, 1.0, acquired_at=datetime(2026, 5, 1))
        add_lot(product.id, "OLD", 3, 1.0, acquired_at=datetime(2026, 1, 1))

        result = LotLedger().consume(product.id, 4)

        lots = [db_session.get(Batch, batch_id).lot_number for batch_id, _ in result.deductions]
        assert lots == ["OLD", "NEW"]

    def test_insufficient_stock_leaves_journal_untouched(self, db_session, stocked_product):
        ledger = LotLedger()
        with pytest.raises(InsufficientStock) as exc:
            ledger.consume(stocked_product.id, 11)

        assert exc.value.details["on_hand"] == 10
        assert exc.value.details["requested_quantity"] == 11
        assert ledger.stock(stocked_product.id) == 10

    @pytest.mark.parametrize("quantity", [0, -3, 2.5, True])
    def test_rejects_bad_quantity(self, db_session, stocked_product, quantity):
        with pytest.raises(InvalidInput):
            LotLedger().consume(stocked_product.id, quantity)

    def test_consume_is_visible_before_flush(self, db_session, stocked_product, lot_quantities):
        ledger = LotLedger()
        ledger.consume(stocked_product.id, 6)

        assert ledger.stock(stocked_product.id) == 4
        assert lot_quantities(stocked_product.id) == {"L1": 5, "L2": 5}


class TestRestore:
    @pytest.mark.parametrize("quantity", range(1, 11))
    def test_conservation(self, db_session, stocked_product, lot_quantities, quantity):
        before = lot_quantities(stocked_product.id)

        ledger = LotLedger()
        result = ledger.consume(stocked_product.id, quantity)
        _commit(ledger)

        ledger = LotLedger()
        ledger.restore(result.deductions)
        _commit(ledger)

        assert lot_quantities(stocked_product.id) == before

    def test_restore_uses_recorded_deductions_not_current_fifo(self, db_session, stocked_product, add_lot, lot_quantities):
        ledger = LotLedger()
        result = ledger.consume(stocked_product.id, 3)
        _commit(ledger)

        # A lot expiring sooner arrives after the sale.
        add_lot(stocked_product.id, "L0", 2, 9.0, date(2029, 12, 1))

        ledger = LotLedger()
        ledger.restore(result.deductions)
        _commit(ledger)

        assert lot_quantities(stocked_product.id) == {"L0": 2, "L1": 5, "L2": 5}

    def test_return_restores_newest_consumed_first(self, db_session, stocked_product, lot_quantities):
        l1 = _lot(db_session, stocked_product.id, "L1")
        l2 = _lot(db_session, stocked_product.id, "L2")
        ledger = LotLedger()
        result = ledger.consume(stocked_product.id, 7)
        _commit(ledger)

        ledger = LotLedger()
        restored = ledger.restore_reverse_order(result.deductions, 3)
        _commit(ledger)

        assert restored == [(l2.id, 2), (l1.id, 1)]
        assert lot_quantities(stocked_product.id) == {"L1": 1, "L2": 5}

    def test_reverse_restore_cannot_exceed_deducted(self, db_session, stocked_product):
        ledger = LotLedger()
        result = ledger.consume(stocked_product.id, 2)
        with pytest.raises(InvalidInput):
            ledger.restore_reverse_order(result.deductions, 3)

    def test_restore_unknown_batch(self, db_session, stocked_product):
        with pytest.raises(LotNotFound):
            LotLedger().restore([("missing-batch", 1)])


class TestReceive:
    def test_new_lot(self, db_session, product, lot_quantities):
        ledger = LotLedger()
        batch = ledger.receive(product.id, "A-1", 12, 4.5, date(2031, 1, 1))
        assert ledger.stock(product.id) == 12
        _commit(ledger)

        assert lot_quantities(product.id) == {"A-1": 12}
        assert db_session.get(Batch, batch.id).unit_cost == 4.5

    def test_existing_lot_is_topped_up_and_repriced(self, db_session, stocked_product, lot_quantities):
        ledger = LotLedger()
        ledger.receive(stocked_product.id, "L1", 3, 11.0)
        _commit(ledger)

        assert lot_quantities(stocked_product.id)["L1"] == 8
        assert _lot(db_session, stocked_product.id, "L1").unit_cost == 11.0

    def test_require_new_lot(self, db_session, stocked_product):
        with pytest.raises(DuplicateLot):
            LotLedger().receive(stocked_product.id, "L2", 1, 1.0, require_new_lot=True)

    def test_lot_number_required(self, db_session, product):
        with pytest.raises(InvalidInput):
            LotLedger().receive(product.id, "  ", 1, 1.0)

    def test_decrement_named_lot(self, db_session, stocked_product, lot_quantities):
        ledger = LotLedger()
        ledger.decrement_lot(stocked_product.id, "L2", 4)
        _commit(ledger)
        assert lot_quantities(stocked_product.id) == {"L1": 5, "L2": 1}

    def test_decrement_missing_lot(self, db_session, stocked_product):
        with pytest.raises(LotNotFound):
            LotLedger().decrement_lot(stocked_product.id, "NOPE", 1)

    def test_decrement_beyond_lot(self, db_session, stocked_product):
        with pytest.raises(InsufficientStock):
            LotLedger().decrement_lot(stocked_product.id, "L1", 6)
