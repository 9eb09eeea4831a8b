# Overview: Pytest coverage for applying a completed count to stock.

"""
Reconciliation Tests

Verifies that completing an opname:
1. Writes exactly one adjustment per discrepant item and none for matches
2. Overwrites the product aggregate (and the outlet ledger when scoped) with
   the counted quantity
3. Lands as a whole or not at all when a write fails mid-way
4. Handles stock that moved after the first scan per OPNAME_BASELINE_DRIFT_POLICY
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stockledger.models import OutletStock, Product, StockAdjustment, StockOpname
from stockledger.models.opname import ImmutableRecordError
from stockledger.results import ErrorKind
from stockledger.services import (
    adjustment_ledger,
    catalog_service,
    opname_service,
    outlet_stock_service,
    reconciliation_service,
)

from conftest import committed, stock_outlet


def _open_scoped(outlet, counts):
    opname = committed(opname_service.create_opname(user_id=5, outlet_id=outlet.id))
    for product_id, actual in counts:
        committed(opname_service.record_count(opname.id, product_id, actual))
    return opname


class TestCompleteOpname:

    def test_outlet_scoped_loss(self, db_session, outlet_a, outlet_b, product):
        """O1 holds {P1: 100}; counting 85 leaves one -15 adjustment and 85 everywhere."""
        stock_outlet(outlet_a.id, product.id, 100)
        stock_outlet(outlet_b.id, product.id, 30)
        opname = _open_scoped(outlet_a, [(product.id, 85)])

        completed = committed(opname_service.complete_opname(opname.id, user_id=5))

        assert completed.status == "completed"
        assert completed.completed_at is not None

        entries = adjustment_ledger.list_adjustments(opname.id)
        assert len(entries) == 1
        entry = entries[0]
        assert (entry.previous_stock, entry.new_stock, entry.adjustment) == (100, 85, -15)
        assert entry.reason == "stock_opname"
        assert entry.outlet_id == outlet_a.id
        assert entry.product_id == product.id
        assert entry.created_by_user_id == 5

        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 85
        assert catalog_service.get_current_stock(product.id) == 85
        # other outlets are not part of this count
        assert outlet_stock_service.get_outlet_stock(outlet_b.id, product.id) == 30

    def test_matching_items_are_untouched(self, db_session, outlet_a):
        p1 = committed(catalog_service.create_product("Kopi Kapal Api", stock_quantity=10))
        p2 = committed(catalog_service.create_product("Gula Pasir 1kg", stock_quantity=5))
        stock_outlet(outlet_a.id, p1.id, 10)
        stock_outlet(outlet_a.id, p2.id, 5)

        p2_row = db_session.query(OutletStock).filter_by(outlet_id=outlet_a.id, product_id=p2.id).one()
        p2_row_version = p2_row.version_id
        p2_version = db_session.get(Product, p2.id).version_id

        opname = _open_scoped(outlet_a, [(p1.id, 7), (p2.id, 5)])
        committed(opname_service.complete_opname(opname.id, user_id=5))

        entries = adjustment_ledger.list_adjustments(opname.id)
        assert [(e.product_id, e.adjustment) for e in entries] == [(p1.id, -3)]

        assert catalog_service.get_current_stock(p1.id) == 7
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, p1.id) == 7

        assert catalog_service.get_current_stock(p2.id) == 5
        assert db_session.get(Product, p2.id).version_id == p2_version
        p2_row = db_session.query(OutletStock).filter_by(outlet_id=outlet_a.id, product_id=p2.id).one()
        assert p2_row.quantity == 5
        assert p2_row.version_id == p2_row_version

    def test_gain(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = _open_scoped(outlet_a, [(product.id, 104)])

        committed(opname_service.complete_opname(opname.id, user_id=5))

        assert adjustment_ledger.list_adjustments(opname.id)[0].adjustment == 4
        assert catalog_service.get_current_stock(product.id) == 104

    def test_unscoped_session_leaves_outlet_ledger_alone(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 40)
        opname = committed(opname_service.create_opname(user_id=5))
        committed(opname_service.record_count(opname.id, product.id, 90))

        committed(opname_service.complete_opname(opname.id, user_id=5))

        assert catalog_service.get_current_stock(product.id) == 90
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 40
        assert adjustment_ledger.list_adjustments(opname.id)[0].outlet_id is None

    def test_outlet_row_created_when_missing(self, db_session, outlet_a, product):
        db_session.query(OutletStock).delete()
        db_session.commit()
        opname = _open_scoped(outlet_a, [(product.id, 12)])

        committed(opname_service.complete_opname(opname.id, user_id=5))

        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 12

    def test_empty_session_completes(self, db_session):
        opname = committed(opname_service.create_opname(user_id=5))

        completed = committed(opname_service.complete_opname(opname.id, user_id=5))

        assert completed.status == "completed"
        assert db_session.query(StockAdjustment).count() == 0

    def test_unknown_opname(self, db_session):
        assert opname_service.complete_opname(99999, user_id=5).error == ErrorKind.NOT_FOUND


class TestCommitReport:

    def test_report_lists_adjusted_and_skipped(self, db_session, outlet_a, product, product_b):
        opname = _open_scoped(outlet_a, [(product.id, 85), (product_b.id, 5)])
        locked = db_session.get(StockOpname, opname.id)

        report = committed(reconciliation_service.commit_opname(locked, user_id=5))

        assert [a.product_id for a in report.adjustments] == [product.id]
        assert report.skipped_product_ids == [product_b.id]
        assert report.drifted_product_ids == []
        assert report.to_dict()["adjustments"][0]["adjustment"] == -15


class TestCommitFailure:

    def test_failed_write_rolls_everything_back(self, db_session, outlet_a, product, product_b, monkeypatch):
        stock_outlet(outlet_a.id, product.id, 100)
        stock_outlet(outlet_a.id, product_b.id, 5)
        opname = _open_scoped(outlet_a, [(product.id, 85), (product_b.id, 9)])

        real_set_stock = catalog_service.set_stock
        calls = []

        def flaky_set_stock(product_id, quantity):
            calls.append(product_id)
            if len(calls) == 2:
                raise SQLAlchemyError("disk I/O error")
            return real_set_stock(product_id, quantity)

        monkeypatch.setattr(catalog_service, "set_stock", flaky_set_stock)

        result = opname_service.complete_opname(opname.id, user_id=5)

        assert not result.success
        assert result.error == ErrorKind.COMMIT_FAILURE
        assert len(calls) == 2

        assert db_session.query(StockAdjustment).count() == 0
        assert catalog_service.get_current_stock(product.id) == 100
        assert catalog_service.get_current_stock(product_b.id) == 5
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 100
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product_b.id) == 5
        assert db_session.get(StockOpname, opname.id).status == "in_progress"

    def test_session_can_complete_after_failure(self, db_session, outlet_a, product, monkeypatch):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = _open_scoped(outlet_a, [(product.id, 85)])

        def broken(*args, **kwargs):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(outlet_stock_service, "set_outlet_stock", broken)
        assert opname_service.complete_opname(opname.id, user_id=5).error == ErrorKind.COMMIT_FAILURE

        monkeypatch.undo()
        assert opname_service.complete_opname(opname.id, user_id=5).success

        assert len(adjustment_ledger.list_adjustments(opname.id)) == 1
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 85


class TestBaselineDrift:

    def _drifted_opname(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = _open_scoped(outlet_a, [(product.id, 85)])
        # a sale after the first scan
        catalog_service.set_stock(product.id, 97)
        db_session.commit()
        return opname

    def test_flag_policy_commits_against_snapshot(self, db_session, outlet_a, product, caplog):
        opname = self._drifted_opname(db_session, outlet_a, product)

        committed(opname_service.complete_opname(opname.id, user_id=5))

        entry = adjustment_ledger.list_adjustments(opname.id)[0]
        assert (entry.previous_stock, entry.new_stock, entry.adjustment) == (100, 85, -15)
        assert catalog_service.get_current_stock(product.id) == 85
        assert "stale snapshots" in caplog.text

    def test_reject_policy_keeps_session_open(self, app, db_session, outlet_a, product):
        app.config["OPNAME_BASELINE_DRIFT_POLICY"] = "reject"
        opname = self._drifted_opname(db_session, outlet_a, product)

        result = opname_service.complete_opname(opname.id, user_id=5)

        assert result.error == ErrorKind.COMMIT_FAILURE
        assert "rescan or cancel" in result.message
        assert db_session.query(StockAdjustment).count() == 0
        assert catalog_service.get_current_stock(product.id) == 97
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 100
        assert db_session.get(StockOpname, opname.id).status == "in_progress"

    def test_find_drifted_items(self, db_session, outlet_a, product, product_b):
        opname = _open_scoped(outlet_a, [(product.id, 85), (product_b.id, 5)])
        catalog_service.set_stock(product_b.id, 2)
        db_session.commit()

        drifted = reconciliation_service.find_drifted_items(db_session.get(StockOpname, opname.id))

        assert drifted == [(product_b.id, 5, 2)]


class TestTerminalStatus:

    def test_completed_session_cannot_be_reopened(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=5))
        committed(opname_service.complete_opname(opname.id, user_id=5))

        opname = db_session.get(StockOpname, opname.id)
        assert opname.status == "completed"
        opname.status = "in_progress"
        with pytest.raises(ImmutableRecordError):
            db_session.flush()
        db_session.rollback()

        assert db_session.get(StockOpname, opname.id).status == "completed"

    def test_adjustment_rows_survive_as_written(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = _open_scoped(outlet_a, [(product.id, 85)])
        committed(opname_service.complete_opname(opname.id, user_id=5))

        entry = adjustment_ledger.list_adjustments(opname.id)[0]
        db_session.delete(entry)
        with pytest.raises(ImmutableRecordError):
            db_session.flush()
        db_session.rollback()

        assert len(adjustment_ledger.list_adjustments(opname.id)) == 1
