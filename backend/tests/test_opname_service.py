# Overview: Pytest coverage for stock opname session lifecycle.

"""
Stock Opname Session Tests

Verifies that:
1. Sessions open in_progress with an OPN-YYYYMMDD-XXXX number
2. The first scan snapshots aggregate stock; rescans only overwrite the count
3. Closed sessions refuse further scans, completion and cancellation
4. Cancelling never touches stock or the adjustment log
"""

import re
from datetime import datetime

from stockledger.models import StockAdjustment, StockOpnameItem
from stockledger.results import ErrorKind
from stockledger.time_utils import utcnow
from stockledger.services import catalog_service, opname_service, outlet_service, outlet_stock_service

from conftest import committed, stock_outlet


NUMBER_PATTERN = re.compile(r"^OPN-\d{8}-\d{4}$")


class TestOpnameNumbers:

    def test_format(self):
        number = opname_service.generate_opname_number(datetime(2026, 3, 9, 14, 30))

        assert NUMBER_PATTERN.match(number)
        assert number.startswith("OPN-20260309-")

    def test_exhausted_number_space_fails(self, db_session, monkeypatch):
        monkeypatch.setattr(opname_service, "generate_opname_number", lambda now=None: "OPN-20260309-0001")

        committed(opname_service.create_opname(user_id=1))
        result = opname_service.create_opname(user_id=1)

        assert result.error == ErrorKind.COMMIT_FAILURE


class TestCreateOpname:

    def test_unscoped(self, db_session):
        opname = committed(opname_service.create_opname(user_id=3, notes="  Monthly count  "))

        assert opname.status == "in_progress"
        assert opname.outlet_id is None
        assert opname.created_by_user_id == 3
        assert opname.notes == "Monthly count"
        assert NUMBER_PATTERN.match(opname.opname_number)

    def test_outlet_scoped(self, db_session, outlet_a):
        opname = committed(opname_service.create_opname(user_id=3, outlet_id=outlet_a.id))

        assert opname.outlet_id == outlet_a.id

    def test_unknown_outlet(self, db_session):
        result = opname_service.create_opname(user_id=3, outlet_id=99999)

        assert result.error == ErrorKind.NOT_FOUND

    def test_inactive_outlet(self, db_session):
        outlet = committed(outlet_service.create_outlet("OLD01", "Closed", is_active=False))
        result = opname_service.create_opname(user_id=3, outlet_id=outlet.id)

        assert result.error == ErrorKind.VALIDATION

    def test_user_required(self, db_session):
        assert opname_service.create_opname(user_id=None).error == ErrorKind.VALIDATION


class TestRecordCount:

    def test_first_scan_snapshots_aggregate(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))

        item = committed(opname_service.record_count(opname.id, product.id, 85))

        assert item.system_stock == 100
        assert item.actual_stock == 85
        assert item.discrepancy == -15

    def test_rescan_overwrites_count_and_keeps_snapshot(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.record_count(opname.id, product.id, 85))

        # a sale between scans
        catalog_service.set_stock(product.id, 90)
        db_session.commit()

        item = committed(opname_service.record_count(opname.id, product.id, 88))

        assert item.system_stock == 100
        assert item.actual_stock == 88
        assert item.discrepancy == -12
        assert db_session.query(StockOpnameItem).filter_by(opname_id=opname.id).count() == 1

    def test_count_of_zero_is_allowed(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))

        item = committed(opname_service.record_count(opname.id, product.id, 0))

        assert item.discrepancy == -100

    def test_negative_count_rejected(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))

        result = opname_service.record_count(opname.id, product.id, -1)

        assert result.error == ErrorKind.VALIDATION
        assert result.message == "actual_stock cannot be negative"
        assert db_session.query(StockOpnameItem).count() == 0

    def test_non_integer_count_rejected(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))

        for bad in ("abc", 2.5, "3.0", None):
            assert opname_service.record_count(opname.id, product.id, bad).error == ErrorKind.VALIDATION

    def test_unknown_product(self, db_session):
        opname = committed(opname_service.create_opname(user_id=1))

        assert opname_service.record_count(opname.id, 99999, 1).error == ErrorKind.NOT_FOUND

    def test_unknown_opname(self, db_session, product):
        assert opname_service.record_count(99999, product.id, 1).error == ErrorKind.NOT_FOUND

    def test_does_not_touch_stock(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = committed(opname_service.create_opname(user_id=1, outlet_id=outlet_a.id))

        committed(opname_service.record_count(opname.id, product.id, 1))

        assert catalog_service.get_current_stock(product.id) == 100
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 100


class TestCancelOpname:

    def test_cancel_with_discrepancies_changes_nothing(self, db_session, outlet_a, product, product_b):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = committed(opname_service.create_opname(user_id=1, outlet_id=outlet_a.id))
        committed(opname_service.record_count(opname.id, product.id, 60))
        committed(opname_service.record_count(opname.id, product_b.id, 9))

        cancelled = committed(opname_service.cancel_opname(opname.id, user_id=2, reason="Wrong outlet"))

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by_user_id == 2
        assert cancelled.cancellation_reason == "Wrong outlet"
        assert cancelled.cancelled_at is not None
        assert cancelled.completed_at is None
        assert db_session.query(StockAdjustment).count() == 0
        assert catalog_service.get_current_stock(product.id) == 100
        assert catalog_service.get_current_stock(product_b.id) == 5
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 100
        # items are kept for the record
        assert len(cancelled.items) == 2

    def test_cancelled_session_is_closed(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.cancel_opname(opname.id, user_id=1))

        assert opname_service.record_count(opname.id, product.id, 3).error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert opname_service.cancel_opname(opname.id, user_id=1).error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert opname_service.complete_opname(opname.id, user_id=1).error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert db_session.query(StockAdjustment).count() == 0

    def test_unknown_opname(self, db_session):
        assert opname_service.cancel_opname(99999, user_id=1).error == ErrorKind.NOT_FOUND


class TestCompletedSessionIsClosed:

    def test_no_further_scans_or_completion(self, db_session, outlet_a, product):
        stock_outlet(outlet_a.id, product.id, 100)
        opname = committed(opname_service.create_opname(user_id=1, outlet_id=outlet_a.id))
        committed(opname_service.record_count(opname.id, product.id, 85))
        assert opname_service.complete_opname(opname.id, user_id=1).success

        rescan = opname_service.record_count(opname.id, product.id, 50)
        again = opname_service.complete_opname(opname.id, user_id=1)
        cancel = opname_service.cancel_opname(opname.id, user_id=1)
        db_session.rollback()

        assert rescan.error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert again.error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert cancel.error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert db_session.query(StockAdjustment).count() == 1
        assert catalog_service.get_current_stock(product.id) == 85
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 85
        assert db_session.query(StockOpnameItem).one().actual_stock == 85


class TestRescanRace:

    def test_missed_item_is_retried_as_rescan(self, db_session, product, monkeypatch):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.record_count(opname.id, product.id, 85))
        catalog_service.set_stock(product.id, 60)
        db_session.commit()

        real = opname_service._find_item
        lookups = []

        def find_item(opname_id, product_id):
            lookups.append(product_id)
            if len(lookups) == 1:
                return None
            return real(opname_id, product_id)

        monkeypatch.setattr(opname_service, "_find_item", find_item)

        item = committed(opname_service.record_count(opname.id, product.id, 88))

        assert len(lookups) == 2
        assert item.actual_stock == 88
        assert item.system_stock == 100
        assert db_session.query(StockOpnameItem).filter_by(opname_id=opname.id).count() == 1


class TestRefusedCompletionKeepsCallerWork:

    def test_closed_session(self, db_session, outlet_a, product):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.cancel_opname(opname.id, user_id=1))

        outlet_stock_service.set_outlet_stock(outlet_a.id, product.id, 33)
        result = opname_service.complete_opname(opname.id, user_id=1)
        db_session.commit()

        assert result.error == ErrorKind.SESSION_NOT_IN_PROGRESS
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 33

    def test_unknown_session(self, db_session, outlet_a, product):
        outlet_stock_service.set_outlet_stock(outlet_a.id, product.id, 33)
        result = opname_service.complete_opname(99999, user_id=1)
        db_session.commit()

        assert result.error == ErrorKind.NOT_FOUND
        assert outlet_stock_service.get_outlet_stock(outlet_a.id, product.id) == 33


class TestListOpnames:

    def test_filters(self, db_session, outlet_a, outlet_b):
        first = committed(opname_service.create_opname(user_id=1, outlet_id=outlet_a.id))
        second = committed(opname_service.create_opname(user_id=1, outlet_id=outlet_b.id))
        third = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.cancel_opname(second.id, user_id=1))

        newest_first = committed(opname_service.list_opnames())
        assert [o.id for o in newest_first] == [third.id, second.id, first.id]

        in_progress = committed(opname_service.list_opnames(status="in_progress"))
        assert {o.id for o in in_progress} == {first.id, third.id}

        at_a = committed(opname_service.list_opnames(outlet_id=outlet_a.id))
        assert [o.id for o in at_a] == [first.id]

        assert len(committed(opname_service.list_opnames(limit=2))) == 2
        assert committed(opname_service.list_opnames(start_date="2999-01-01")) == []
        assert len(committed(opname_service.list_opnames(start_date="2000-01-01T00:00:00Z"))) == 3
        today = utcnow().date().isoformat()
        assert len(committed(opname_service.list_opnames(start_date=today, end_date=today))) == 3

    def test_invalid_filters(self, db_session):
        assert opname_service.list_opnames(status="open").error == ErrorKind.VALIDATION
        assert opname_service.list_opnames(start_date="yesterday").error == ErrorKind.VALIDATION
        assert opname_service.list_opnames(limit=0).error == ErrorKind.VALIDATION


class TestOpnameSummary:

    def test_statistics(self, db_session, product, product_b):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.record_count(opname.id, product.id, 85))
        committed(opname_service.record_count(opname.id, product_b.id, 5))

        data = committed(opname_service.get_opname_summary(opname.id))

        assert data["opname"]["id"] == opname.id
        assert data["summary"]["total_items"] == 2
        assert data["summary"]["items_matching"] == 1
        assert data["summary"]["loss_count"] == 1
        assert data["summary"]["net"] == -15
        assert data["drifted_items"] == []

    def test_reports_drifted_items(self, db_session, product):
        opname = committed(opname_service.create_opname(user_id=1))
        committed(opname_service.record_count(opname.id, product.id, 85))
        catalog_service.set_stock(product.id, 97)
        db_session.commit()

        data = committed(opname_service.get_opname_summary(opname.id))

        assert data["drifted_items"] == [
            {"product_id": product.id, "system_stock": 100, "current_stock": 97}
        ]

    def test_unknown_opname(self, db_session):
        assert opname_service.get_opname_summary(99999).error == ErrorKind.NOT_FOUND
