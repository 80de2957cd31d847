"""
Tests for waybill issuance and line item status derivation
"""

import pytest
from datetime import datetime, timezone, timedelta

from logistics_tracker.storage import InMemoryStorage
from logistics_tracker.audit import AuditTrail, AuditEventType
from logistics_tracker.stock_ledger import StockLedger, MovementType
from logistics_tracker.assets import AssetManager, AssetCategory, AssetType
from logistics_tracker.waybills import (
    WaybillManager, WaybillItem, WaybillItemStatus, WaybillStatus, ItemCondition
)


class TestWaybillItem:
    """Test line item accounting and status derivation"""

    def test_partial_return_is_initiated(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=5)
        item.record_return(2, ItemCondition.GOOD)

        assert item.returned_quantity == 2
        assert item.outstanding_quantity == 3
        assert item.status == WaybillItemStatus.RETURN_INITIATED

    def test_full_good_return_completes(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=5)
        item.record_return(5, ItemCondition.GOOD)
        assert item.status == WaybillItemStatus.RETURN_COMPLETED
        assert item.is_settled

    def test_mixed_return_with_some_good_completes(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=5)
        item.record_return(3, ItemCondition.GOOD)
        item.record_return(2, ItemCondition.DAMAGED)
        assert item.status == WaybillItemStatus.RETURN_COMPLETED
        assert item.good_quantity == 3

    def test_all_missing_is_lost(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=2)
        item.record_return(2, ItemCondition.MISSING)
        assert item.status == WaybillItemStatus.LOST

    def test_no_good_items_is_damaged(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=3)
        item.record_return(1, ItemCondition.MISSING)
        item.record_return(2, ItemCondition.DAMAGED)
        assert item.status == WaybillItemStatus.DAMAGED

    def test_cannot_return_more_than_outstanding(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=3)
        item.record_return(2, ItemCondition.GOOD)
        with pytest.raises(ValueError, match="Cannot return more than 1 of Pump"):
            item.record_return(2, ItemCondition.GOOD)

    def test_zero_return_keeps_initiated_status(self):
        item = WaybillItem(asset_id="A1", asset_name="Pump", quantity=3,
                           status=WaybillItemStatus.RETURN_INITIATED)
        item.record_return(0, ItemCondition.GOOD)
        assert item.status == WaybillItemStatus.RETURN_INITIATED

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValueError, match="must be positive"):
            WaybillItem(asset_id="A1", asset_name="Pump", quantity=0)


class TestWaybillManager:
    """Test issuing waybills against stock"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.stock_ledger = StockLedger(self.storage, self.audit_trail)
        self.asset_manager = AssetManager(self.storage, self.stock_ledger, self.audit_trail)
        self.waybill_manager = WaybillManager(self.storage, self.asset_manager, self.audit_trail)

        self.pump = self.asset_manager.create_asset(
            "Submersible pump", 10, "pcs", AssetCategory.DEWATERING, AssetType.EQUIPMENT
        )
        self.hose = self.asset_manager.create_asset(
            "Discharge hose", 4, "rolls", AssetCategory.DEWATERING, AssetType.TOOLS
        )

    def _issue(self, items=None, **kwargs):
        fields = dict(
            driver_name="Musa",
            vehicle="KDA 123A",
            service="dewatering",
            site="Riverside Towers",
            client="Acme Builders",
            purpose="Basement dewatering"
        )
        fields.update(kwargs)
        return self.waybill_manager.issue_waybill(
            items if items is not None else [(self.pump.id, 3), (self.hose.id, 2)],
            **fields
        )

    def test_issue_waybill_debits_stock(self):
        waybill = self._issue()

        assert waybill.waybill_number == "WB001"
        assert waybill.status == WaybillStatus.OUTSTANDING
        assert self.asset_manager.get_asset(self.pump.id).quantity == 7
        assert self.asset_manager.get_asset(self.hose.id).quantity == 2

        movements = self.stock_ledger.get_movements(reference_id=waybill.id)
        assert {m.movement_type for m in movements} == {MovementType.WAYBILL_ISSUE}
        assert sorted(m.quantity_change for m in movements) == [-3, -2]

    def test_waybill_numbers_increment(self):
        self._issue(items=[(self.pump.id, 1)])
        second = self._issue(items=[(self.pump.id, 1)])
        assert second.waybill_number == "WB002"

    def test_required_fields(self):
        with pytest.raises(ValueError, match="Missing required waybill fields: driver name, client"):
            self._issue(driver_name=" ", client="")

    def test_empty_and_zero_lines_dropped(self):
        waybill = self._issue(items=[(self.pump.id, 2), ("", 5), (self.hose.id, 0)])
        assert [item.asset_id for item in waybill.items] == [self.pump.id]

    def test_no_valid_lines(self):
        with pytest.raises(ValueError, match="at least one item"):
            self._issue(items=[(self.pump.id, 0)])

    def test_duplicate_lines_merged(self):
        waybill = self._issue(items=[(self.pump.id, 2), (self.pump.id, 3)])
        assert len(waybill.items) == 1
        assert waybill.items[0].quantity == 5

    def test_insufficient_stock_leaves_nothing_debited(self):
        with pytest.raises(ValueError, match=r"Not enough Discharge hose in stock \(Available: 4\)"):
            self._issue(items=[(self.pump.id, 2), (self.hose.id, 5)])

        assert self.asset_manager.get_asset(self.pump.id).quantity == 10
        assert self.storage.count("waybills") == 0

    def test_unknown_asset(self):
        with pytest.raises(ValueError, match="not found"):
            self._issue(items=[("missing", 1)])

    def test_issue_is_audited(self):
        waybill = self._issue()
        events = self.audit_trail.get_events_for_entity("waybill", waybill.id)
        assert events[0].event_type == AuditEventType.WAYBILL_ISSUED

    def test_initiate_return(self):
        waybill = self._issue()
        updated = self.waybill_manager.initiate_return(waybill.id)

        assert updated.status == WaybillStatus.RETURN_INITIATED
        assert all(item.status == WaybillItemStatus.RETURN_INITIATED for item in updated.items)
        assert all(item.returned_quantity == 0 for item in updated.items)
        assert self.asset_manager.get_asset(self.pump.id).quantity == 7

    def test_waybill_status_derivation(self):
        waybill = self._issue()

        waybill.require_item(self.pump.id).record_return(3, ItemCondition.GOOD)
        waybill.refresh_status()
        assert waybill.status == WaybillStatus.RETURN_INITIATED

        waybill.require_item(self.hose.id).record_return(2, ItemCondition.MISSING)
        waybill.refresh_status()
        assert waybill.status == WaybillStatus.RETURN_COMPLETED

    def test_list_waybills_filters(self):
        self._issue(items=[(self.pump.id, 1)])
        self._issue(items=[(self.pump.id, 1)], site="Harbour Mall")

        assert len(self.waybill_manager.list_waybills()) == 2
        assert len(self.waybill_manager.list_waybills(site="Harbour Mall")) == 1
        assert len(self.waybill_manager.list_waybills(status=WaybillStatus.OUTSTANDING)) == 2

    def test_overdue_waybills(self):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        overdue = self._issue(items=[(self.pump.id, 1)], expected_return_date=yesterday)
        self._issue(items=[(self.pump.id, 1)],
                    expected_return_date=datetime.now(timezone.utc) + timedelta(days=3))
        self._issue(items=[(self.pump.id, 1)])

        assert [w.id for w in self.waybill_manager.get_overdue_waybills()] == [overdue.id]

    def test_naive_expected_return_date_treated_as_utc(self):
        waybill = self._issue(items=[(self.pump.id, 1)], expected_return_date=datetime(2020, 1, 1))
        assert waybill.expected_return_date.tzinfo is not None
        assert waybill.is_overdue()

    def test_naive_as_of_treated_as_utc(self):
        waybill = self._issue(items=[(self.pump.id, 1)],
                              expected_return_date=datetime(2030, 1, 1, tzinfo=timezone.utc))

        assert not waybill.is_overdue(datetime(2029, 12, 31))
        assert waybill.is_overdue(datetime(2030, 1, 2))
        assert [w.id for w in self.waybill_manager.get_overdue_waybills(datetime(2030, 1, 2))] == [waybill.id]

    def test_transfer_waybill_does_not_debit(self):
        transfer = self.waybill_manager.issue_transfer_waybill(
            [(self.pump.id, 20)], "Musa", "KDA 123A", "Harbour Mall", "Acme Builders", "RWB001"
        )
        assert transfer.transfer_from == "RWB001"
        assert transfer.service == "transfer"
        assert self.asset_manager.get_asset(self.pump.id).quantity == 10

    def test_asset_on_waybill_cannot_be_deleted(self):
        self._issue(items=[(self.pump.id, 1)])
        with pytest.raises(ValueError, match="still out"):
            self.asset_manager.delete_asset(self.pump.id)

    def test_quantity_out_for_asset(self):
        self._issue(items=[(self.pump.id, 2)])
        self._issue(items=[(self.pump.id, 3)])
        assert self.waybill_manager.quantity_out_for_asset(self.pump.id) == 5
