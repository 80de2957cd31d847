"""
Tests for dashboard statistics, recent activity and the inventory report
"""

import csv
import io
import json
import pytest
from datetime import datetime, timezone, timedelta

from logistics_tracker.storage import InMemoryStorage
from logistics_tracker.audit import AuditTrail
from logistics_tracker.stock_ledger import StockLedger
from logistics_tracker.assets import AssetManager, AssetCategory, AssetType
from logistics_tracker.waybills import WaybillManager, ItemCondition
from logistics_tracker.returns import ReturnProcessor
from logistics_tracker.checkouts import CheckoutManager
from logistics_tracker.reporting import ReportingEngine, ReportFormat


class TestReportingEngine:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.stock_ledger = StockLedger(self.storage, self.audit_trail)
        self.asset_manager = AssetManager(self.storage, self.stock_ledger, self.audit_trail)
        self.waybill_manager = WaybillManager(self.storage, self.asset_manager, self.audit_trail)
        self.return_processor = ReturnProcessor(
            self.storage, self.asset_manager, self.waybill_manager, self.audit_trail
        )
        self.checkout_manager = CheckoutManager(self.storage, self.asset_manager, self.audit_trail)
        self.reporting = ReportingEngine(self.asset_manager, self.waybill_manager, self.checkout_manager)

        self.pump = self.asset_manager.create_asset(
            "Submersible pump", 12, "pcs", AssetCategory.DEWATERING, AssetType.EQUIPMENT
        )
        self.membrane = self.asset_manager.create_asset(
            "Bitumen membrane", 4, "rolls", AssetCategory.WATERPROOFING, AssetType.CONSUMABLE
        )
        self.sealant = self.asset_manager.create_asset(
            "Sealant", 0, "tubes", AssetCategory.WATERPROOFING, AssetType.CONSUMABLE
        )

    def _issue(self, quantity=1, **kwargs):
        fields = dict(driver_name="Musa", vehicle="KDA 123A", service="dewatering",
                      site="Riverside Towers", client="Acme Builders")
        fields.update(kwargs)
        return self.waybill_manager.issue_waybill([(self.pump.id, quantity)], **fields)

    def test_dashboard_stats(self):
        overdue = self._issue(expected_return_date=datetime.now(timezone.utc) - timedelta(days=2))
        returned = self._issue(2)
        self.return_processor.process_return(returned.id, [(self.pump.id, 2, ItemCondition.GOOD)], "Jane")
        self.checkout_manager.checkout(self.membrane.id, 1, "Peter")

        stats = self.reporting.dashboard_stats()
        assert stats == {
            "total_assets": 3,
            "total_items": 11 + 3 + 0,
            "low_stock_items": 1,
            "out_of_stock_items": 1,
            "active_waybills": 1,
            "pending_checkouts": 1,
            "overdue_waybills": 1,
        }
        assert self.waybill_manager.get_overdue_waybills()[0].id == overdue.id

    def test_dashboard_overdue_as_of(self):
        self._issue(expected_return_date=datetime.now(timezone.utc) + timedelta(days=2))
        later = datetime.now(timezone.utc) + timedelta(days=3)

        assert self.reporting.dashboard_stats()["overdue_waybills"] == 0
        assert self.reporting.dashboard_stats(as_of=later)["overdue_waybills"] == 1
        assert self.reporting.dashboard_stats(as_of=later.replace(tzinfo=None))["overdue_waybills"] == 1

    def test_recent_activity_newest_first(self):
        for i in range(7):
            self._issue(purpose=f"Job {i}")
        for _ in range(4):
            self.checkout_manager.checkout(self.pump.id, 1, "Peter")

        activity = self.reporting.recent_activity()
        assert len(activity) == 8
        assert [a["type"] for a in activity].count("waybill") == 5
        assert [a["type"] for a in activity].count("checkout") == 3
        dates = [a["date"] for a in activity]
        assert dates == sorted(dates, reverse=True)
        assert activity[0]["type"] == "checkout"

    def test_recent_activity_limit(self):
        for _ in range(3):
            self._issue()
        assert len(self.reporting.recent_activity(limit=2)) == 2

    def test_recent_activity_description(self):
        self._issue(purpose="Basement dewatering")
        self.checkout_manager.checkout(self.membrane.id, 1, "Peter")

        descriptions = {a["description"] for a in self.reporting.recent_activity()}
        assert "Waybill WB001 for Basement dewatering" in descriptions
        assert "Bitumen membrane checked out by Peter" in descriptions

    def test_inventory_report(self):
        self._issue(3)
        self.checkout_manager.checkout(self.pump.id, 2, "Peter")

        result = self.reporting.inventory_report()
        rows = {row["name"]: row for row in result.data}

        assert rows["Submersible pump"]["on_hand"] == 7
        assert rows["Submersible pump"]["on_waybills"] == 3
        assert rows["Submersible pump"]["on_checkout"] == 2
        assert rows["Submersible pump"]["stock_status"] == "in_stock"
        assert rows["Bitumen membrane"]["stock_status"] == "low_stock"
        assert rows["Sealant"]["stock_status"] == "out_of_stock"
        assert result.totals["on_waybills"] == 3
        assert result.metadata["row_count"] == 3

    def test_export_json(self):
        result = self.reporting.inventory_report()
        exported = json.loads(self.reporting.export_report(result, ReportFormat.JSON))

        assert exported["report_name"] == "inventory"
        assert len(exported["data"]) == 3

    def test_export_csv(self):
        result = self.reporting.inventory_report()
        content = self.reporting.export_report(result, ReportFormat.CSV)

        rows = list(csv.DictReader(io.StringIO(content)))
        assert len(rows) == 3
        assert rows[0]["name"] == "Submersible pump"
        assert rows[0]["on_hand"] == "12"

    def test_export_unsupported_format(self):
        result = self.reporting.inventory_report()
        with pytest.raises(ValueError, match="Unsupported export format"):
            self.reporting.export_report(result, "xlsx")
