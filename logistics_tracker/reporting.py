"""
Reporting Module

Dashboard figures, the recent activity feed and the inventory report,
exportable as a dict, JSON or CSV.
"""

import csv
import io
import json
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Union
from enum import Enum
import uuid

from .assets import AssetManager, StockStatus
from .waybills import WaybillManager, WaybillStatus
from .checkouts import CheckoutManager, CheckoutStatus


class ReportFormat(Enum):
    """Output formats for reports"""
    DICT = "dict"
    CSV = "csv"
    JSON = "json"


@dataclass
class ReportResult:
    """Result of a report run"""
    report_id: str
    report_name: str
    generated_at: datetime
    data: List[Dict[str, Any]] = field(default_factory=list)
    totals: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.metadata:
            self.metadata = {'row_count': len(self.data)}


class ReportingEngine:
    """
    Read-only views over assets, waybills and checkouts
    """

    def __init__(
        self,
        asset_manager: AssetManager,
        waybill_manager: WaybillManager,
        checkout_manager: CheckoutManager,
        recent_waybill_count: int = 5,
        recent_checkout_count: int = 3,
        recent_activity_limit: int = 8
    ):
        self.asset_manager = asset_manager
        self.waybill_manager = waybill_manager
        self.checkout_manager = checkout_manager
        self.recent_waybill_count = recent_waybill_count
        self.recent_checkout_count = recent_checkout_count
        self.recent_activity_limit = recent_activity_limit

    def dashboard_stats(self, as_of: Optional[datetime] = None) -> Dict[str, int]:
        """
        Headline figures for the dashboard

        Args:
            as_of: Time used for the overdue check, defaults to now
        """
        assets = self.asset_manager.list_assets()
        statuses = [self.asset_manager.stock_status(a) for a in assets]
        waybills = self.waybill_manager.list_waybills()

        return {
            "total_assets": len(assets),
            "total_items": sum(a.quantity for a in assets),
            "low_stock_items": statuses.count(StockStatus.LOW_STOCK),
            "out_of_stock_items": statuses.count(StockStatus.OUT_OF_STOCK),
            "active_waybills": len([w for w in waybills if w.status != WaybillStatus.RETURN_COMPLETED]),
            "pending_checkouts": len(self.checkout_manager.get_pending_checkouts()),
            "overdue_waybills": len([w for w in waybills if w.is_overdue(as_of)]),
        }

    def recent_activity(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Latest waybills and checkouts, newest first

        Only the most recent few of each kind are considered before the
        combined feed is cut to the limit.
        """
        limit = self.recent_activity_limit if limit is None else limit

        activity = []
        for waybill in self.waybill_manager.list_waybills()[-self.recent_waybill_count:]:
            activity.append({
                "type": "waybill",
                "reference_id": waybill.id,
                "description": f"Waybill {waybill.waybill_number} for {waybill.purpose or waybill.site}",
                "date": waybill.issue_date,
                "status": waybill.status.value
            })
        for checkout in self.checkout_manager.list_checkouts()[-self.recent_checkout_count:]:
            activity.append({
                "type": "checkout",
                "reference_id": checkout.id,
                "description": f"{checkout.asset_name} checked out by {checkout.employee}",
                "date": checkout.checkout_date,
                "status": checkout.status.value
            })

        activity.sort(key=lambda entry: entry["date"], reverse=True)
        return activity[:limit]

    def inventory_report(self) -> ReportResult:
        """Stock on hand and quantities out, per asset"""
        on_waybills: Dict[str, int] = {}
        for waybill in self.waybill_manager.get_active_waybills():
            for item in waybill.items:
                on_waybills[item.asset_id] = on_waybills.get(item.asset_id, 0) + item.outstanding_quantity

        on_checkout: Dict[str, int] = {}
        for checkout in self.checkout_manager.list_checkouts(status=CheckoutStatus.OUTSTANDING):
            on_checkout[checkout.asset_id] = on_checkout.get(checkout.asset_id, 0) + checkout.quantity

        rows = []
        for asset in self.asset_manager.list_assets():
            rows.append({
                "asset_id": asset.id,
                "name": asset.name,
                "category": asset.category.value,
                "asset_type": asset.asset_type.value,
                "unit_of_measurement": asset.unit_of_measurement,
                "location": asset.location or "",
                "on_hand": asset.quantity,
                "on_waybills": on_waybills.get(asset.id, 0),
                "on_checkout": on_checkout.get(asset.id, 0),
                "stock_status": self.asset_manager.stock_status(asset).value
            })

        return ReportResult(
            report_id=str(uuid.uuid4()),
            report_name="inventory",
            generated_at=datetime.now(timezone.utc),
            data=rows,
            totals={
                "on_hand": sum(r["on_hand"] for r in rows),
                "on_waybills": sum(r["on_waybills"] for r in rows),
                "on_checkout": sum(r["on_checkout"] for r in rows),
            }
        )

    def export_report(self, result: ReportResult, format: ReportFormat) -> Union[Dict, str]:
        """
        Export report result in specified format
        """
        if format == ReportFormat.DICT:
            return {
                'report_id': result.report_id,
                'report_name': result.report_name,
                'generated_at': result.generated_at.isoformat(),
                'data': result.data,
                'totals': result.totals,
                'metadata': result.metadata
            }

        elif format == ReportFormat.JSON:
            export_dict = self.export_report(result, ReportFormat.DICT)
            return json.dumps(export_dict, indent=2, default=str)

        elif format == ReportFormat.CSV:
            output = io.StringIO()

            if result.data:
                headers = list(result.data[0].keys())
                writer = csv.DictWriter(output, fieldnames=headers)
                writer.writeheader()
                for row in result.data:
                    writer.writerow(row)

            csv_content = output.getvalue()
            output.close()
            return csv_content

        else:
            raise ValueError(f"Unsupported export format: {format}")
