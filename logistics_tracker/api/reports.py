"""
Reporting endpoints
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from .deps import get_tracker_system
from ..system import TrackerSystem
from ..reporting import ReportFormat


router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(system: TrackerSystem = Depends(get_tracker_system)):
    """Dashboard figures and recent activity"""
    activity = system.reporting_engine.recent_activity()
    for entry in activity:
        entry["date"] = entry["date"].isoformat()

    return {
        "stats": system.reporting_engine.dashboard_stats(),
        "recent_activity": activity
    }


@router.get("/inventory")
async def get_inventory_report(
    format: str = "json",
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Inventory report as JSON or CSV"""
    try:
        report_format = ReportFormat(format)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unsupported export format: {format}")

    result = system.reporting_engine.inventory_report()

    if report_format == ReportFormat.CSV:
        return PlainTextResponse(
            system.reporting_engine.export_report(result, ReportFormat.CSV),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=inventory-report.csv"}
        )

    return system.reporting_engine.export_report(result, ReportFormat.DICT)
