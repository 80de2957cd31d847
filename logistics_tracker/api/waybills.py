"""
Waybill endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import IssueWaybillRequest, waybill_response, return_bill_response
from ..system import TrackerSystem
from ..waybills import WaybillStatus


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_waybill(
    request: IssueWaybillRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Issue a waybill and debit its items from stock"""
    try:
        waybill = system.waybill_manager.issue_waybill(
            items=[(line.asset_id, line.quantity) for line in request.items],
            driver_name=request.driver_name,
            vehicle=request.vehicle,
            service=request.service,
            site=request.site,
            client=request.client,
            purpose=request.purpose,
            expected_return_date=request.expected_return_date
        )
        return waybill_response(waybill)

    except ValueError as e:
        raise to_http_error(e)


@router.get("")
async def list_waybills(
    status: Optional[str] = None,
    site: Optional[str] = None,
    overdue_only: bool = False,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List waybills"""
    try:
        waybills = system.waybill_manager.list_waybills(
            status=WaybillStatus(status) if status else None,
            site=site
        )
    except ValueError as e:
        raise to_http_error(e)

    if overdue_only:
        waybills = [w for w in waybills if w.is_overdue()]

    return {
        "waybills": [waybill_response(w) for w in waybills],
        "count": len(waybills)
    }


@router.get("/{waybill_id}")
async def get_waybill(
    waybill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get waybill by ID"""
    waybill = system.waybill_manager.get_waybill(waybill_id)
    if not waybill:
        raise HTTPException(status_code=404, detail="Waybill not found")

    return waybill_response(waybill)


@router.post("/{waybill_id}/initiate-return")
async def initiate_return(
    waybill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Flag outstanding lines of a waybill for return"""
    try:
        waybill = system.waybill_manager.initiate_return(waybill_id)
        return waybill_response(waybill)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{waybill_id}/returns")
async def get_waybill_returns(
    waybill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Return bills raised against a waybill"""
    if not system.waybill_manager.get_waybill(waybill_id):
        raise HTTPException(status_code=404, detail="Waybill not found")

    bills = system.return_processor.list_return_bills(waybill_id=waybill_id)
    return {"return_bills": [return_bill_response(b) for b in bills]}
