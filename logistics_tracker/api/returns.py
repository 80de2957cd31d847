"""
Return bill endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import ReturnBillRequest, return_bill_response
from ..system import TrackerSystem
from ..returns import ReturnBillStatus
from ..waybills import ItemCondition


router = APIRouter()


def _lines(request: ReturnBillRequest):
    return [(line.asset_id, line.quantity, ItemCondition(line.condition)) for line in request.items]


@router.post("", status_code=status.HTTP_201_CREATED)
async def initiate_return_bill(
    request: ReturnBillRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Start a return against a waybill"""
    try:
        bill = system.return_processor.initiate_return_bill(
            waybill_id=request.waybill_id,
            items=_lines(request),
            received_by=request.received_by,
            notes=request.notes,
            return_date=request.return_date
        )
        return return_bill_response(bill)
    except ValueError as e:
        raise to_http_error(e)


@router.post("/process", status_code=status.HTTP_201_CREATED)
async def process_return(
    request: ReturnBillRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Initiate and complete a return in one step"""
    try:
        bill = system.return_processor.process_return(
            waybill_id=request.waybill_id,
            items=_lines(request),
            received_by=request.received_by,
            notes=request.notes,
            return_date=request.return_date
        )
        return return_bill_response(bill)
    except ValueError as e:
        raise to_http_error(e)


@router.get("")
async def list_return_bills(
    waybill_id: Optional[str] = None,
    status: Optional[str] = None,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List return bills"""
    try:
        bills = system.return_processor.list_return_bills(
            waybill_id=waybill_id,
            status=ReturnBillStatus(status) if status else None
        )
    except ValueError as e:
        raise to_http_error(e)

    return {"return_bills": [return_bill_response(b) for b in bills], "count": len(bills)}


@router.get("/{bill_id}")
async def get_return_bill(
    bill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get return bill by ID"""
    bill = system.return_processor.get_return_bill(bill_id)
    if not bill:
        raise HTTPException(status_code=404, detail="Return bill not found")
    return return_bill_response(bill)


@router.post("/{bill_id}/complete")
async def complete_return_bill(
    bill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Apply an initiated return bill to stock and its waybill"""
    try:
        bill = system.return_processor.complete_return_bill(bill_id)
        return return_bill_response(bill)
    except ValueError as e:
        raise to_http_error(e)


@router.post("/{bill_id}/cancel")
async def cancel_return_bill(
    bill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Cancel an initiated return bill"""
    try:
        bill = system.return_processor.cancel_return_bill(bill_id)
        return return_bill_response(bill)
    except ValueError as e:
        raise to_http_error(e)
