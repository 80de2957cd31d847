"""
Quick checkout endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import CheckoutRequest, ReturnCheckoutRequest, checkout_response
from ..system import TrackerSystem
from ..checkouts import CheckoutStatus
from ..waybills import ItemCondition


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_checkout(
    request: CheckoutRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Check an asset out to an employee"""
    try:
        checkout = system.checkout_manager.checkout(
            asset_id=request.asset_id,
            quantity=request.quantity,
            employee=request.employee,
            expected_return_days=request.expected_return_days
        )
        return checkout_response(checkout)
    except ValueError as e:
        raise to_http_error(e)


@router.get("")
async def list_checkouts(
    status: Optional[str] = None,
    employee: Optional[str] = None,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List quick checkouts"""
    try:
        checkouts = system.checkout_manager.list_checkouts(
            status=CheckoutStatus(status) if status else None,
            employee=employee
        )
    except ValueError as e:
        raise to_http_error(e)

    return {"checkouts": [checkout_response(c) for c in checkouts], "count": len(checkouts)}


@router.get("/{checkout_id}")
async def get_checkout(
    checkout_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get checkout by ID"""
    checkout = system.checkout_manager.get_checkout(checkout_id)
    if not checkout:
        raise HTTPException(status_code=404, detail="Checkout not found")
    return checkout_response(checkout)


@router.post("/{checkout_id}/return")
async def return_checkout(
    checkout_id: str,
    request: ReturnCheckoutRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Close out a checkout in the given condition"""
    try:
        checkout = system.checkout_manager.return_checkout(
            checkout_id, ItemCondition(request.condition)
        )
        return checkout_response(checkout)
    except ValueError as e:
        raise to_http_error(e)
