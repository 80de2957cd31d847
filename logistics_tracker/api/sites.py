"""
Site and return waybill endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import (
    CreateSiteRequest,
    UpdateSiteRequest,
    CreateReturnWaybillRequest,
    ProcessReturnWaybillRequest,
    return_waybill_response
)
from ..system import TrackerSystem
from ..sites import Site
from ..site_returns import ReturnWaybillStatus
from ..waybills import ItemCondition


router = APIRouter()


def _site_response(site: Site):
    return {
        "id": site.id,
        "name": site.name,
        "client": site.client,
        "location": site.location,
        "description": site.description,
        "created_at": site.created_at.isoformat()
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_site(
    request: CreateSiteRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Register a site"""
    try:
        site = system.site_manager.create_site(
            name=request.name,
            client=request.client,
            location=request.location,
            description=request.description
        )
        return _site_response(site)
    except ValueError as e:
        raise to_http_error(e)


@router.get("")
async def list_sites(
    client: Optional[str] = None,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List sites"""
    sites = system.site_manager.list_sites(client=client)
    return {"sites": [_site_response(s) for s in sites], "count": len(sites)}


@router.post("/return-waybills", status_code=status.HTTP_201_CREATED)
async def create_return_waybill(
    request: CreateReturnWaybillRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Raise a return waybill for materials on a site"""
    try:
        return_waybill = system.site_return_manager.create_return_waybill(
            source_site_id=request.source_site_id,
            driver_name=request.driver_name,
            vehicle=request.vehicle,
            items=[
                (line.waybill_id, line.asset_id, line.quantity, ItemCondition(line.condition))
                for line in request.items
            ],
            destination_site_id=request.destination_site_id,
            return_date=request.return_date
        )
        return return_waybill_response(return_waybill)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/return-waybills")
async def list_return_waybills(
    source_site_id: Optional[str] = None,
    status: Optional[str] = None,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List return waybills"""
    try:
        return_waybills = system.site_return_manager.list_return_waybills(
            source_site_id=source_site_id,
            status=ReturnWaybillStatus(status) if status else None
        )
    except ValueError as e:
        raise to_http_error(e)
    return {"return_waybills": [return_waybill_response(r) for r in return_waybills]}


@router.get("/return-waybills/{return_waybill_id}")
async def get_return_waybill(
    return_waybill_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get return waybill by ID"""
    return_waybill = system.site_return_manager.get_return_waybill(return_waybill_id)
    if not return_waybill:
        raise HTTPException(status_code=404, detail="Return waybill not found")
    return return_waybill_response(return_waybill)


@router.post("/return-waybills/{return_waybill_id}/process")
async def process_return_waybill(
    return_waybill_id: str,
    request: ProcessReturnWaybillRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Receive the materials on a return waybill"""
    try:
        return_waybill = system.site_return_manager.process_return_waybill(
            return_waybill_id, request.received_by
        )
        return return_waybill_response(return_waybill)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{site_id}")
async def get_site(
    site_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get site by ID"""
    site = system.site_manager.get_site(site_id)
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    return _site_response(site)


@router.put("/{site_id}")
async def update_site(
    site_id: str,
    request: UpdateSiteRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Update site details"""
    try:
        site = system.site_manager.update_site(site_id, **request.model_dump(exclude_unset=True))
        return _site_response(site)
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{site_id}")
async def delete_site(
    site_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Remove a site with no materials on it"""
    try:
        system.site_manager.delete_site(site_id)
        return {"message": "Site deleted successfully"}
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{site_id}/items")
async def get_site_items(
    site_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Waybill lines addressed to a site and what is still on it"""
    try:
        items = system.site_manager.get_site_items(site_id)
        inventory = system.site_manager.get_site_inventory(site_id)
    except ValueError as e:
        raise to_http_error(e)

    for row in items:
        row["issue_date"] = row["issue_date"].isoformat()
    return {"items": items, "inventory": list(inventory.values())}
