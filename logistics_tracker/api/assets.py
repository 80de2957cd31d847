"""
Asset register endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import (
    CreateAssetRequest,
    UpdateAssetRequest,
    AdjustStockRequest,
    asset_response,
    parse_unit_price
)
from ..system import TrackerSystem
from ..assets import AssetCategory, AssetType


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_asset(
    request: CreateAssetRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Register a new asset"""
    try:
        asset = system.asset_manager.create_asset(
            name=request.name,
            quantity=request.quantity,
            unit_of_measurement=request.unit_of_measurement,
            category=AssetCategory(request.category),
            asset_type=AssetType(request.asset_type),
            description=request.description,
            location=request.location,
            unit_price=parse_unit_price(request.unit_price)
        )
        return asset_response(asset, system.asset_manager)

    except ValueError as e:
        raise to_http_error(e)


@router.get("")
async def list_assets(
    search: Optional[str] = None,
    category: Optional[str] = None,
    asset_type: Optional[str] = None,
    available_only: bool = False,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """List assets, optionally filtered"""
    try:
        assets = system.asset_manager.list_assets(
            search=search,
            category=AssetCategory(category) if category else None,
            asset_type=AssetType(asset_type) if asset_type else None
        )
    except ValueError as e:
        raise to_http_error(e)

    if available_only:
        assets = [a for a in assets if a.is_available]

    return {
        "assets": [asset_response(a, system.asset_manager) for a in assets],
        "count": len(assets)
    }


@router.get("/reconciliation")
async def reconcile_stock(system: TrackerSystem = Depends(get_tracker_system)):
    """Compare stored quantities with the stock ledger"""
    rows = system.asset_manager.reconcile_stock()
    return {
        "assets": rows,
        "balanced": all(row["balanced"] for row in rows)
    }


@router.get("/{asset_id}")
async def get_asset(
    asset_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Get asset by ID"""
    asset = system.asset_manager.get_asset(asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")

    return asset_response(asset, system.asset_manager)


@router.put("/{asset_id}")
async def update_asset(
    asset_id: str,
    request: UpdateAssetRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Update descriptive asset fields"""
    changes = request.model_dump(exclude_unset=True)
    try:
        if "category" in changes:
            changes["category"] = AssetCategory(changes["category"])
        if "asset_type" in changes:
            changes["asset_type"] = AssetType(changes["asset_type"])
        if "unit_price" in changes:
            changes["unit_price"] = parse_unit_price(changes["unit_price"])

        asset = system.asset_manager.update_asset(asset_id, **changes)
        return asset_response(asset, system.asset_manager)

    except ValueError as e:
        raise to_http_error(e)


@router.delete("/{asset_id}")
async def delete_asset(
    asset_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Remove an asset that is not out on waybills or checkouts"""
    try:
        system.asset_manager.delete_asset(asset_id)
        return {"message": "Asset deleted successfully"}
    except ValueError as e:
        raise to_http_error(e)


@router.post("/{asset_id}/adjust")
async def adjust_stock(
    asset_id: str,
    request: AdjustStockRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Restock or write down an asset"""
    try:
        asset = system.asset_manager.adjust_stock(asset_id, request.quantity_change, request.reason)
        return asset_response(asset, system.asset_manager)
    except ValueError as e:
        raise to_http_error(e)


@router.get("/{asset_id}/movements")
async def get_stock_movements(
    asset_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Stock movement history of an asset, oldest first"""
    if not system.asset_manager.get_asset(asset_id):
        raise HTTPException(status_code=404, detail="Asset not found")

    movements = system.stock_ledger.get_movements(asset_id=asset_id)
    return {
        "asset_id": asset_id,
        "movements": [
            {
                "id": m.id,
                "movement_type": m.movement_type.value,
                "quantity_change": m.quantity_change,
                "balance_after": m.balance_after,
                "reference_type": m.reference_type,
                "reference_id": m.reference_id,
                "description": m.description,
                "created_at": m.created_at.isoformat()
            }
            for m in movements
        ]
    }
