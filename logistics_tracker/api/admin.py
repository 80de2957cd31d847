"""
Admin endpoints (audit verification, configuration)
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends

from .deps import get_tracker_system
from ..system import TrackerSystem


router = APIRouter()


@router.get("/audit/verify")
async def verify_audit_trail(system: TrackerSystem = Depends(get_tracker_system)) -> Dict[str, Any]:
    """Verify the hash chain of the audit trail"""
    return system.verify_audit_integrity()


@router.get("/audit/events")
async def get_audit_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    system: TrackerSystem = Depends(get_tracker_system)
) -> Dict[str, Any]:
    """Most recent audit events, optionally for one entity"""
    if entity_type and entity_id:
        events = system.audit_trail.get_events_for_entity(entity_type, entity_id, limit=limit)
    else:
        events = system.audit_trail.get_all_events(limit=limit)

    return {
        "events": [
            {
                "id": e.id,
                "sequence": e.sequence,
                "event_type": e.event_type.value,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "metadata": e.metadata,
                "created_at": e.created_at.isoformat()
            }
            for e in events
        ]
    }


@router.get("/config")
async def get_configuration(system: TrackerSystem = Depends(get_tracker_system)) -> Dict[str, Any]:
    """Inventory rules in effect"""
    settings = system.settings
    return {
        "storage_backend": settings.storage_backend,
        "low_stock_threshold": settings.low_stock_threshold,
        "allow_negative_stock": settings.allow_negative_stock,
        "default_expected_return_days": settings.default_expected_return_days,
        "enable_audit_logging": settings.enable_audit_logging
    }
