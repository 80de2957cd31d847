"""
Shared API dependencies
"""

from typing import Optional

from fastapi import HTTPException

from ..system import TrackerSystem


# Global tracker system instance, created on first request
tracker_system: Optional[TrackerSystem] = None


# Dependency to get tracker system
def get_tracker_system() -> TrackerSystem:
    global tracker_system
    if tracker_system is None:
        tracker_system = TrackerSystem()
    return tracker_system


def to_http_error(error: ValueError) -> HTTPException:
    """Map a domain error to 404 for missing records and 400 otherwise"""
    message = str(error)
    if message.endswith("not found"):
        return HTTPException(status_code=404, detail=message)
    return HTTPException(status_code=400, detail=message)
