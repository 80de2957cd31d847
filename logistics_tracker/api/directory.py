"""
Employee, vehicle and company profile endpoints
"""

from dataclasses import asdict
from fastapi import APIRouter, Depends, status

from .deps import get_tracker_system, to_http_error
from .schemas import (
    EmployeeRequest,
    UpdateEmployeeRequest,
    VehicleRequest,
    UpdateVehicleRequest,
    CompanyProfileRequest
)
from ..system import TrackerSystem


router = APIRouter()


def _record_response(record):
    data = asdict(record)
    data.pop("updated_at", None)
    data["created_at"] = record.created_at.isoformat()
    return data


@router.get("/employees")
async def list_employees(system: TrackerSystem = Depends(get_tracker_system)):
    """List employees"""
    return {"employees": [_record_response(e) for e in system.directory.list_employees()]}


@router.post("/employees", status_code=status.HTTP_201_CREATED)
async def add_employee(
    request: EmployeeRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Add an employee"""
    try:
        employee = system.directory.add_employee(request.name, request.position, request.phone)
        return _record_response(employee)
    except ValueError as e:
        raise to_http_error(e)


@router.put("/employees/{employee_id}")
async def update_employee(
    employee_id: str,
    request: UpdateEmployeeRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Update an employee"""
    try:
        employee = system.directory.update_employee(
            employee_id, **request.model_dump(exclude_unset=True)
        )
        return _record_response(employee)
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/employees/{employee_id}")
async def remove_employee(
    employee_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Remove an employee"""
    try:
        system.directory.remove_employee(employee_id)
        return {"message": "Employee removed successfully"}
    except ValueError as e:
        raise to_http_error(e)


@router.get("/vehicles")
async def list_vehicles(system: TrackerSystem = Depends(get_tracker_system)):
    """List vehicles"""
    return {"vehicles": [_record_response(v) for v in system.directory.list_vehicles()]}


@router.post("/vehicles", status_code=status.HTTP_201_CREATED)
async def add_vehicle(
    request: VehicleRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Register a vehicle"""
    try:
        vehicle = system.directory.add_vehicle(
            request.registration_number, request.vehicle_type, request.model
        )
        return _record_response(vehicle)
    except ValueError as e:
        raise to_http_error(e)


@router.put("/vehicles/{vehicle_id}")
async def update_vehicle(
    vehicle_id: str,
    request: UpdateVehicleRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Update a vehicle"""
    try:
        vehicle = system.directory.update_vehicle(
            vehicle_id, **request.model_dump(exclude_unset=True)
        )
        return _record_response(vehicle)
    except ValueError as e:
        raise to_http_error(e)


@router.delete("/vehicles/{vehicle_id}")
async def remove_vehicle(
    vehicle_id: str,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Remove a vehicle"""
    try:
        system.directory.remove_vehicle(vehicle_id)
        return {"message": "Vehicle removed successfully"}
    except ValueError as e:
        raise to_http_error(e)


@router.get("/company")
async def get_company_profile(system: TrackerSystem = Depends(get_tracker_system)):
    """Get the company profile"""
    return _record_response(system.directory.get_company_profile())


@router.put("/company")
async def update_company_profile(
    request: CompanyProfileRequest,
    system: TrackerSystem = Depends(get_tracker_system)
):
    """Update the company profile"""
    try:
        profile = system.directory.update_company_profile(**request.model_dump(exclude_unset=True))
        return _record_response(profile)
    except ValueError as e:
        raise to_http_error(e)
