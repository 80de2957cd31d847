"""
Company Directory Module

Employees, vehicles and the company profile used on waybills and
checkouts.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional, Any
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType


@dataclass
class Employee(StorageRecord):
    name: str
    position: str = ""
    phone: str = ""

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Employee name is required")


@dataclass
class Vehicle(StorageRecord):
    registration_number: str
    vehicle_type: str = ""
    model: str = ""

    def __post_init__(self):
        if not self.registration_number or not self.registration_number.strip():
            raise ValueError("Vehicle registration number is required")


@dataclass
class CompanyProfile(StorageRecord):
    """Single record describing the company, printed on documents"""
    company_name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    logo_url: str = ""


COMPANY_PROFILE_ID = "company"


class DirectoryManager:
    """
    Manages employees, vehicles and the company profile
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.employees_table = "employees"
        self.vehicles_table = "vehicles"
        self.profile_table = "company_profile"

    # Employees

    def add_employee(self, name: str, position: str = "", phone: str = "") -> Employee:
        now = datetime.now(timezone.utc)
        employee = Employee(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=(name or "").strip(),
            position=(position or "").strip(),
            phone=(phone or "").strip()
        )
        with self.storage.atomic():
            self.storage.save(self.employees_table, employee.id, employee.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.EMPLOYEE_ADDED,
                entity_type="employee",
                entity_id=employee.id,
                metadata={"name": employee.name, "position": employee.position}
            )
        return employee

    def update_employee(self, employee_id: str, **changes: Any) -> Employee:
        employee = self.require_employee(employee_id)
        self._apply_changes(employee, changes, {"name", "position", "phone"})
        with self.storage.atomic():
            self.storage.save(self.employees_table, employee.id, employee.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.EMPLOYEE_UPDATED,
                entity_type="employee",
                entity_id=employee.id,
                metadata={"changes": changes}
            )
        return employee

    def remove_employee(self, employee_id: str) -> bool:
        employee = self.require_employee(employee_id)
        with self.storage.atomic():
            deleted = self.storage.delete(self.employees_table, employee_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.EMPLOYEE_REMOVED,
                entity_type="employee",
                entity_id=employee_id,
                metadata={"name": employee.name}
            )
        return deleted

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        data = self.storage.load(self.employees_table, employee_id)
        if data:
            return Employee.from_dict(data)
        return None

    def require_employee(self, employee_id: str) -> Employee:
        employee = self.get_employee(employee_id)
        if not employee:
            raise ValueError(f"Employee {employee_id} not found")
        return employee

    def list_employees(self) -> List[Employee]:
        employees = [Employee.from_dict(data) for data in self.storage.load_all(self.employees_table)]
        employees.sort(key=lambda e: e.name.lower())
        return employees

    # Vehicles

    def add_vehicle(self, registration_number: str, vehicle_type: str = "", model: str = "") -> Vehicle:
        """
        Register a vehicle

        Raises:
            ValueError: If the registration number is blank or already registered
        """
        registration_number = (registration_number or "").strip()
        self._check_unique_registration(registration_number)

        now = datetime.now(timezone.utc)
        vehicle = Vehicle(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            registration_number=registration_number,
            vehicle_type=(vehicle_type or "").strip(),
            model=(model or "").strip()
        )
        with self.storage.atomic():
            self.storage.save(self.vehicles_table, vehicle.id, vehicle.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.VEHICLE_ADDED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                metadata={"registration_number": vehicle.registration_number}
            )
        return vehicle

    def update_vehicle(self, vehicle_id: str, **changes: Any) -> Vehicle:
        vehicle = self.require_vehicle(vehicle_id)
        new_registration = changes.get("registration_number")
        if new_registration is not None and new_registration.strip() != vehicle.registration_number:
            self._check_unique_registration(new_registration.strip())

        self._apply_changes(vehicle, changes, {"registration_number", "vehicle_type", "model"})
        with self.storage.atomic():
            self.storage.save(self.vehicles_table, vehicle.id, vehicle.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.VEHICLE_UPDATED,
                entity_type="vehicle",
                entity_id=vehicle.id,
                metadata={"changes": changes}
            )
        return vehicle

    def remove_vehicle(self, vehicle_id: str) -> bool:
        vehicle = self.require_vehicle(vehicle_id)
        with self.storage.atomic():
            deleted = self.storage.delete(self.vehicles_table, vehicle_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.VEHICLE_REMOVED,
                entity_type="vehicle",
                entity_id=vehicle_id,
                metadata={"registration_number": vehicle.registration_number}
            )
        return deleted

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        data = self.storage.load(self.vehicles_table, vehicle_id)
        if data:
            return Vehicle.from_dict(data)
        return None

    def require_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self.get_vehicle(vehicle_id)
        if not vehicle:
            raise ValueError(f"Vehicle {vehicle_id} not found")
        return vehicle

    def list_vehicles(self) -> List[Vehicle]:
        vehicles = [Vehicle.from_dict(data) for data in self.storage.load_all(self.vehicles_table)]
        vehicles.sort(key=lambda v: v.registration_number)
        return vehicles

    # Company profile

    def get_company_profile(self) -> CompanyProfile:
        """Stored profile, or a blank one if none has been saved"""
        data = self.storage.load(self.profile_table, COMPANY_PROFILE_ID)
        if data:
            return CompanyProfile.from_dict(data)
        now = datetime.now(timezone.utc)
        return CompanyProfile(id=COMPANY_PROFILE_ID, created_at=now, updated_at=now)

    def update_company_profile(self, **changes: Any) -> CompanyProfile:
        profile = self.get_company_profile()
        self._apply_changes(profile, changes, {"company_name", "address", "phone", "email", "logo_url"})
        with self.storage.atomic():
            self.storage.save(self.profile_table, profile.id, profile.to_dict())
            self.audit_trail.log_event(
                event_type=AuditEventType.COMPANY_PROFILE_UPDATED,
                entity_type="company_profile",
                entity_id=profile.id,
                metadata={"changes": changes}
            )
        return profile

    def _check_unique_registration(self, registration_number: str) -> None:
        if self.storage.find(self.vehicles_table, {"registration_number": registration_number}):
            raise ValueError(f"Vehicle {registration_number} is already registered")

    @staticmethod
    def _apply_changes(record: StorageRecord, changes: dict, editable: set) -> None:
        unknown = set(changes) - editable
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        for field_name, value in changes.items():
            setattr(record, field_name, (value or "").strip())
        if hasattr(record, "__post_init__"):
            record.__post_init__()
        record.touch()
