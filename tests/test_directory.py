"""
Tests for employees, vehicles and the company profile
"""

import pytest

from logistics_tracker.storage import InMemoryStorage
from logistics_tracker.audit import AuditTrail, AuditEventType
from logistics_tracker.directory import DirectoryManager


class TestDirectoryManager:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.directory = DirectoryManager(self.storage, self.audit_trail)

    def test_add_and_list_employees(self):
        self.directory.add_employee("Peter Otieno", "Technician", "0700 000 001")
        self.directory.add_employee("amina Hassan", "Driver")

        names = [e.name for e in self.directory.list_employees()]
        assert names == ["amina Hassan", "Peter Otieno"]

    def test_employee_name_required(self):
        with pytest.raises(ValueError, match="Employee name is required"):
            self.directory.add_employee("  ")

    def test_update_employee(self):
        employee = self.directory.add_employee("Peter", "Technician")
        updated = self.directory.update_employee(employee.id, position="Supervisor")

        assert updated.position == "Supervisor"
        assert self.directory.get_employee(employee.id).position == "Supervisor"

    def test_update_employee_rejects_blank_name(self):
        employee = self.directory.add_employee("Peter")
        with pytest.raises(ValueError, match="name is required"):
            self.directory.update_employee(employee.id, name="")
        assert self.directory.get_employee(employee.id).name == "Peter"

    def test_update_employee_unknown_field(self):
        employee = self.directory.add_employee("Peter")
        with pytest.raises(ValueError, match="Cannot update fields: salary"):
            self.directory.update_employee(employee.id, salary="1000")

    def test_remove_employee(self):
        employee = self.directory.add_employee("Peter")
        assert self.directory.remove_employee(employee.id)
        assert self.directory.get_employee(employee.id) is None

        with pytest.raises(ValueError, match="not found"):
            self.directory.remove_employee(employee.id)

    def test_add_vehicle(self):
        vehicle = self.directory.add_vehicle(" KDA 123A ", "Pickup", "Hilux")
        assert vehicle.registration_number == "KDA 123A"
        assert self.directory.list_vehicles()[0].model == "Hilux"

    def test_vehicle_registration_required_and_unique(self):
        with pytest.raises(ValueError, match="registration number is required"):
            self.directory.add_vehicle("")

        self.directory.add_vehicle("KDA 123A")
        with pytest.raises(ValueError, match="already registered"):
            self.directory.add_vehicle("KDA 123A")

    def test_update_vehicle_registration_must_stay_unique(self):
        self.directory.add_vehicle("KDA 123A")
        other = self.directory.add_vehicle("KCB 456B")

        with pytest.raises(ValueError, match="already registered"):
            self.directory.update_vehicle(other.id, registration_number="KDA 123A")

        updated = self.directory.update_vehicle(other.id, registration_number="KCB 456B", model="Canter")
        assert updated.model == "Canter"

    def test_remove_vehicle(self):
        vehicle = self.directory.add_vehicle("KDA 123A")
        assert self.directory.remove_vehicle(vehicle.id)
        assert self.directory.list_vehicles() == []

    def test_company_profile_defaults_blank(self):
        profile = self.directory.get_company_profile()
        assert profile.company_name == ""
        assert profile.email == ""

    def test_update_company_profile(self):
        self.directory.update_company_profile(company_name="Dewatering Ltd", email="ops@example.com")
        self.directory.update_company_profile(phone="0700 000 000")

        profile = self.directory.get_company_profile()
        assert profile.company_name == "Dewatering Ltd"
        assert profile.phone == "0700 000 000"

        events = self.audit_trail.get_events_by_type(AuditEventType.COMPANY_PROFILE_UPDATED)
        assert len(events) == 2
