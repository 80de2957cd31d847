"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from datetime import datetime
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field

from ..assets import Asset, AssetManager
from ..waybills import Waybill
from ..returns import ReturnBill
from ..checkouts import QuickCheckout
from ..site_returns import ReturnWaybill


# Asset schemas
class CreateAssetRequest(BaseModel):
    name: str
    quantity: int = Field(0, ge=0)
    unit_of_measurement: str = "pcs"
    category: str = Field(..., description="dewatering or waterproofing")
    asset_type: str = Field(..., description="consumable, non-consumable, tools or equipment")
    description: Optional[str] = None
    location: Optional[str] = None
    unit_price: Optional[str] = Field(None, description="Decimal amount as string")


class UpdateAssetRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    unit_of_measurement: Optional[str] = None
    category: Optional[str] = None
    asset_type: Optional[str] = None
    location: Optional[str] = None
    unit_price: Optional[str] = None


class AdjustStockRequest(BaseModel):
    quantity_change: int
    reason: str


# Waybill schemas
class WaybillLineModel(BaseModel):
    asset_id: str
    quantity: int


class IssueWaybillRequest(BaseModel):
    items: List[WaybillLineModel]
    driver_name: str
    vehicle: str
    service: str
    site: str
    client: str
    purpose: str = ""
    expected_return_date: Optional[datetime] = None


# Return schemas
class ReturnLineModel(BaseModel):
    asset_id: str
    quantity: int
    condition: str = "good"


class ReturnBillRequest(BaseModel):
    waybill_id: str
    items: List[ReturnLineModel]
    received_by: str
    notes: Optional[str] = None
    return_date: Optional[datetime] = None


# Checkout schemas
class CheckoutRequest(BaseModel):
    asset_id: str
    quantity: int = Field(1, ge=1)
    employee: str
    expected_return_days: Optional[int] = None


class ReturnCheckoutRequest(BaseModel):
    condition: str = "good"


# Site schemas
class CreateSiteRequest(BaseModel):
    name: str
    client: str
    location: str
    description: str = ""


class UpdateSiteRequest(BaseModel):
    name: Optional[str] = None
    client: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class SiteReturnLineModel(BaseModel):
    waybill_id: str
    asset_id: str
    quantity: int
    condition: str = "good"


class CreateReturnWaybillRequest(BaseModel):
    source_site_id: str
    driver_name: str
    vehicle: str
    items: List[SiteReturnLineModel]
    destination_site_id: Optional[str] = None
    return_date: Optional[datetime] = None


class ProcessReturnWaybillRequest(BaseModel):
    received_by: str


# Directory schemas
class EmployeeRequest(BaseModel):
    name: str
    position: str = ""
    phone: str = ""


class UpdateEmployeeRequest(BaseModel):
    name: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None


class VehicleRequest(BaseModel):
    registration_number: str
    vehicle_type: str = ""
    model: str = ""


class UpdateVehicleRequest(BaseModel):
    registration_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    model: Optional[str] = None


class CompanyProfileRequest(BaseModel):
    company_name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo_url: Optional[str] = None


def parse_unit_price(value: Optional[str]) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        price = Decimal(value)
    except ArithmeticError:
        raise ValueError(f"Invalid unit price: {value}")
    if not price.is_finite():
        raise ValueError(f"Invalid unit price: {value}")
    return price


# Response helpers
def asset_response(asset: Asset, asset_manager: AssetManager) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "name": asset.name,
        "description": asset.description,
        "quantity": asset.quantity,
        "unit_of_measurement": asset.unit_of_measurement,
        "category": asset.category.value,
        "asset_type": asset.asset_type.value,
        "location": asset.location,
        "unit_price": str(asset.unit_price) if asset.unit_price is not None else None,
        "stock_status": asset_manager.stock_status(asset).value,
        "created_at": asset.created_at.isoformat()
    }


def waybill_response(waybill: Waybill) -> Dict[str, Any]:
    return {
        "id": waybill.id,
        "waybill_number": waybill.waybill_number,
        "site": waybill.site,
        "client": waybill.client,
        "driver_name": waybill.driver_name,
        "vehicle": waybill.vehicle,
        "service": waybill.service,
        "purpose": waybill.purpose,
        "issue_date": waybill.issue_date.isoformat(),
        "expected_return_date": (waybill.expected_return_date.isoformat()
                                 if waybill.expected_return_date else None),
        "status": waybill.status.value,
        "transfer_from": waybill.transfer_from,
        "is_overdue": waybill.is_overdue(),
        "items": [
            dict(item.to_dict(), outstanding_quantity=item.outstanding_quantity)
            for item in waybill.items
        ]
    }


def return_bill_response(bill: ReturnBill) -> Dict[str, Any]:
    return {
        "id": bill.id,
        "return_number": bill.return_number,
        "waybill_id": bill.waybill_id,
        "received_by": bill.received_by,
        "return_date": bill.return_date.isoformat(),
        "condition": bill.condition.value,
        "notes": bill.notes,
        "status": bill.status.value,
        "items": [item.to_dict() for item in bill.items]
    }


def checkout_response(checkout: QuickCheckout) -> Dict[str, Any]:
    result = {
        "id": checkout.id,
        "checkout_number": checkout.checkout_number,
        "asset_id": checkout.asset_id,
        "asset_name": checkout.asset_name,
        "quantity": checkout.quantity,
        "employee": checkout.employee,
        "checkout_date": checkout.checkout_date.isoformat(),
        "expected_return_days": checkout.expected_return_days,
        "status": checkout.status.value,
        "returned_at": checkout.returned_at.isoformat() if checkout.returned_at else None
    }
    if checkout.is_outstanding:
        result["days_out"] = checkout.days_out()
        result["due_status"] = checkout.due_status().value
    return result


def return_waybill_response(return_waybill: ReturnWaybill) -> Dict[str, Any]:
    return {
        "id": return_waybill.id,
        "return_number": return_waybill.return_number,
        "source_site_id": return_waybill.source_site_id,
        "destination_site_id": return_waybill.destination_site_id,
        "driver_name": return_waybill.driver_name,
        "vehicle": return_waybill.vehicle,
        "return_date": return_waybill.return_date.isoformat(),
        "status": return_waybill.status.value,
        "received_by": return_waybill.received_by,
        "return_bill_ids": return_waybill.return_bill_ids,
        "transfer_waybill_id": return_waybill.transfer_waybill_id,
        "items": [item.to_dict() for item in return_waybill.items]
    }
