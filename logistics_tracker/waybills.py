"""
Waybill Module

Waybills record materials dispatched from the store to a job site.
Issuing a waybill debits every listed asset in one unit of work. Line
items then move through outstanding -> return_initiated -> a settled
state as returns are reconciled against them, and the waybill's own
status is derived from its items.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Tuple
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord, as_utc
from .audit import AuditTrail, AuditEventType
from .assets import AssetManager
from .stock_ledger import MovementType
from .logging_config import get_logger, log_action


class ItemCondition(Enum):
    """Condition of an item coming back from a site or an employee"""
    GOOD = "good"
    DAMAGED = "damaged"
    MISSING = "missing"


class WaybillItemStatus(Enum):
    """Lifecycle of a single waybill line"""
    OUTSTANDING = "outstanding"            # Out on site, nothing returned
    RETURN_INITIATED = "return_initiated"  # Return started or partly returned
    RETURN_COMPLETED = "return_completed"  # Fully accounted for, some or all good
    LOST = "lost"                          # Fully accounted for, all missing
    DAMAGED = "damaged"                    # Fully accounted for, none good


SETTLED_ITEM_STATUSES = {
    WaybillItemStatus.RETURN_COMPLETED,
    WaybillItemStatus.LOST,
    WaybillItemStatus.DAMAGED,
}


class WaybillStatus(Enum):
    """Overall waybill status, derived from its items"""
    OUTSTANDING = "outstanding"
    RETURN_INITIATED = "return_initiated"
    RETURN_COMPLETED = "return_completed"


@dataclass
class WaybillItem:
    """One asset line on a waybill"""
    asset_id: str
    asset_name: str
    quantity: int
    returned_quantity: int = 0  # good + damaged + missing
    damaged_quantity: int = 0
    missing_quantity: int = 0
    status: WaybillItemStatus = WaybillItemStatus.OUTSTANDING

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("Waybill item quantity must be positive")

    @property
    def outstanding_quantity(self) -> int:
        """Quantity still on site"""
        return self.quantity - self.returned_quantity

    @property
    def good_quantity(self) -> int:
        """Quantity that came back in good condition"""
        return self.returned_quantity - self.damaged_quantity - self.missing_quantity

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_ITEM_STATUSES

    def record_return(self, quantity: int, condition: ItemCondition) -> None:
        """
        Account for part of this line

        Raises:
            ValueError: If quantity is negative or more than is outstanding
        """
        if quantity < 0:
            raise ValueError(f"Return quantity cannot be negative for {self.asset_name}")
        if quantity > self.outstanding_quantity:
            raise ValueError(f"Cannot return more than {self.outstanding_quantity} of {self.asset_name}")

        self.returned_quantity += quantity
        if condition == ItemCondition.DAMAGED:
            self.damaged_quantity += quantity
        elif condition == ItemCondition.MISSING:
            self.missing_quantity += quantity
        self.refresh_status()

    def refresh_status(self) -> None:
        """Derive status from the accounted quantities"""
        if self.returned_quantity == 0:
            # Nothing accounted: an initiated return stays initiated
            if self.status != WaybillItemStatus.RETURN_INITIATED:
                self.status = WaybillItemStatus.OUTSTANDING
        elif self.returned_quantity < self.quantity:
            self.status = WaybillItemStatus.RETURN_INITIATED
        elif self.missing_quantity == self.quantity:
            self.status = WaybillItemStatus.LOST
        elif self.good_quantity == 0:
            self.status = WaybillItemStatus.DAMAGED
        else:
            self.status = WaybillItemStatus.RETURN_COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'asset_name': self.asset_name,
            'quantity': self.quantity,
            'returned_quantity': self.returned_quantity,
            'damaged_quantity': self.damaged_quantity,
            'missing_quantity': self.missing_quantity,
            'status': self.status.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WaybillItem':
        data = dict(data)
        data['status'] = WaybillItemStatus(data['status'])
        return cls(**data)


@dataclass
class Waybill(StorageRecord):
    """
    Dispatch of materials to a site
    """
    waybill_number: str
    items: List[WaybillItem]
    driver_name: str
    vehicle: str
    service: str
    site: str
    client: str
    issue_date: datetime
    purpose: str = ""
    expected_return_date: Optional[datetime] = None
    status: WaybillStatus = WaybillStatus.OUTSTANDING
    transfer_from: Optional[str] = None  # Return waybill that moved these items here

    def __post_init__(self):
        if not self.items:
            raise ValueError("Waybill must have at least one item")

    def get_item(self, asset_id: str) -> Optional[WaybillItem]:
        for item in self.items:
            if item.asset_id == asset_id:
                return item
        return None

    def require_item(self, asset_id: str) -> WaybillItem:
        item = self.get_item(asset_id)
        if not item:
            raise ValueError(f"Asset {asset_id} is not on waybill {self.waybill_number}")
        return item

    def refresh_status(self) -> WaybillStatus:
        """Derive the waybill status from its items"""
        if all(item.is_settled for item in self.items):
            self.status = WaybillStatus.RETURN_COMPLETED
        elif any(item.status != WaybillItemStatus.OUTSTANDING for item in self.items):
            self.status = WaybillStatus.RETURN_INITIATED
        else:
            self.status = WaybillStatus.OUTSTANDING
        return self.status

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def outstanding_quantity(self) -> int:
        return sum(item.outstanding_quantity for item in self.items)

    def is_overdue(self, as_of: Optional[datetime] = None) -> bool:
        """Past its expected return date and not fully returned"""
        if not self.expected_return_date or self.status == WaybillStatus.RETURN_COMPLETED:
            return False
        as_of = as_utc(as_of) or datetime.now(timezone.utc)
        return as_of > self.expected_return_date

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['items'] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Waybill':
        data = dict(data)
        data['items'] = [WaybillItem.from_dict(item) for item in data['items']]
        data['status'] = WaybillStatus(data['status'])
        data['issue_date'] = datetime.fromisoformat(data['issue_date'])
        if data.get('expected_return_date'):
            data['expected_return_date'] = datetime.fromisoformat(data['expected_return_date'])
        return super().from_dict(data)


class WaybillManager:
    """
    Issues waybills and keeps their line items reconciled
    """

    def __init__(
        self,
        storage: StorageInterface,
        asset_manager: AssetManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.asset_manager = asset_manager
        self.audit_trail = audit_trail
        self.table_name = "waybills"
        self.logger = get_logger("logistics_tracker.waybills")

        asset_manager.add_in_use_check(self.quantity_out_for_asset)

    def issue_waybill(
        self,
        items: List[Tuple[str, int]],
        driver_name: str,
        vehicle: str,
        service: str,
        site: str,
        client: str,
        purpose: str = "",
        expected_return_date: Optional[datetime] = None
    ) -> Waybill:
        """
        Issue a waybill and take its items out of the store

        Args:
            items: (asset_id, quantity) pairs; blank or non-positive lines are ignored
            driver_name: Driver carrying the materials
            vehicle: Vehicle used
            service: Service being delivered (dewatering, waterproofing, ...)
            site: Destination site name
            client: Client the site belongs to
            purpose: Free-text purpose
            expected_return_date: When the materials are due back

        Returns:
            Issued Waybill in OUTSTANDING state

        Raises:
            ValueError: If required fields are missing, no valid items remain,
                or any asset lacks the stock requested
        """
        waybill = self._build_waybill(items, driver_name, vehicle, service, site, client,
                                      purpose, expected_return_date)

        with self.storage.atomic():
            self.save_waybill(waybill)
            for item in waybill.items:
                self.asset_manager.debit_stock(
                    asset_id=item.asset_id,
                    quantity=item.quantity,
                    movement_type=MovementType.WAYBILL_ISSUE,
                    reference_type="waybill",
                    reference_id=waybill.id,
                    description=f"Issued on waybill {waybill.waybill_number} to {waybill.site}"
                )
            self._audit_issue(waybill)

        log_action(
            self.logger, "info", f"Waybill issued: {waybill.waybill_number}",
            action="issue_waybill", resource=f"waybill:{waybill.id}",
            extra={
                "site": waybill.site,
                "items": len(waybill.items),
                "total_quantity": waybill.total_quantity
            }
        )
        return waybill

    def issue_transfer_waybill(
        self,
        items: List[Tuple[str, int]],
        driver_name: str,
        vehicle: str,
        site: str,
        client: str,
        transfer_from: str,
        service: str = "transfer"
    ) -> Waybill:
        """
        Issue a waybill for materials moving between sites

        Stock is not debited: the materials already left the store on
        their original waybills.
        """
        waybill = self._build_waybill(
            items, driver_name, vehicle, service, site, client,
            purpose=f"Site transfer from return waybill {transfer_from}",
            expected_return_date=None,
            check_stock=False
        )
        waybill.transfer_from = transfer_from

        with self.storage.atomic():
            self.save_waybill(waybill)
            self._audit_issue(waybill)
        return waybill

    def _build_waybill(
        self,
        items: List[Tuple[str, int]],
        driver_name: str,
        vehicle: str,
        service: str,
        site: str,
        client: str,
        purpose: str,
        expected_return_date: Optional[datetime],
        check_stock: bool = True
    ) -> Waybill:
        required = {
            "driver name": driver_name,
            "vehicle": vehicle,
            "service": service,
            "site": site,
            "client": client,
        }
        missing = [label for label, value in required.items() if not value or not value.strip()]
        if missing:
            raise ValueError(f"Missing required waybill fields: {', '.join(missing)}")

        # Merge duplicate lines, dropping empty ones
        quantities: Dict[str, int] = {}
        for asset_id, quantity in items:
            if asset_id and quantity > 0:
                quantities[asset_id] = quantities.get(asset_id, 0) + quantity
        if not quantities:
            raise ValueError("Please select at least one item for the waybill")

        waybill_items = []
        for asset_id, quantity in quantities.items():
            asset = self.asset_manager.require_asset(asset_id)
            if check_stock and quantity > asset.quantity and not self.asset_manager.allow_negative_stock:
                raise ValueError(f"Not enough {asset.name} in stock (Available: {asset.quantity})")
            waybill_items.append(WaybillItem(asset_id=asset.id, asset_name=asset.name, quantity=quantity))

        expected_return_date = as_utc(expected_return_date)

        now = datetime.now(timezone.utc)
        return Waybill(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            waybill_number=f"WB{self.storage.count(self.table_name) + 1:03d}",
            items=waybill_items,
            driver_name=driver_name.strip(),
            vehicle=vehicle.strip(),
            service=service.strip(),
            site=site.strip(),
            client=client.strip(),
            issue_date=now,
            purpose=purpose.strip(),
            expected_return_date=expected_return_date
        )

    def _audit_issue(self, waybill: Waybill) -> None:
        self.audit_trail.log_event(
            event_type=AuditEventType.WAYBILL_ISSUED,
            entity_type="waybill",
            entity_id=waybill.id,
            metadata={
                "waybill_number": waybill.waybill_number,
                "site": waybill.site,
                "client": waybill.client,
                "items": [item.to_dict() for item in waybill.items],
                "transfer_from": waybill.transfer_from
            }
        )

    def initiate_return(self, waybill_id: str) -> Waybill:
        """
        Flag every outstanding line as return initiated

        Quantities are untouched until a return bill is completed.

        Raises:
            ValueError: If the waybill is missing or already fully returned
        """
        waybill = self.require_waybill(waybill_id)
        if waybill.status == WaybillStatus.RETURN_COMPLETED:
            raise ValueError(f"Waybill {waybill.waybill_number} is already fully returned")

        for item in waybill.items:
            if item.status == WaybillItemStatus.OUTSTANDING:
                item.status = WaybillItemStatus.RETURN_INITIATED

        with self.storage.atomic():
            self.save_waybill(waybill)
            self.audit_trail.log_event(
                event_type=AuditEventType.WAYBILL_RETURN_INITIATED,
                entity_type="waybill",
                entity_id=waybill.id,
                metadata={"waybill_number": waybill.waybill_number}
            )
        return waybill

    def save_waybill(self, waybill: Waybill) -> None:
        """Re-derive status and persist, auditing any status change"""
        previous = self.storage.load(self.table_name, waybill.id)
        waybill.refresh_status()
        waybill.touch()
        self.storage.save(self.table_name, waybill.id, waybill.to_dict())

        if previous and previous['status'] != waybill.status.value:
            self.audit_trail.log_event(
                event_type=AuditEventType.WAYBILL_STATUS_CHANGED,
                entity_type="waybill",
                entity_id=waybill.id,
                metadata={"from": previous['status'], "to": waybill.status.value}
            )

    def get_waybill(self, waybill_id: str) -> Optional[Waybill]:
        """Get waybill by ID"""
        data = self.storage.load(self.table_name, waybill_id)
        if data:
            return Waybill.from_dict(data)
        return None

    def require_waybill(self, waybill_id: str) -> Waybill:
        waybill = self.get_waybill(waybill_id)
        if not waybill:
            raise ValueError(f"Waybill {waybill_id} not found")
        return waybill

    def list_waybills(
        self,
        status: Optional[WaybillStatus] = None,
        site: Optional[str] = None
    ) -> List[Waybill]:
        """List waybills in issue order, optionally by status or site name"""
        waybills = [Waybill.from_dict(data) for data in self.storage.load_all(self.table_name)]
        if status:
            waybills = [w for w in waybills if w.status == status]
        if site:
            waybills = [w for w in waybills if w.site == site]
        waybills.sort(key=lambda w: w.issue_date)
        return waybills

    def get_active_waybills(self) -> List[Waybill]:
        """Waybills not yet fully returned"""
        return [w for w in self.list_waybills() if w.status != WaybillStatus.RETURN_COMPLETED]

    def get_overdue_waybills(self, as_of: Optional[datetime] = None) -> List[Waybill]:
        return [w for w in self.list_waybills() if w.is_overdue(as_of)]

    def quantity_out_for_asset(self, asset_id: str) -> int:
        """Quantity of an asset still outstanding across all waybills"""
        total = 0
        for waybill in self.list_waybills():
            for item in waybill.items:
                if item.asset_id == asset_id:
                    total += item.outstanding_quantity
        return total
