"""
Quick Checkout Module

Lightweight issuance of a single asset to an employee without a full
waybill. Checking out debits stock; handing the item back in good
condition credits the full quantity again.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord, as_utc
from .audit import AuditTrail, AuditEventType
from .assets import AssetManager
from .stock_ledger import MovementType
from .waybills import ItemCondition
from .logging_config import get_logger, log_action


class CheckoutStatus(Enum):
    OUTSTANDING = "outstanding"
    RETURN_COMPLETED = "return_completed"
    LOST = "lost"
    DAMAGED = "damaged"


class DueStatus(Enum):
    """How a pending checkout stands against its expected return"""
    ON_TIME = "on_time"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


@dataclass
class QuickCheckout(StorageRecord):
    """
    Single asset taken out by an employee
    """
    checkout_number: str
    asset_id: str
    asset_name: str
    quantity: int
    employee: str
    checkout_date: datetime
    expected_return_days: int = 7
    status: CheckoutStatus = CheckoutStatus.OUTSTANDING
    returned_at: Optional[datetime] = None

    @property
    def is_outstanding(self) -> bool:
        return self.status == CheckoutStatus.OUTSTANDING

    def days_out(self, as_of: Optional[datetime] = None) -> int:
        """Whole days since checkout"""
        as_of = as_utc(as_of) or datetime.now(timezone.utc)
        return (as_of - self.checkout_date).days

    def due_status(self, as_of: Optional[datetime] = None) -> DueStatus:
        days = self.days_out(as_of)
        if days > self.expected_return_days:
            return DueStatus.OVERDUE
        if days >= self.expected_return_days - 1:
            return DueStatus.DUE_SOON
        return DueStatus.ON_TIME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuickCheckout':
        data = dict(data)
        data['status'] = CheckoutStatus(data['status'])
        data['checkout_date'] = datetime.fromisoformat(data['checkout_date'])
        if data.get('returned_at'):
            data['returned_at'] = datetime.fromisoformat(data['returned_at'])
        return super().from_dict(data)


_STATUS_FOR_CONDITION = {
    ItemCondition.GOOD: CheckoutStatus.RETURN_COMPLETED,
    ItemCondition.DAMAGED: CheckoutStatus.DAMAGED,
    ItemCondition.MISSING: CheckoutStatus.LOST,
}


class CheckoutManager:
    """
    Manages quick checkouts and their returns
    """

    def __init__(
        self,
        storage: StorageInterface,
        asset_manager: AssetManager,
        audit_trail: AuditTrail,
        default_expected_return_days: int = 7
    ):
        self.storage = storage
        self.asset_manager = asset_manager
        self.audit_trail = audit_trail
        self.default_expected_return_days = default_expected_return_days
        self.table_name = "quick_checkouts"
        self.logger = get_logger("logistics_tracker.checkouts")

        asset_manager.add_in_use_check(self.quantity_out_for_asset)

    def checkout(
        self,
        asset_id: str,
        quantity: int,
        employee: str,
        expected_return_days: Optional[int] = None
    ) -> QuickCheckout:
        """
        Check an asset out to an employee

        Raises:
            ValueError: If the employee is missing, the asset does not exist,
                or the quantity is not between 1 and the stock on hand
        """
        if not employee or not employee.strip():
            raise ValueError("Please fill in all required fields")
        if quantity < 1:
            raise ValueError("Checkout quantity must be at least 1")
        if expected_return_days is None:
            expected_return_days = self.default_expected_return_days
        if expected_return_days < 0:
            raise ValueError("Expected return days cannot be negative")

        asset = self.asset_manager.get_asset(asset_id)
        if not asset:
            raise ValueError("Selected asset not found")
        if quantity > asset.quantity and not self.asset_manager.allow_negative_stock:
            raise ValueError("Insufficient quantity available")

        now = datetime.now(timezone.utc)
        checkout = QuickCheckout(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            checkout_number=f"QC{self.storage.count(self.table_name) + 1:03d}",
            asset_id=asset.id,
            asset_name=asset.name,
            quantity=quantity,
            employee=employee.strip(),
            checkout_date=now,
            expected_return_days=expected_return_days
        )

        with self.storage.atomic():
            self._save_checkout(checkout)
            self.asset_manager.debit_stock(
                asset_id=asset.id,
                quantity=quantity,
                movement_type=MovementType.CHECKOUT,
                reference_type="checkout",
                reference_id=checkout.id,
                description=f"Checked out to {checkout.employee} ({checkout.checkout_number})"
            )
            self.audit_trail.log_event(
                event_type=AuditEventType.CHECKOUT_CREATED,
                entity_type="checkout",
                entity_id=checkout.id,
                metadata={
                    "asset_id": asset.id,
                    "quantity": quantity,
                    "employee": checkout.employee,
                    "expected_return_days": expected_return_days
                }
            )

        log_action(
            self.logger, "info", f"{asset.name} checked out by {checkout.employee}",
            action="checkout", resource=f"checkout:{checkout.id}",
            extra={"quantity": quantity, "asset_id": asset.id}
        )
        return checkout

    def return_checkout(
        self,
        checkout_id: str,
        condition: ItemCondition = ItemCondition.GOOD
    ) -> QuickCheckout:
        """
        Close out a checkout

        Good returns put the full quantity back in stock. Damaged and
        missing items are written off and stock is left as is.

        Raises:
            ValueError: If the checkout is missing or no longer outstanding
        """
        checkout = self.require_checkout(checkout_id)
        if not checkout.is_outstanding:
            raise ValueError(f"Checkout {checkout.checkout_number} is already {checkout.status.value}")

        checkout.status = _STATUS_FOR_CONDITION[condition]
        checkout.returned_at = datetime.now(timezone.utc)
        checkout.touch()

        with self.storage.atomic():
            self._save_checkout(checkout)
            if condition == ItemCondition.GOOD:
                self.asset_manager.credit_stock(
                    asset_id=checkout.asset_id,
                    quantity=checkout.quantity,
                    movement_type=MovementType.CHECKOUT_RETURN,
                    reference_type="checkout",
                    reference_id=checkout.id,
                    description=f"Returned by {checkout.employee} ({checkout.checkout_number})"
                )
                event_type = AuditEventType.CHECKOUT_RETURNED
            else:
                event_type = AuditEventType.CHECKOUT_WRITTEN_OFF

            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="checkout",
                entity_id=checkout.id,
                metadata={"condition": condition.value, "status": checkout.status.value}
            )

        log_action(
            self.logger, "info", f"{checkout.asset_name} returned by {checkout.employee}",
            action="return_checkout", resource=f"checkout:{checkout.id}",
            extra={"condition": condition.value}
        )
        return checkout

    def get_checkout(self, checkout_id: str) -> Optional[QuickCheckout]:
        data = self.storage.load(self.table_name, checkout_id)
        if data:
            return QuickCheckout.from_dict(data)
        return None

    def require_checkout(self, checkout_id: str) -> QuickCheckout:
        checkout = self.get_checkout(checkout_id)
        if not checkout:
            raise ValueError(f"Checkout {checkout_id} not found")
        return checkout

    def list_checkouts(
        self,
        status: Optional[CheckoutStatus] = None,
        employee: Optional[str] = None
    ) -> List[QuickCheckout]:
        checkouts = [QuickCheckout.from_dict(data) for data in self.storage.load_all(self.table_name)]
        if status:
            checkouts = [c for c in checkouts if c.status == status]
        if employee:
            checkouts = [c for c in checkouts if c.employee == employee]
        checkouts.sort(key=lambda c: c.checkout_date)
        return checkouts

    def get_pending_checkouts(self) -> List[QuickCheckout]:
        return self.list_checkouts(status=CheckoutStatus.OUTSTANDING)

    def get_overdue_checkouts(self, as_of: Optional[datetime] = None) -> List[QuickCheckout]:
        return [c for c in self.get_pending_checkouts() if c.due_status(as_of) == DueStatus.OVERDUE]

    def quantity_out_for_asset(self, asset_id: str) -> int:
        return sum(c.quantity for c in self.get_pending_checkouts() if c.asset_id == asset_id)

    def _save_checkout(self, checkout: QuickCheckout) -> None:
        self.storage.save(self.table_name, checkout.id, checkout.to_dict())
