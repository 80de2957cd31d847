"""
Return Bill Module

Return bills record items coming back against a waybill. A bill is
initiated first (lines flagged on the waybill, nothing moved) and then
completed, which reconciles every line atomically: good items go back
into stock, damaged and missing items are accounted for on the waybill
without restoring stock.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Any, Tuple
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .assets import AssetManager
from .stock_ledger import MovementType
from .waybills import WaybillManager, ItemCondition, WaybillItemStatus
from .logging_config import get_logger, log_action


class ReturnBillStatus(Enum):
    INITIATED = "initiated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class ReturnItem:
    """One returned line"""
    asset_id: str
    asset_name: str
    quantity: int
    condition: ItemCondition

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'asset_name': self.asset_name,
            'quantity': self.quantity,
            'condition': self.condition.value
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReturnItem':
        data = dict(data)
        data['condition'] = ItemCondition(data['condition'])
        return cls(**data)


@dataclass
class ReturnBill(StorageRecord):
    """
    Record of items returned against one waybill
    """
    return_number: str
    waybill_id: str
    items: List[ReturnItem]
    return_date: datetime
    received_by: str
    condition: ItemCondition  # GOOD only when every line is good
    notes: Optional[str] = None
    status: ReturnBillStatus = ReturnBillStatus.INITIATED
    completed_at: Optional[datetime] = None

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['items'] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReturnBill':
        data = dict(data)
        data['items'] = [ReturnItem.from_dict(item) for item in data['items']]
        data['condition'] = ItemCondition(data['condition'])
        data['status'] = ReturnBillStatus(data['status'])
        data['return_date'] = datetime.fromisoformat(data['return_date'])
        if data.get('completed_at'):
            data['completed_at'] = datetime.fromisoformat(data['completed_at'])
        return super().from_dict(data)


def overall_condition(items: List[ReturnItem]) -> ItemCondition:
    """A bill is good only when every line came back good"""
    if all(item.condition == ItemCondition.GOOD for item in items):
        return ItemCondition.GOOD
    return ItemCondition.DAMAGED


class ReturnProcessor:
    """
    Reconciles returns against waybills
    """

    def __init__(
        self,
        storage: StorageInterface,
        asset_manager: AssetManager,
        waybill_manager: WaybillManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.asset_manager = asset_manager
        self.waybill_manager = waybill_manager
        self.audit_trail = audit_trail
        self.table_name = "return_bills"
        self.logger = get_logger("logistics_tracker.returns")
        self._claim_checks: List[Callable[[str], Dict[str, int]]] = []

    def add_claim_check(self, check: Callable[[str], Dict[str, int]]) -> None:
        """
        Register a callable returning, per asset, the quantities other
        pending documents already claim on a waybill
        """
        self._claim_checks.append(check)

    def initiate_return_bill(
        self,
        waybill_id: str,
        items: List[Tuple[str, int, ItemCondition]],
        received_by: str,
        notes: Optional[str] = None,
        return_date: Optional[datetime] = None
    ) -> ReturnBill:
        """
        Start a return against a waybill

        Args:
            waybill_id: Waybill the items were issued on
            items: (asset_id, quantity, condition) lines; zero quantities are dropped
            received_by: Person receiving the items at the store
            notes: Optional notes
            return_date: Defaults to now

        Returns:
            ReturnBill in INITIATED state

        Raises:
            ValueError: If the receiver is missing, a quantity is negative or
                exceeds what is outstanding, or no lines remain
        """
        if not received_by or not received_by.strip():
            raise ValueError("Please enter who received the items")

        waybill = self.waybill_manager.require_waybill(waybill_id)

        # Sum what this request asks of each waybill line
        requested: Dict[str, int] = {}
        for asset_id, quantity, _ in items:
            item = waybill.require_item(asset_id)
            if quantity < 0:
                raise ValueError(f"Return quantity cannot be negative for {item.asset_name}")
            requested[asset_id] = requested.get(asset_id, 0) + quantity

        claimed = self.claimed_quantities(waybill_id)
        for asset_id, quantity in requested.items():
            item = waybill.require_item(asset_id)
            available = max(item.outstanding_quantity - claimed.get(asset_id, 0), 0)
            if quantity > available:
                raise ValueError(f"Cannot return more than {available} of {item.asset_name}")

        return_items = [
            ReturnItem(
                asset_id=asset_id,
                asset_name=waybill.require_item(asset_id).asset_name,
                quantity=quantity,
                condition=condition
            )
            for asset_id, quantity, condition in items
            if quantity > 0
        ]
        if not return_items:
            raise ValueError("Please specify quantities for items being returned")

        now = datetime.now(timezone.utc)
        bill = ReturnBill(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            return_number=f"RB{self.storage.count(self.table_name) + 1:03d}",
            waybill_id=waybill.id,
            items=return_items,
            return_date=return_date or now,
            received_by=received_by.strip(),
            condition=overall_condition(return_items),
            notes=notes.strip() if notes and notes.strip() else None
        )

        for return_item in return_items:
            line = waybill.require_item(return_item.asset_id)
            if line.status == WaybillItemStatus.OUTSTANDING:
                line.status = WaybillItemStatus.RETURN_INITIATED

        with self.storage.atomic():
            self._save_bill(bill)
            self.waybill_manager.save_waybill(waybill)
            self.audit_trail.log_event(
                event_type=AuditEventType.RETURN_BILL_INITIATED,
                entity_type="return_bill",
                entity_id=bill.id,
                metadata={
                    "return_number": bill.return_number,
                    "waybill_id": waybill.id,
                    "received_by": bill.received_by,
                    "items": [item.to_dict() for item in return_items]
                }
            )

        return bill

    def complete_return_bill(self, bill_id: str) -> ReturnBill:
        """
        Apply an initiated return bill to its waybill and to stock

        Every line is re-validated against the waybill's outstanding
        quantity; any failure rolls back the whole bill.

        Raises:
            ValueError: If the bill is missing or not INITIATED, or a line
                no longer fits what is outstanding
        """
        bill = self.require_return_bill(bill_id)
        if bill.status != ReturnBillStatus.INITIATED:
            raise ValueError(f"Return bill {bill.return_number} is {bill.status.value}, not initiated")

        waybill = self.waybill_manager.require_waybill(bill.waybill_id)

        with self.storage.atomic():
            for return_item in bill.items:
                line = waybill.require_item(return_item.asset_id)
                line.record_return(return_item.quantity, return_item.condition)

                if return_item.condition == ItemCondition.GOOD:
                    self.asset_manager.credit_stock(
                        asset_id=return_item.asset_id,
                        quantity=return_item.quantity,
                        movement_type=MovementType.WAYBILL_RETURN,
                        reference_type="return_bill",
                        reference_id=bill.id,
                        description=f"Returned on {bill.return_number} against {waybill.waybill_number}"
                    )

            bill.status = ReturnBillStatus.COMPLETED
            bill.completed_at = datetime.now(timezone.utc)
            bill.touch()
            self._save_bill(bill)
            self.waybill_manager.save_waybill(waybill)

            self.audit_trail.log_event(
                event_type=AuditEventType.RETURN_BILL_COMPLETED,
                entity_type="return_bill",
                entity_id=bill.id,
                metadata={
                    "return_number": bill.return_number,
                    "waybill_id": waybill.id,
                    "waybill_status": waybill.status.value,
                    "condition": bill.condition.value
                }
            )

        log_action(
            self.logger, "info", f"Return completed: {bill.return_number}",
            action="complete_return", resource=f"return_bill:{bill.id}",
            extra={
                "waybill": waybill.waybill_number,
                "quantity": bill.total_quantity,
                "condition": bill.condition.value,
                "waybill_status": waybill.status.value
            }
        )
        return bill

    def cancel_return_bill(self, bill_id: str) -> ReturnBill:
        """
        Cancel an initiated return bill

        Lines with nothing accounted for and no other pending return
        go back to outstanding.
        """
        bill = self.require_return_bill(bill_id)
        if bill.status != ReturnBillStatus.INITIATED:
            raise ValueError("Only initiated return bills can be cancelled")

        waybill = self.waybill_manager.require_waybill(bill.waybill_id)

        with self.storage.atomic():
            bill.status = ReturnBillStatus.CANCELLED
            bill.touch()
            self._save_bill(bill)

            still_pending = self.pending_quantities(waybill.id)
            for return_item in bill.items:
                line = waybill.require_item(return_item.asset_id)
                if (line.status == WaybillItemStatus.RETURN_INITIATED
                        and line.returned_quantity == 0
                        and not still_pending.get(line.asset_id)):
                    line.status = WaybillItemStatus.OUTSTANDING
            self.waybill_manager.save_waybill(waybill)

            self.audit_trail.log_event(
                event_type=AuditEventType.RETURN_BILL_CANCELLED,
                entity_type="return_bill",
                entity_id=bill.id,
                metadata={"return_number": bill.return_number, "waybill_id": waybill.id}
            )
        return bill

    def process_return(
        self,
        waybill_id: str,
        items: List[Tuple[str, int, ItemCondition]],
        received_by: str,
        notes: Optional[str] = None,
        return_date: Optional[datetime] = None
    ) -> ReturnBill:
        """Initiate and complete a return in one step"""
        with self.storage.atomic():
            bill = self.initiate_return_bill(waybill_id, items, received_by, notes, return_date)
            return self.complete_return_bill(bill.id)

    def get_return_bill(self, bill_id: str) -> Optional[ReturnBill]:
        data = self.storage.load(self.table_name, bill_id)
        if data:
            return ReturnBill.from_dict(data)
        return None

    def require_return_bill(self, bill_id: str) -> ReturnBill:
        bill = self.get_return_bill(bill_id)
        if not bill:
            raise ValueError(f"Return bill {bill_id} not found")
        return bill

    def list_return_bills(
        self,
        waybill_id: Optional[str] = None,
        status: Optional[ReturnBillStatus] = None
    ) -> List[ReturnBill]:
        filters: Dict[str, Any] = {}
        if waybill_id:
            filters['waybill_id'] = waybill_id
        if status:
            filters['status'] = status.value
        bills = [ReturnBill.from_dict(data) for data in self.storage.find(self.table_name, filters)]
        bills.sort(key=lambda b: b.created_at)
        return bills

    def pending_quantities(self, waybill_id: str) -> Dict[str, int]:
        """Quantities per asset already claimed by initiated bills on a waybill"""
        pending: Dict[str, int] = {}
        for bill in self.list_return_bills(waybill_id=waybill_id, status=ReturnBillStatus.INITIATED):
            for item in bill.items:
                pending[item.asset_id] = pending.get(item.asset_id, 0) + item.quantity
        return pending

    def claimed_quantities(self, waybill_id: str) -> Dict[str, int]:
        """Quantities per asset claimed by initiated bills and any registered claim checks"""
        claimed = self.pending_quantities(waybill_id)
        for check in self._claim_checks:
            for asset_id, quantity in check(waybill_id).items():
                claimed[asset_id] = claimed.get(asset_id, 0) + quantity
        return claimed

    def _save_bill(self, bill: ReturnBill) -> None:
        self.storage.save(self.table_name, bill.id, bill.to_dict())
