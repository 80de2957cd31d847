"""
Stock Ledger Engine

Every change to an asset's on-hand quantity is recorded as an immutable
stock movement carrying its cause (waybill, checkout, return, adjustment).
The stored quantity on an asset can always be re-derived from its movements,
which is what reconciliation checks.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType


class MovementType(Enum):
    """Causes of a stock movement"""
    OPENING_BALANCE = "opening_balance"    # Quantity an asset was registered with
    ADJUSTMENT = "adjustment"              # Manual restock or write-down
    WAYBILL_ISSUE = "waybill_issue"        # Dispatched to a site
    WAYBILL_RETURN = "waybill_return"      # Came back from a site in good condition
    CHECKOUT = "checkout"                  # Quick checkout to an employee
    CHECKOUT_RETURN = "checkout_return"    # Quick checkout handed back


@dataclass
class StockMovement(StorageRecord):
    """
    One signed change to an asset's on-hand quantity
    Immutable once recorded
    """
    asset_id: str
    movement_type: MovementType
    quantity_change: int
    balance_after: int
    reference_type: str  # asset, waybill, return_bill, checkout
    reference_id: str
    description: str

    def __post_init__(self):
        if self.quantity_change == 0:
            raise ValueError("Stock movement must change the quantity")

    @property
    def is_debit(self) -> bool:
        return self.quantity_change < 0

    @property
    def is_credit(self) -> bool:
        return self.quantity_change > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StockMovement':
        data = dict(data)
        data['movement_type'] = MovementType(data['movement_type'])
        return super().from_dict(data)


class StockLedger:
    """
    Stock ledger holding the movement history of every asset
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "stock_movements"

    def record_movement(
        self,
        asset_id: str,
        movement_type: MovementType,
        quantity_change: int,
        balance_after: int,
        reference_type: str,
        reference_id: str,
        description: str
    ) -> StockMovement:
        """
        Record a stock movement

        Args:
            asset_id: Asset whose quantity changed
            movement_type: Cause of the change
            quantity_change: Signed change (negative for stock leaving the store)
            balance_after: On-hand quantity after the change
            reference_type: Kind of record that caused the change
            reference_id: ID of that record
            description: Human-readable description

        Returns:
            Recorded StockMovement

        Raises:
            ValueError: If quantity_change is zero
        """
        now = datetime.now(timezone.utc)
        movement = StockMovement(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            asset_id=asset_id,
            movement_type=movement_type,
            quantity_change=quantity_change,
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            description=description
        )

        self.storage.save(self.table_name, movement.id, movement.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.STOCK_MOVEMENT_RECORDED,
            entity_type="asset",
            entity_id=asset_id,
            metadata={
                "movement_id": movement.id,
                "movement_type": movement_type.value,
                "quantity_change": quantity_change,
                "balance_after": balance_after,
                "reference_type": reference_type,
                "reference_id": reference_id
            }
        )

        return movement

    def get_movements(
        self,
        asset_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        movement_type: Optional[MovementType] = None
    ) -> List[StockMovement]:
        """
        Get movements, oldest first, optionally narrowed by asset,
        causing record or movement type
        """
        filters: Dict[str, Any] = {}
        if asset_id:
            filters['asset_id'] = asset_id
        if reference_id:
            filters['reference_id'] = reference_id
        if movement_type:
            filters['movement_type'] = movement_type.value

        movements = [StockMovement.from_dict(data)
                     for data in self.storage.find(self.table_name, filters)]
        movements.sort(key=lambda m: m.created_at)
        return movements

    def derived_quantity(self, asset_id: str, as_of: Optional[datetime] = None) -> int:
        """
        Calculate an asset's on-hand quantity from its movements

        Args:
            asset_id: Asset to calculate for
            as_of: Only count movements recorded up to this time (inclusive)
        """
        total = 0
        for movement in self.get_movements(asset_id=asset_id):
            if as_of and movement.created_at > as_of:
                continue
            total += movement.quantity_change
        return total

    def net_change_by_type(self, asset_id: str) -> Dict[str, int]:
        """Net quantity change per movement type for one asset"""
        totals: Dict[str, int] = {}
        for movement in self.get_movements(asset_id=asset_id):
            key = movement.movement_type.value
            totals[key] = totals.get(key, 0) + movement.quantity_change
        return totals
