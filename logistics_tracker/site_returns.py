"""
Site Return Waybill Module

Return waybills move materials off a site, either back to the main
store or on to another site. They are raised first and processed when
the materials arrive.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Tuple
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .waybills import WaybillManager, ItemCondition
from .returns import ReturnProcessor
from .sites import SiteManager
from .logging_config import get_logger, log_action


class ReturnWaybillStatus(Enum):
    PENDING_PROCESSING = "pending_processing"
    PROCESSED = "processed"


@dataclass
class SiteReturnItem:
    """One line on a return waybill, tied to the waybill it went out on"""
    asset_id: str
    asset_name: str
    quantity: int
    condition: ItemCondition
    original_waybill_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'asset_name': self.asset_name,
            'quantity': self.quantity,
            'condition': self.condition.value,
            'original_waybill_id': self.original_waybill_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SiteReturnItem':
        data = dict(data)
        data['condition'] = ItemCondition(data['condition'])
        return cls(**data)


@dataclass
class ReturnWaybill(StorageRecord):
    """
    Materials leaving a site
    """
    return_number: str
    source_site_id: str
    driver_name: str
    vehicle: str
    return_date: datetime
    items: List[SiteReturnItem]
    destination_site_id: Optional[str] = None  # None means the main store
    status: ReturnWaybillStatus = ReturnWaybillStatus.PENDING_PROCESSING
    received_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    return_bill_ids: Optional[List[str]] = None
    transfer_waybill_id: Optional[str] = None

    @property
    def to_store(self) -> bool:
        return self.destination_site_id is None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['items'] = [item.to_dict() for item in self.items]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReturnWaybill':
        data = dict(data)
        data['items'] = [SiteReturnItem.from_dict(item) for item in data['items']]
        data['status'] = ReturnWaybillStatus(data['status'])
        data['return_date'] = datetime.fromisoformat(data['return_date'])
        if data.get('processed_at'):
            data['processed_at'] = datetime.fromisoformat(data['processed_at'])
        return super().from_dict(data)


class SiteReturnManager:
    """
    Raises and processes return waybills
    """

    def __init__(
        self,
        storage: StorageInterface,
        site_manager: SiteManager,
        waybill_manager: WaybillManager,
        return_processor: ReturnProcessor,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.site_manager = site_manager
        self.waybill_manager = waybill_manager
        self.return_processor = return_processor
        self.audit_trail = audit_trail
        self.table_name = "return_waybills"
        self.logger = get_logger("logistics_tracker.site_returns")
        return_processor.add_claim_check(self.pending_quantities)

    def create_return_waybill(
        self,
        source_site_id: str,
        driver_name: str,
        vehicle: str,
        items: List[Tuple[str, str, int, ItemCondition]],
        destination_site_id: Optional[str] = None,
        return_date: Optional[datetime] = None
    ) -> ReturnWaybill:
        """
        Raise a return waybill for materials on a site

        Args:
            source_site_id: Site the materials leave
            driver_name: Driver moving them
            vehicle: Vehicle used
            items: (original_waybill_id, asset_id, quantity, condition) lines;
                zero quantities are dropped
            destination_site_id: Receiving site, or None for the main store
            return_date: Defaults to now

        Returns:
            ReturnWaybill pending processing

        Raises:
            ValueError: If driver or vehicle is missing, a site is unknown,
                the destination is the source, a line belongs to another
                site or asks for more than is available
        """
        missing = [label for label, value in (("driver name", driver_name), ("vehicle", vehicle))
                   if not value or not value.strip()]
        if missing:
            raise ValueError(f"Missing required return waybill fields: {', '.join(missing)}")

        source = self.site_manager.require_site(source_site_id)
        if destination_site_id is not None:
            self.site_manager.require_site(destination_site_id)
            if destination_site_id == source_site_id:
                raise ValueError("Destination site must differ from the source site")

        # Per (waybill, asset) totals across the request
        requested: Dict[Tuple[str, str], int] = {}
        for waybill_id, asset_id, quantity, _ in items:
            if quantity < 0:
                raise ValueError("Return quantity cannot be negative")
            if quantity == 0:
                continue
            requested[(waybill_id, asset_id)] = requested.get((waybill_id, asset_id), 0) + quantity
        if not requested:
            raise ValueError("Please select at least one item to return")

        names: Dict[Tuple[str, str], str] = {}
        for (waybill_id, asset_id), quantity in requested.items():
            waybill = self.waybill_manager.require_waybill(waybill_id)
            if waybill.site != source.name:
                raise ValueError(f"Waybill {waybill.waybill_number} was not issued to {source.name}")
            line = waybill.require_item(asset_id)
            available = self.available_quantity(waybill_id, asset_id)
            if quantity > available:
                raise ValueError(f"Cannot return more than {available} of {line.asset_name}")
            names[(waybill_id, asset_id)] = line.asset_name

        now = datetime.now(timezone.utc)
        return_waybill = ReturnWaybill(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            return_number=f"RWB{self.storage.count(self.table_name) + 1:03d}",
            source_site_id=source.id,
            driver_name=driver_name.strip(),
            vehicle=vehicle.strip(),
            return_date=return_date or now,
            items=[
                SiteReturnItem(
                    asset_id=asset_id,
                    asset_name=names[(waybill_id, asset_id)],
                    quantity=quantity,
                    condition=condition,
                    original_waybill_id=waybill_id
                )
                for waybill_id, asset_id, quantity, condition in items
                if quantity > 0
            ],
            destination_site_id=destination_site_id
        )

        with self.storage.atomic():
            self._save_return_waybill(return_waybill)
            self.audit_trail.log_event(
                event_type=AuditEventType.RETURN_WAYBILL_CREATED,
                entity_type="return_waybill",
                entity_id=return_waybill.id,
                metadata={
                    "return_number": return_waybill.return_number,
                    "source_site_id": source.id,
                    "destination_site_id": destination_site_id,
                    "items": [item.to_dict() for item in return_waybill.items]
                }
            )

        log_action(
            self.logger, "info", f"Return waybill raised: {return_waybill.return_number}",
            action="create_return_waybill", resource=f"return_waybill:{return_waybill.id}",
            extra={"source": source.name, "to_store": return_waybill.to_store}
        )
        return return_waybill

    def process_return_waybill(self, return_waybill_id: str, received_by: str) -> ReturnWaybill:
        """
        Receive the materials on a return waybill

        Back at the store, one completed return bill is raised per original
        waybill and good items go back into stock. At another site, the
        original waybill lines are settled without touching stock and the
        good items are issued on a transfer waybill to the destination.

        Raises:
            ValueError: If the receiver is missing or the return waybill
                has already been processed
        """
        if not received_by or not received_by.strip():
            raise ValueError("Please enter who received the items")

        return_waybill = self.require_return_waybill(return_waybill_id)
        if return_waybill.status != ReturnWaybillStatus.PENDING_PROCESSING:
            raise ValueError(f"Return waybill {return_waybill.return_number} is already processed")

        # Group lines by original waybill, keeping their order
        by_waybill: Dict[str, List[SiteReturnItem]] = {}
        for item in return_waybill.items:
            by_waybill.setdefault(item.original_waybill_id, []).append(item)

        with self.storage.atomic():
            # Saved as processed first so its own lines stop counting as claimed
            return_waybill.status = ReturnWaybillStatus.PROCESSED
            return_waybill.received_by = received_by.strip()
            return_waybill.processed_at = datetime.now(timezone.utc)
            self._save_return_waybill(return_waybill)

            if return_waybill.to_store:
                return_waybill.return_bill_ids = []
                for waybill_id, lines in by_waybill.items():
                    bill = self.return_processor.process_return(
                        waybill_id=waybill_id,
                        items=[(line.asset_id, line.quantity, line.condition) for line in lines],
                        received_by=received_by,
                        notes=f"Received on return waybill {return_waybill.return_number}",
                        return_date=return_waybill.return_date
                    )
                    return_waybill.return_bill_ids.append(bill.id)
            else:
                transfer = self._transfer_to_site(return_waybill, by_waybill)
                if transfer:
                    return_waybill.transfer_waybill_id = transfer.id

            return_waybill.touch()
            self._save_return_waybill(return_waybill)

            self.audit_trail.log_event(
                event_type=AuditEventType.RETURN_WAYBILL_PROCESSED,
                entity_type="return_waybill",
                entity_id=return_waybill.id,
                metadata={
                    "return_number": return_waybill.return_number,
                    "received_by": return_waybill.received_by,
                    "return_bill_ids": return_waybill.return_bill_ids,
                    "transfer_waybill_id": return_waybill.transfer_waybill_id
                }
            )

        log_action(
            self.logger, "info", f"Return waybill processed: {return_waybill.return_number}",
            action="process_return_waybill", resource=f"return_waybill:{return_waybill.id}",
            extra={"to_store": return_waybill.to_store}
        )
        return return_waybill

    def _transfer_to_site(self, return_waybill: ReturnWaybill, by_waybill: Dict[str, List[SiteReturnItem]]):
        destination = self.site_manager.require_site(return_waybill.destination_site_id)

        moved: Dict[str, int] = {}
        for waybill_id, lines in by_waybill.items():
            waybill = self.waybill_manager.require_waybill(waybill_id)
            for line in lines:
                waybill.require_item(line.asset_id).record_return(line.quantity, line.condition)
                if line.condition == ItemCondition.GOOD:
                    moved[line.asset_id] = moved.get(line.asset_id, 0) + line.quantity
            self.waybill_manager.save_waybill(waybill)

        if not moved:
            return None

        return self.waybill_manager.issue_transfer_waybill(
            items=list(moved.items()),
            driver_name=return_waybill.driver_name,
            vehicle=return_waybill.vehicle,
            site=destination.name,
            client=destination.client,
            transfer_from=return_waybill.return_number
        )

    def available_quantity(self, waybill_id: str, asset_id: str) -> int:
        """
        Quantity of a waybill line that can still go on a return waybill:
        what is outstanding, less what pending return bills and pending
        return waybills already claim
        """
        line = self.waybill_manager.require_waybill(waybill_id).require_item(asset_id)
        claimed = self.return_processor.claimed_quantities(waybill_id).get(asset_id, 0)
        return max(line.outstanding_quantity - claimed, 0)

    def pending_quantities(self, waybill_id: str) -> Dict[str, int]:
        """Quantities per asset claimed on a waybill by return waybills pending processing"""
        pending: Dict[str, int] = {}
        for return_waybill in self.list_return_waybills(status=ReturnWaybillStatus.PENDING_PROCESSING):
            for item in return_waybill.items:
                if item.original_waybill_id == waybill_id:
                    pending[item.asset_id] = pending.get(item.asset_id, 0) + item.quantity
        return pending

    def get_return_waybill(self, return_waybill_id: str) -> Optional[ReturnWaybill]:
        data = self.storage.load(self.table_name, return_waybill_id)
        if data:
            return ReturnWaybill.from_dict(data)
        return None

    def require_return_waybill(self, return_waybill_id: str) -> ReturnWaybill:
        return_waybill = self.get_return_waybill(return_waybill_id)
        if not return_waybill:
            raise ValueError(f"Return waybill {return_waybill_id} not found")
        return return_waybill

    def list_return_waybills(
        self,
        source_site_id: Optional[str] = None,
        status: Optional[ReturnWaybillStatus] = None
    ) -> List[ReturnWaybill]:
        filters: Dict[str, Any] = {}
        if source_site_id:
            filters['source_site_id'] = source_site_id
        if status:
            filters['status'] = status.value
        return_waybills = [ReturnWaybill.from_dict(data)
                           for data in self.storage.find(self.table_name, filters)]
        return_waybills.sort(key=lambda r: r.created_at)
        return return_waybills

    def _save_return_waybill(self, return_waybill: ReturnWaybill) -> None:
        self.storage.save(self.table_name, return_waybill.id, return_waybill.to_dict())
