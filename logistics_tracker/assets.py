"""
Asset Register Module

Manages the equipment and consumables held in the store. An asset's
quantity on hand only ever changes through the stock ledger, so every
debit and credit leaves a movement behind.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Any
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .stock_ledger import StockLedger, MovementType
from .logging_config import get_logger, log_action


class AssetCategory(Enum):
    """Business line an asset belongs to"""
    DEWATERING = "dewatering"
    WATERPROOFING = "waterproofing"


class AssetType(Enum):
    """Kinds of stock"""
    CONSUMABLE = "consumable"
    NON_CONSUMABLE = "non-consumable"
    TOOLS = "tools"
    EQUIPMENT = "equipment"


class StockStatus(Enum):
    """Stock level bands shown on the inventory"""
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


@dataclass
class Asset(StorageRecord):
    """
    Stock item held in the store
    """
    name: str
    quantity: int
    unit_of_measurement: str
    category: AssetCategory
    asset_type: AssetType
    description: Optional[str] = None
    location: Optional[str] = None
    unit_price: Optional[Decimal] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Asset name is required")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError("Asset quantity must be a whole number")
        if self.unit_price is not None:
            if not self.unit_price.is_finite():
                raise ValueError("Unit price must be a number")
            if self.unit_price < 0:
                raise ValueError("Unit price cannot be negative")

    @property
    def is_available(self) -> bool:
        """Check if any of this asset can be issued"""
        return self.quantity > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Asset':
        data = dict(data)
        data['category'] = AssetCategory(data['category'])
        data['asset_type'] = AssetType(data['asset_type'])
        if data.get('unit_price') is not None:
            data['unit_price'] = Decimal(data['unit_price'])
        return super().from_dict(data)


class AssetManager:
    """
    Manages the asset register and posts stock changes to the ledger
    """

    def __init__(
        self,
        storage: StorageInterface,
        stock_ledger: StockLedger,
        audit_trail: AuditTrail,
        low_stock_threshold: int = 5,
        allow_negative_stock: bool = False
    ):
        self.storage = storage
        self.stock_ledger = stock_ledger
        self.audit_trail = audit_trail
        self.low_stock_threshold = low_stock_threshold
        self.allow_negative_stock = allow_negative_stock
        self.table_name = "assets"
        self.logger = get_logger("logistics_tracker.assets")
        self._in_use_checks: List[Callable[[str], int]] = []

    def add_in_use_check(self, check: Callable[[str], int]) -> None:
        """
        Register a callable returning how much of an asset is still out
        (on waybills, checkouts, ...). Assets with anything out cannot be deleted.
        """
        self._in_use_checks.append(check)

    def create_asset(
        self,
        name: str,
        quantity: int,
        unit_of_measurement: str,
        category: AssetCategory,
        asset_type: AssetType,
        description: Optional[str] = None,
        location: Optional[str] = None,
        unit_price: Optional[Decimal] = None
    ) -> Asset:
        """
        Register a new asset

        The initial quantity is posted as an opening balance movement.

        Args:
            name: Asset name
            quantity: Initial quantity on hand
            unit_of_measurement: pcs, rolls, litres, ...
            category: Business line
            asset_type: Kind of stock
            description: Optional description
            location: Storage location
            unit_price: Optional unit price

        Returns:
            Created Asset

        Raises:
            ValueError: If the name is missing or the quantity is negative
        """
        if quantity < 0:
            raise ValueError("Asset quantity cannot be negative")

        now = datetime.now(timezone.utc)
        asset = Asset(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            quantity=quantity,
            unit_of_measurement=unit_of_measurement,
            category=category,
            asset_type=asset_type,
            description=description or None,
            location=location or None,
            unit_price=unit_price
        )

        with self.storage.atomic():
            self._save_asset(asset)
            if quantity:
                self.stock_ledger.record_movement(
                    asset_id=asset.id,
                    movement_type=MovementType.OPENING_BALANCE,
                    quantity_change=quantity,
                    balance_after=quantity,
                    reference_type="asset",
                    reference_id=asset.id,
                    description=f"Opening balance for {asset.name}"
                )

            self.audit_trail.log_event(
                event_type=AuditEventType.ASSET_CREATED,
                entity_type="asset",
                entity_id=asset.id,
                metadata={
                    "name": asset.name,
                    "quantity": quantity,
                    "category": category.value,
                    "asset_type": asset_type.value
                }
            )

        log_action(
            self.logger, "info", f"Asset registered: {asset.name}",
            action="create_asset", resource=f"asset:{asset.id}",
            extra={"quantity": quantity, "category": category.value}
        )
        return asset

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        """Get asset by ID"""
        data = self.storage.load(self.table_name, asset_id)
        if data:
            return Asset.from_dict(data)
        return None

    def require_asset(self, asset_id: str) -> Asset:
        """Get asset by ID, raising if it does not exist"""
        asset = self.get_asset(asset_id)
        if not asset:
            raise ValueError(f"Asset {asset_id} not found")
        return asset

    def list_assets(
        self,
        search: Optional[str] = None,
        category: Optional[AssetCategory] = None,
        asset_type: Optional[AssetType] = None
    ) -> List[Asset]:
        """
        List assets in registration order

        Args:
            search: Case-insensitive match against name or description
            category: Only this category
            asset_type: Only this type
        """
        assets = [Asset.from_dict(data) for data in self.storage.load_all(self.table_name)]

        if search:
            term = search.lower()
            assets = [
                a for a in assets
                if term in a.name.lower() or (a.description and term in a.description.lower())
            ]
        if category:
            assets = [a for a in assets if a.category == category]
        if asset_type:
            assets = [a for a in assets if a.asset_type == asset_type]

        return assets

    def get_available_assets(self) -> List[Asset]:
        """Assets with stock on hand, i.e. those that can be issued"""
        return [a for a in self.list_assets() if a.is_available]

    def update_asset(self, asset_id: str, **changes: Any) -> Asset:
        """
        Update descriptive fields of an asset

        Quantity cannot be edited here; use adjust_stock so the change
        is recorded in the ledger.

        Raises:
            ValueError: If the asset does not exist or a field is not editable
        """
        editable = {"name", "description", "unit_of_measurement", "category",
                    "asset_type", "location", "unit_price"}
        unknown = set(changes) - editable
        if unknown:
            raise ValueError(f"Cannot update asset fields: {', '.join(sorted(unknown))}")

        asset = self.require_asset(asset_id)
        for field_name, value in changes.items():
            setattr(asset, field_name, value)
        # Re-run field validation on the edited record
        asset.__post_init__()
        asset.touch()

        with self.storage.atomic():
            self._save_asset(asset)
            self.audit_trail.log_event(
                event_type=AuditEventType.ASSET_UPDATED,
                entity_type="asset",
                entity_id=asset.id,
                metadata={"changes": changes}
            )
        return asset

    def delete_asset(self, asset_id: str) -> bool:
        """
        Remove an asset from the register

        Raises:
            ValueError: If the asset is still out on a waybill or checkout
        """
        asset = self.require_asset(asset_id)
        out = sum(check(asset_id) for check in self._in_use_checks)
        if out > 0:
            raise ValueError(f"Cannot delete {asset.name}: {out} still out on waybills or checkouts")

        with self.storage.atomic():
            deleted = self.storage.delete(self.table_name, asset_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.ASSET_DELETED,
                entity_type="asset",
                entity_id=asset_id,
                metadata={"name": asset.name, "quantity": asset.quantity}
            )
        return deleted

    def adjust_stock(self, asset_id: str, quantity_change: int, reason: str) -> Asset:
        """
        Manually restock (positive) or write down (negative) an asset

        Raises:
            ValueError: If the change is zero, no reason is given, or the
                adjustment would leave negative stock
        """
        if not reason or not reason.strip():
            raise ValueError("A reason is required for stock adjustments")
        if quantity_change > 0:
            return self.credit_stock(asset_id, quantity_change, MovementType.ADJUSTMENT,
                                     "asset", asset_id, reason.strip())
        if quantity_change < 0:
            return self.debit_stock(asset_id, -quantity_change, MovementType.ADJUSTMENT,
                                    "asset", asset_id, reason.strip())
        raise ValueError("Stock adjustment must change the quantity")

    def debit_stock(
        self,
        asset_id: str,
        quantity: int,
        movement_type: MovementType,
        reference_type: str,
        reference_id: str,
        description: str
    ) -> Asset:
        """
        Take stock out of the store

        Raises:
            ValueError: If the asset is missing, quantity is not positive,
                or there is not enough stock on hand
        """
        if quantity <= 0:
            raise ValueError("Quantity must be positive")

        asset = self.require_asset(asset_id)
        if quantity > asset.quantity and not self.allow_negative_stock:
            raise ValueError(
                f"Insufficient stock for {asset.name} (Available: {asset.quantity}, requested: {quantity})"
            )
        return self._post(asset, -quantity, movement_type, reference_type, reference_id, description)

    def credit_stock(
        self,
        asset_id: str,
        quantity: int,
        movement_type: MovementType,
        reference_type: str,
        reference_id: str,
        description: str
    ) -> Asset:
        """Put stock back into the store"""
        if quantity <= 0:
            raise ValueError("Quantity must be positive")

        asset = self.require_asset(asset_id)
        return self._post(asset, quantity, movement_type, reference_type, reference_id, description)

    def _post(
        self,
        asset: Asset,
        quantity_change: int,
        movement_type: MovementType,
        reference_type: str,
        reference_id: str,
        description: str
    ) -> Asset:
        with self.storage.atomic():
            asset.quantity += quantity_change
            asset.touch()
            self._save_asset(asset)
            self.stock_ledger.record_movement(
                asset_id=asset.id,
                movement_type=movement_type,
                quantity_change=quantity_change,
                balance_after=asset.quantity,
                reference_type=reference_type,
                reference_id=reference_id,
                description=description
            )
        return asset

    def stock_status(self, asset: Asset) -> StockStatus:
        """Classify an asset's stock level"""
        if asset.quantity <= 0:
            return StockStatus.OUT_OF_STOCK
        if asset.quantity <= self.low_stock_threshold:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    def reconcile_stock(self) -> List[Dict[str, Any]]:
        """
        Compare every asset's stored quantity with the quantity derived
        from its ledger movements

        Returns:
            One row per asset with stored, derived and difference
        """
        rows = []
        for asset in self.list_assets():
            derived = self.stock_ledger.derived_quantity(asset.id)
            rows.append({
                "asset_id": asset.id,
                "name": asset.name,
                "stored_quantity": asset.quantity,
                "derived_quantity": derived,
                "difference": asset.quantity - derived,
                "balanced": asset.quantity == derived
            })
        return rows

    def _save_asset(self, asset: Asset) -> None:
        self.storage.save(self.table_name, asset.id, asset.to_dict())
