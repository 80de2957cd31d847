"""
Site Management Module

Client project locations that receive materials on waybills. What a
site currently holds is read off the waybills addressed to it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .waybills import WaybillManager
from .logging_config import get_logger, log_action


@dataclass
class Site(StorageRecord):
    """
    Client project location
    """
    name: str
    client: str
    location: str
    description: str = ""

    def __post_init__(self):
        missing = [label for label, value in (("name", self.name), ("client", self.client),
                                              ("location", self.location))
                   if not value or not value.strip()]
        if missing:
            raise ValueError(f"Missing required site fields: {', '.join(missing)}")


class SiteManager:
    """
    Manages sites and answers what materials are on them
    """

    def __init__(
        self,
        storage: StorageInterface,
        waybill_manager: WaybillManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.waybill_manager = waybill_manager
        self.audit_trail = audit_trail
        self.table_name = "sites"
        self.logger = get_logger("logistics_tracker.sites")

    def create_site(
        self,
        name: str,
        client: str,
        location: str,
        description: str = ""
    ) -> Site:
        """
        Register a site

        Raises:
            ValueError: If a required field is blank or the name is taken
        """
        now = datetime.now(timezone.utc)
        site = Site(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=(name or "").strip(),
            client=(client or "").strip(),
            location=(location or "").strip(),
            description=(description or "").strip()
        )
        self._check_unique_name(site.name)

        with self.storage.atomic():
            self._save_site(site)
            self.audit_trail.log_event(
                event_type=AuditEventType.SITE_CREATED,
                entity_type="site",
                entity_id=site.id,
                metadata={"name": site.name, "client": site.client, "location": site.location}
            )

        log_action(
            self.logger, "info", f"Site created: {site.name}",
            action="create_site", resource=f"site:{site.id}"
        )
        return site

    def update_site(self, site_id: str, **changes: Any) -> Site:
        """
        Update site details

        Renaming a site is refused while materials are still on it, since
        waybills refer to their site by name.
        """
        editable = {"name", "client", "location", "description"}
        unknown = set(changes) - editable
        if unknown:
            raise ValueError(f"Cannot update site fields: {', '.join(sorted(unknown))}")

        site = self.require_site(site_id)
        new_name = changes.get("name")
        if new_name is not None and new_name.strip() != site.name:
            self._check_unique_name(new_name.strip())
            if self.get_site_inventory(site.id):
                raise ValueError(f"Cannot rename {site.name} while materials are on site")

        for field_name, value in changes.items():
            setattr(site, field_name, (value or "").strip())
        site.__post_init__()
        site.touch()

        with self.storage.atomic():
            self._save_site(site)
            self.audit_trail.log_event(
                event_type=AuditEventType.SITE_UPDATED,
                entity_type="site",
                entity_id=site.id,
                metadata={"changes": changes}
            )
        return site

    def delete_site(self, site_id: str) -> bool:
        """
        Remove a site

        Raises:
            ValueError: If any materials are still outstanding on the site
        """
        site = self.require_site(site_id)
        if self.get_site_inventory(site.id):
            raise ValueError(f"Cannot delete {site.name} while materials are on site")

        with self.storage.atomic():
            deleted = self.storage.delete(self.table_name, site_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.SITE_DELETED,
                entity_type="site",
                entity_id=site_id,
                metadata={"name": site.name}
            )
        return deleted

    def get_site(self, site_id: str) -> Optional[Site]:
        data = self.storage.load(self.table_name, site_id)
        if data:
            return Site.from_dict(data)
        return None

    def require_site(self, site_id: str) -> Site:
        site = self.get_site(site_id)
        if not site:
            raise ValueError(f"Site {site_id} not found")
        return site

    def get_site_by_name(self, name: str) -> Optional[Site]:
        results = self.storage.find(self.table_name, {"name": name})
        if results:
            return Site.from_dict(results[0])
        return None

    def list_sites(self, client: Optional[str] = None) -> List[Site]:
        sites = [Site.from_dict(data) for data in self.storage.load_all(self.table_name)]
        if client:
            sites = [s for s in sites if s.client == client]
        return sites

    def get_site_items(self, site_id: str) -> List[Dict[str, Any]]:
        """
        Every waybill line addressed to a site

        Returns:
            One row per line with the waybill it came on, its status and
            the quantity still available on site
        """
        site = self.require_site(site_id)
        rows = []
        for waybill in self.waybill_manager.list_waybills(site=site.name):
            for item in waybill.items:
                rows.append({
                    "waybill_id": waybill.id,
                    "waybill_number": waybill.waybill_number,
                    "issue_date": waybill.issue_date,
                    "waybill_status": waybill.status.value,
                    "asset_id": item.asset_id,
                    "asset_name": item.asset_name,
                    "quantity": item.quantity,
                    "returned_quantity": item.returned_quantity,
                    "available_quantity": item.outstanding_quantity,
                    "status": item.status.value
                })
        return rows

    def get_site_inventory(self, site_id: str) -> Dict[str, Dict[str, Any]]:
        """Outstanding quantity per asset on a site, omitting assets with none left"""
        inventory: Dict[str, Dict[str, Any]] = {}
        for row in self.get_site_items(site_id):
            if row["available_quantity"] <= 0:
                continue
            entry = inventory.setdefault(row["asset_id"], {
                "asset_id": row["asset_id"],
                "asset_name": row["asset_name"],
                "quantity": 0
            })
            entry["quantity"] += row["available_quantity"]
        return inventory

    def _check_unique_name(self, name: str) -> None:
        if self.get_site_by_name(name):
            raise ValueError(f"A site named {name} already exists")

    def _save_site(self, site: Site) -> None:
        self.storage.save(self.table_name, site.id, site.to_dict())
