"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
import os
from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional

from logistics_tracker.storage import (
    InMemoryStorage, SQLiteStorage, StorageRecord, create_storage
)


test_data = {
    "id": "test_001",
    "name": "Submersible pump",
    "quantity": 4,
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


@dataclass
class SampleRecord(StorageRecord):
    name: str
    unit_price: Optional[Decimal] = None


class TestInMemoryStorage:
    """Test InMemoryStorage operations"""

    def test_basic_operations(self):
        storage = InMemoryStorage()

        storage.save("assets", "record_1", test_data)
        assert storage.load("assets", "record_1") == test_data
        assert storage.exists("assets", "record_1")
        assert not storage.exists("assets", "missing")

        storage.save("assets", "record_2", {"id": "record_2", "name": "Hose"})
        assert len(storage.load_all("assets")) == 2
        assert storage.count("assets") == 2

        results = storage.find("assets", {"name": "Hose"})
        assert len(results) == 1
        assert results[0]["id"] == "record_2"

        assert storage.delete("assets", "record_1")
        assert not storage.delete("assets", "record_1")
        assert storage.count("assets") == 1

        storage.clear_table("assets")
        assert storage.count("assets") == 0

    def test_loaded_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("assets", "a", {"id": "a", "quantity": 1})

        loaded = storage.load("assets", "a")
        loaded["quantity"] = 99

        assert storage.load("assets", "a")["quantity"] == 1

    def test_load_missing_returns_none(self):
        storage = InMemoryStorage()
        assert storage.load("assets", "nope") is None

    def test_get_all_data_snapshot(self):
        storage = InMemoryStorage()
        storage.save("assets", "a", {"id": "a", "quantity": 1})
        storage.save("waybills", "w", {"id": "w"})

        data = storage.get_all_data()
        assert set(data) == {"assets", "waybills"}
        data["assets"]["a"]["quantity"] = 5
        assert storage.load("assets", "a")["quantity"] == 1

    def test_atomic_commits(self):
        storage = InMemoryStorage()
        with storage.atomic():
            storage.save("assets", "a", {"id": "a"})
            storage.save("assets", "b", {"id": "b"})

        assert storage.count("assets") == 2

    def test_atomic_rolls_back_on_error(self):
        storage = InMemoryStorage()
        storage.save("assets", "a", {"id": "a", "quantity": 10})

        with pytest.raises(ValueError, match="boom"):
            with storage.atomic():
                storage.save("assets", "a", {"id": "a", "quantity": 3})
                storage.save("waybills", "w", {"id": "w"})
                raise ValueError("boom")

        assert storage.load("assets", "a")["quantity"] == 10
        assert storage.count("waybills") == 0

    def test_nested_atomic_joins_outer_block(self):
        storage = InMemoryStorage()

        with pytest.raises(ValueError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("assets", "a", {"id": "a"})
                # Inner block finished without error, outer failure still rolls it back
                raise ValueError("outer failure")

        assert storage.count("assets") == 0

    def test_atomic_depth_resets_after_error(self):
        storage = InMemoryStorage()
        with pytest.raises(ValueError):
            with storage.atomic():
                raise ValueError("fail")

        with storage.atomic():
            storage.save("assets", "a", {"id": "a"})
        assert storage.count("assets") == 1


class TestSQLiteStorage:
    """Test SQLiteStorage operations"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "tracker.db")

    def test_basic_operations(self):
        storage = SQLiteStorage(self.db_path)

        storage.save("assets", "record_1", test_data)
        assert storage.load("assets", "record_1") == test_data
        assert storage.exists("assets", "record_1")

        storage.save("assets", "record_2", {"id": "record_2", "name": "Hose"})
        assert storage.count("assets") == 2
        assert storage.find("assets", {"name": "Hose"})[0]["id"] == "record_2"

        assert storage.delete("assets", "record_1")
        assert storage.count("assets") == 1

        storage.clear_table("assets")
        assert storage.count("assets") == 0
        storage.close()

    def test_data_persists_across_connections(self):
        storage = SQLiteStorage(self.db_path)
        storage.save("assets", "a", {"id": "a", "name": "Pump"})
        storage.close()

        reopened = SQLiteStorage(self.db_path)
        assert reopened.load("assets", "a") == {"id": "a", "name": "Pump"}
        reopened.close()

    def test_load_all_keeps_insertion_order_after_update(self):
        storage = SQLiteStorage(self.db_path)
        storage.save("assets", "first", {"id": "first", "v": 1})
        storage.save("assets", "second", {"id": "second", "v": 1})
        storage.save("assets", "first", {"id": "first", "v": 2})

        ids = [record["id"] for record in storage.load_all("assets")]
        assert ids == ["first", "second"]
        storage.close()

    def test_atomic_rolls_back_on_error(self):
        storage = SQLiteStorage(self.db_path)
        storage.save("assets", "a", {"id": "a", "quantity": 10})

        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("assets", "a", {"id": "a", "quantity": 3})
                storage.save("stock_movements", "m", {"id": "m"})
                raise ValueError("boom")

        assert storage.load("assets", "a")["quantity"] == 10
        assert storage.count("stock_movements") == 0
        storage.close()

    def test_atomic_commits(self):
        storage = SQLiteStorage(self.db_path)
        with storage.atomic():
            storage.save("assets", "a", {"id": "a"})
        storage.close()

        reopened = SQLiteStorage(self.db_path)
        assert reopened.exists("assets", "a")
        reopened.close()


class TestStorageRecord:
    """Test StorageRecord serialization"""

    def test_to_dict_converts_values(self):
        now = datetime.now(timezone.utc)
        record = SampleRecord(id="r1", created_at=now, updated_at=now,
                              name="Membrane", unit_price=Decimal("12.50"))

        data = record.to_dict()
        assert data["created_at"] == now.isoformat()
        assert data["unit_price"] == "12.50"

    def test_from_dict_parses_timestamps(self):
        now = datetime.now(timezone.utc)
        record = SampleRecord.from_dict({
            "id": "r1",
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
            "name": "Membrane"
        })
        assert record.created_at == now
        assert record.unit_price is None

    def test_touch_bumps_updated_at(self):
        then = datetime(2020, 1, 1, tzinfo=timezone.utc)
        record = SampleRecord(id="r1", created_at=then, updated_at=then, name="Membrane")
        record.touch()
        assert record.updated_at > then
        assert record.created_at == then


class TestCreateStorage:

    def test_memory_backend(self):
        assert isinstance(create_storage("memory"), InMemoryStorage)

    def test_sqlite_backend(self):
        storage = create_storage("sqlite", ":memory:")
        assert isinstance(storage, SQLiteStorage)
        storage.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storage("postgres")
