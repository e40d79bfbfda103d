"""
Unit tests for storage layer.

Tests schema creation, table persistence and ledger retrieval on SQLite.
"""

import os
import sqlite3
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from asset_ledger.core.identity import Actor
from asset_ledger.core.store import AssetStore
from asset_ledger.storage.db import BUSY_TIMEOUT_SECONDS, get_connection
from asset_ledger.storage.models import (
    Asset,
    AssetStatus,
    ChangeAction,
    ChangeEvent,
    FieldDelta,
)
from asset_ledger.storage.repository import SQLiteAssetRepository, initialize_schema

ADMIN = Actor(user_id="1", username="admin")
NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_asset(asset_id="a1", **overrides):
    values = dict(
        id=asset_id,
        name="Laptop",
        type="Hardware",
        responsible="Juan",
        location="Office A",
        cost=Decimal("1000.50"),
        status=AssetStatus.ACTIVE,
        created_at=NOW,
        updated_at=NOW,
        created_by="1",
        subtype="Portable",
        serial_number="SN-1",
    )
    values.update(overrides)
    return Asset(**values)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify tables are created correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' ORDER BY name
                """)
                tables = {row[0] for row in cursor.fetchall()}
                assert {"asset", "asset_change_event", "asset_change_delta"} <= tables

                cursor = conn.execute("PRAGMA table_info(asset_change_event)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'seq', 'id', 'asset_id', 'action', 'user_id', 'username', 'timestamp'
                ]
            finally:
                conn.close()

    def test_connection_settings(self):
        """Connections enforce foreign keys and wait on locks."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")

            conn = get_connection(db_path)
            try:
                assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
                assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == int(
                    BUSY_TIMEOUT_SECONDS * 1000
                )
            finally:
                conn.close()

            conn = get_connection(db_path, timeout=0.5)
            try:
                assert conn.execute("PRAGMA busy_timeout").fetchone()[0] == 500
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        """Running initialization twice keeps existing data."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)
            repository.save_assets([make_asset()])

            initialize_schema(db_path)
            assert len(repository.load_assets()) == 1

    def test_missing_schema_raises(self):
        """Reading before initialization surfaces the SQLite error."""
        with tempfile.TemporaryDirectory() as temp_dir:
            repository = SQLiteAssetRepository(os.path.join(temp_dir, "test.db"))
            with pytest.raises(sqlite3.OperationalError, match="no such table"):
                repository.load_assets()


class TestAssetTable:
    """Test saving and loading the live asset table."""

    def test_round_trip_preserves_fields(self):
        """Saved assets load back equal, including Decimal cost and status."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)

            asset = make_asset(status=AssetStatus.INACTIVE)
            repository.save_assets([asset])

            loaded = repository.load_assets()
            assert loaded == [asset]
            assert isinstance(loaded[0].cost, Decimal)
            assert loaded[0].description is None

    def test_save_replaces_table(self):
        """Assets missing from a save are removed from the table."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)

            repository.save_assets([make_asset("a1"), make_asset("a2")])
            repository.save_assets([make_asset("a2")])

            assert [asset.id for asset in repository.load_assets()] == ["a2"]

    def test_failed_save_rolls_back(self):
        """A save that fails part-way leaves the previous table intact."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)
            repository.save_assets([make_asset("a1")])

            with pytest.raises(sqlite3.IntegrityError):
                repository.save_assets([make_asset("dup"), make_asset("dup")])

            assert [asset.id for asset in repository.load_assets()] == ["a1"]


class TestLedgerPersistence:
    """Test the append-only event tables."""

    def test_events_round_trip_with_numeric_deltas(self):
        """Cost deltas read back as Decimals, other deltas as strings."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)

            events = [
                ChangeEvent(
                    id="e1",
                    asset_id="a1",
                    action=ChangeAction.RELOCATED,
                    changes=(
                        FieldDelta("responsible", "Juan", "Maria"),
                        FieldDelta("location", "Office A", "Office B"),
                    ),
                    user_id="1",
                    username="admin",
                    timestamp=NOW
                ),
                ChangeEvent(
                    id="e2",
                    asset_id="a1",
                    action=ChangeAction.COST_UPDATED,
                    changes=(FieldDelta("cost", Decimal("1000"), Decimal("950.50")),),
                    user_id="2",
                    username="gerente",
                    timestamp=NOW
                ),
            ]
            for event in events:
                repository.append_event(event)

            assert repository.list_events_by_asset("a1") == events
            cost_change = repository.list_events_by_asset("a1")[1].changes[0]
            assert cost_change.new_value == Decimal("950.50")
            assert isinstance(cost_change.old_value, Decimal)

    def test_list_events_for_unknown_asset(self):
        """Unknown assets have no events."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            assert SQLiteAssetRepository(db_path).list_events_by_asset("nope") == []

    def test_store_history_survives_reopen_and_delete(self):
        """History written through the store persists after deletion."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            store = AssetStore(SQLiteAssetRepository(db_path))
            asset = store.create({
                "name": "Laptop",
                "type": "Hardware",
                "responsible": "Juan",
                "location": "Office A",
                "cost": 1000,
            }, ADMIN)
            store.relocate(asset.id, "Office B", "Maria", ADMIN)
            store.delete(asset.id, ADMIN)

            reopened = AssetStore(SQLiteAssetRepository(db_path))
            assert reopened.list_assets() == []
            actions = [event.action for event in reopened.ledger.events_for(asset.id)]
            assert actions == [
                ChangeAction.CREATED,
                ChangeAction.RELOCATED,
                ChangeAction.DECOMMISSIONED,
            ]

    def test_recent_events_newest_first(self):
        """The global feed is ordered newest first and limited."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            repository = SQLiteAssetRepository(db_path)
            for index in range(4):
                repository.append_event(ChangeEvent(
                    id=f"e{index}",
                    asset_id="a1",
                    action=ChangeAction.UPDATED,
                    changes=(FieldDelta("name", "a", "b"),),
                    user_id="1",
                    username="admin",
                    timestamp=NOW
                ))

            recent = repository.list_recent_events(limit=2)
            assert [event.id for event in recent] == ["e3", "e2"]


class TestAppendOnlyNature:
    """Test that the ledger is append-only."""

    def test_no_update_methods_exist(self):
        """Repositories expose no way to modify or remove events."""
        for name in dir(SQLiteAssetRepository):
            if "event" not in name:
                continue
            assert 'update' not in name.lower()
            assert 'delete' not in name.lower()
            assert 'remove' not in name.lower()
            assert 'modify' not in name.lower()
