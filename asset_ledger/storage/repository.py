"""
Repository pattern for data access.

Persists the live asset table and the append-only change ledger. The store
only relies on the ``AssetRepository`` protocol, so SQLite and in-memory
backends are interchangeable.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Protocol, Tuple

from .db import DEFAULT_DB_PATH, get_connection
from .models import Asset, AssetStatus, ChangeAction, ChangeEvent, FieldDelta

_ASSET_COLUMNS = (
    "id, name, type, subtype, description, serial_number, responsible, "
    "location, cost, status, created_at, updated_at, created_by"
)


class AssetRepository(Protocol):
    """Persistence collaborator used by the asset store."""

    def load_assets(self) -> List[Asset]:
        ...

    def save_assets(self, assets: Iterable[Asset]) -> None:
        ...

    def append_event(self, event: ChangeEvent) -> None:
        ...

    def list_events_by_asset(self, asset_id: str) -> List[ChangeEvent]:
        ...

    def list_recent_events(self, limit: int = 100) -> List[ChangeEvent]:
        ...


class MemoryAssetRepository:
    """Process-local repository, useful for demos and tests.

    Holds the same data a durable backend would, without touching disk.
    """

    def __init__(self):
        self._assets: Dict[str, Asset] = {}
        self._events: List[ChangeEvent] = []

    def load_assets(self) -> List[Asset]:
        return list(self._assets.values())

    def save_assets(self, assets: Iterable[Asset]) -> None:
        self._assets = {asset.id: asset for asset in assets}

    def append_event(self, event: ChangeEvent) -> None:
        self._events.append(event)

    def list_events_by_asset(self, asset_id: str) -> List[ChangeEvent]:
        return [event for event in self._events if event.asset_id == asset_id]

    def list_recent_events(self, limit: int = 100) -> List[ChangeEvent]:
        return list(reversed(self._events))[:limit]


class SQLiteAssetRepository:
    """SQLite-backed repository for assets and their change history.

    Every call opens its own connection and commits in a single transaction,
    so a failed write leaves the previous state intact.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def load_assets(self) -> List[Asset]:
        """Load the live asset table ordered by creation time."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_ASSET_COLUMNS} FROM asset ORDER BY created_at, rowid"
            )
            return [_row_to_asset(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def save_assets(self, assets: Iterable[Asset]) -> None:
        """Replace the stored asset table with ``assets`` atomically.

        Args:
            assets: Complete current-state table
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            conn.execute("DELETE FROM asset")
            conn.executemany(
                f"INSERT INTO asset ({_ASSET_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [_asset_to_row(asset) for asset in assets],
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def append_event(self, event: ChangeEvent) -> None:
        """Insert one change event and its deltas into the append-only ledger.

        The event row and all of its delta rows are written in one
        transaction. There is deliberately no way to update or remove them.

        Args:
            event: The change event to record
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            conn.execute("""
                INSERT INTO asset_change_event
                (id, asset_id, action, user_id, username, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                event.id,
                event.asset_id,
                event.action.value,
                event.user_id,
                event.username,
                event.timestamp.isoformat()
            ))
            conn.executemany("""
                INSERT INTO asset_change_delta
                (event_id, position, field, old_value, new_value, value_kind)
                VALUES (?, ?, ?, ?, ?, ?)
            """, [
                (event.id, position) + _delta_to_row(delta)
                for position, delta in enumerate(event.changes)
            ])
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_events_by_asset(self, asset_id: str) -> List[ChangeEvent]:
        """Fetch every event recorded for ``asset_id`` in insertion order.

        Args:
            asset_id: Asset identifier, which may no longer be live

        Returns:
            List of change events, oldest first (empty if none)
        """
        return self._fetch_events(
            "WHERE asset_id = ? ORDER BY seq", (asset_id,)
        )

    def list_recent_events(self, limit: int = 100) -> List[ChangeEvent]:
        """Fetch the most recent events across all assets, newest first."""
        return self._fetch_events("ORDER BY seq DESC LIMIT ?", (limit,))

    def _fetch_events(self, clause: str, params: Tuple) -> List[ChangeEvent]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT id, asset_id, action, user_id, username, timestamp "
                f"FROM asset_change_event {clause}",
                params,
            )
            rows = cursor.fetchall()
            deltas = _fetch_deltas(conn, [row[0] for row in rows])
            return [
                ChangeEvent(
                    id=row[0],
                    asset_id=row[1],
                    action=ChangeAction(row[2]),
                    changes=tuple(deltas.get(row[0], [])),
                    user_id=row[3],
                    username=row[4],
                    timestamp=datetime.fromisoformat(row[5])
                )
                for row in rows
            ]
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the asset and change-ledger tables if they don't exist.

    ``asset_change_event`` and ``asset_change_delta`` form an append-only
    ledger. No UPDATE or DELETE operations are ever performed on them, and
    they carry no foreign key to ``asset`` so history survives deletion.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS asset (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                subtype TEXT,
                description TEXT,
                serial_number TEXT,
                responsible TEXT NOT NULL,
                location TEXT NOT NULL,
                cost TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                created_by TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS asset_change_event (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                asset_id TEXT NOT NULL,
                action TEXT NOT NULL,
                user_id TEXT NOT NULL,
                username TEXT NOT NULL,
                timestamp TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_change_event_asset
                ON asset_change_event(asset_id);

            CREATE TABLE IF NOT EXISTS asset_change_delta (
                event_id TEXT NOT NULL REFERENCES asset_change_event(id),
                position INTEGER NOT NULL,
                field TEXT NOT NULL,
                old_value TEXT NOT NULL,
                new_value TEXT NOT NULL,
                value_kind TEXT NOT NULL DEFAULT 'text',
                PRIMARY KEY (event_id, position)
            );
        """)
        conn.commit()
    finally:
        conn.close()


def _asset_to_row(asset: Asset) -> Tuple:
    return (
        asset.id,
        asset.name,
        asset.type,
        asset.subtype,
        asset.description,
        asset.serial_number,
        asset.responsible,
        asset.location,
        str(asset.cost),
        asset.status.value,
        asset.created_at.isoformat(),
        asset.updated_at.isoformat(),
        asset.created_by
    )


def _row_to_asset(row: Tuple) -> Asset:
    return Asset(
        id=row[0],
        name=row[1],
        type=row[2],
        subtype=row[3],
        description=row[4],
        serial_number=row[5],
        responsible=row[6],
        location=row[7],
        cost=Decimal(row[8]),
        status=AssetStatus(row[9]),
        created_at=datetime.fromisoformat(row[10]),
        updated_at=datetime.fromisoformat(row[11]),
        created_by=row[12]
    )


def _delta_to_row(delta: FieldDelta) -> Tuple[str, str, str, str]:
    # Decimal values come from cost_updated events and must read back as numbers
    kind = "decimal" if isinstance(delta.old_value, Decimal) else "text"
    return (delta.field, str(delta.old_value), str(delta.new_value), kind)


def _fetch_deltas(conn, event_ids: List[str]) -> Dict[str, List[FieldDelta]]:
    deltas: Dict[str, List[FieldDelta]] = {}
    rows = []
    for event_id in event_ids:
        cursor = conn.execute(
            "SELECT event_id, field, old_value, new_value, value_kind "
            "FROM asset_change_delta WHERE event_id = ? ORDER BY position",
            (event_id,),
        )
        rows.extend(cursor.fetchall())

    for event_id, field, old_value, new_value, kind in rows:
        convert = Decimal if kind == "decimal" else str
        deltas.setdefault(event_id, []).append(FieldDelta(
            field=field,
            old_value=convert(old_value),
            new_value=convert(new_value)
        ))
    return deltas
