"""
SQLite connection settings for the asset ledger.

Connections wait on a locked database instead of failing immediately, so
a CLI invocation that overlaps another one queues behind its transaction.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "asset_ledger.db"

# Seconds a connection waits for another writer's lock
BUSY_TIMEOUT_SECONDS = 30.0


def get_connection(
    db_path: str = DEFAULT_DB_PATH,
    timeout: float = BUSY_TIMEOUT_SECONDS,
) -> sqlite3.Connection:
    """Open ``db_path`` with foreign keys enforced and a busy timeout.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for a lock held by another connection
    """
    conn = sqlite3.connect(str(Path(db_path)), timeout=timeout)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
